"""Broadcast channel shared by every push connection."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator
from typing import Any

logger = logging.getLogger(__name__)


class BroadcastChannel:
    """Fan-out of JSON messages to every subscribed connection.

    Each subscriber gets its own queue and a numeric subscriber id (sid).
    """

    def __init__(self) -> None:
        self._subscribers: dict[int, asyncio.Queue[dict[str, Any]]] = {}
        self._sids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> tuple[int, asyncio.Queue[dict[str, Any]]]:
        """Register a subscriber and return its sid and queue."""
        sid = next(self._sids)
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._subscribers[sid] = queue
        logger.debug(f"Channel subscriber {sid} added")
        return sid, queue

    def unsubscribe(self, sid: int) -> None:
        if self._subscribers.pop(sid, None) is not None:
            logger.debug(f"Channel subscriber {sid} removed")

    def push(self, message: dict[str, Any]) -> int:
        """Deliver a message to every subscriber.

        Returns:
            Number of subscribers the message was queued for
        """
        for queue in list(self._subscribers.values()):
            queue.put_nowait(message)
        return len(self._subscribers)

    async def stream(self) -> AsyncIterator[dict[str, Any]]:
        """Subscribe and yield messages until the consumer stops."""
        sid, queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(sid)
