"""Notification Bus - shared pub/sub surface for push channel events.

Every event that arrives on the push channel ends up here, keyed by its
kind only. Generic listeners subscribe by kind (or to everything) without
caring whether some request was waiting for that particular event.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

from .protocol.events import IncomingEvent

logger = logging.getLogger(__name__)

# Subscribers may be plain functions or coroutine functions
Listener = Callable[[IncomingEvent], Any]

WILDCARD = "*"


@dataclass(eq=False)
class Subscription:
    """Handle for one registered listener.

    Call unsubscribe() (or the handle itself) to stop receiving events.
    Unsubscribing twice is a no-op.
    """

    kind: str
    listener: Listener
    _bus: NotificationBus = field(repr=False)
    active: bool = True

    def unsubscribe(self) -> None:
        if self.active:
            self._bus._remove(self)
            self.active = False

    def __call__(self) -> None:
        self.unsubscribe()


class NotificationBus:
    """Event bus with wildcard subscription support.

    All work happens on one event loop, so no locking is needed:
    listener lists are copied before a publish iterates them.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}

    def subscribe(self, kind: str, listener: Listener) -> Subscription:
        """Subscribe to a specific event kind.

        Args:
            kind: Event kind to listen for (e.g., "UserCreated")
            listener: Called with each matching IncomingEvent

        Returns:
            Subscription handle
        """
        subscription = Subscription(kind=kind, listener=listener, _bus=self)
        self._subscriptions.setdefault(kind, []).append(subscription)
        return subscription

    def subscribe_all(self, listener: Listener) -> Subscription:
        """Subscribe to ALL events."""
        return self.subscribe(WILDCARD, listener)

    def listener_count(self, kind: str | None = None) -> int:
        """Count listeners for one kind, or all listeners when kind is None."""
        if kind is not None:
            return len(self._subscriptions.get(kind, []))
        return sum(len(subs) for subs in self._subscriptions.values())

    async def publish(self, event: IncomingEvent) -> None:
        """Publish an event to every listener of its kind, then wildcards.

        Listener failures are logged and never reach the publisher.
        """
        specific_subs = list(self._subscriptions.get(event.kind, []))
        wildcard_subs = list(self._subscriptions.get(WILDCARD, []))

        for subscription in specific_subs:
            await self._notify(subscription, event)

        for subscription in wildcard_subs:
            await self._notify(subscription, event)

    async def _notify(self, subscription: Subscription, event: IncomingEvent) -> None:
        if not subscription.active:
            return
        try:
            result = subscription.listener(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Error in listener for {subscription.kind} (event {event.kind})")

    async def stream(self, kind: str = WILDCARD) -> AsyncIterator[IncomingEvent]:
        """Create an async iterator that yields published events.

        Usage:
            async for event in bus.stream():
                print(event.kind)
        """
        queue: asyncio.Queue[IncomingEvent] = asyncio.Queue()
        subscription = self.subscribe(kind, queue.put_nowait)

        try:
            while True:
                yield await queue.get()
        finally:
            subscription.unsubscribe()

    def _remove(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.kind)
        if subs and subscription in subs:
            subs.remove(subscription)
            if not subs:
                del self._subscriptions[subscription.kind]

    def reset(self) -> None:
        """Drop every subscription."""
        for subs in self._subscriptions.values():
            for subscription in subs:
                subscription.active = False
        self._subscriptions = {}

    def __repr__(self) -> str:
        return f"NotificationBus(listeners={self.listener_count()})"
