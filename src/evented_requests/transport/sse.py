"""Server-Sent Events push channel.

Reads a long-lived `text/event-stream` response with httpx. Each
`data:` line carries one JSON object; other lines (comments, event
names, keep-alives) are ignored.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from .base import PushChannel

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"


class SSEPushChannel(PushChannel):
    """Push channel over an SSE stream."""

    def __init__(
        self,
        url: str = "http://localhost:4567/event",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(url)
        self.timeout = timeout
        self._client = client
        self._response: httpx.Response | None = None
        self._stack: contextlib.AsyncExitStack | None = None

    async def _do_connect(self) -> None:
        """Open the event stream and check its status."""
        stack = contextlib.AsyncExitStack()
        try:
            client = self._client
            if client is None:
                client = await stack.enter_async_context(
                    httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, read=None))
                )
            response = await stack.enter_async_context(
                client.stream("GET", self.url, headers={"Accept": "text/event-stream"})
            )
            response.raise_for_status()
        except BaseException:
            await stack.aclose()
            raise

        self._stack = stack
        self._response = response

    async def _do_disconnect(self) -> None:
        """Close the stream (and the client, if this channel created it)."""
        self._response = None
        if self._stack is not None:
            await self._stack.aclose()
            self._stack = None

    async def _receive_messages(self) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded `data:` payloads."""
        if self._response is None:
            raise ConnectionError("Event stream not open")

        async for line in self._response.aiter_lines():
            if not line.startswith(DATA_PREFIX):
                continue

            message = self._decode(line[len(DATA_PREFIX) :].strip())
            if message is not None:
                yield message
