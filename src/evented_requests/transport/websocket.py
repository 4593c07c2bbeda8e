"""WebSocket push channel.

Wire format: one JSON object per text frame, e.g.
    {"event": "UserCreated", "clientMsgId": "req_3f2a9c01_1", "timestamp": "..."}
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets

from .base import PushChannel

logger = logging.getLogger(__name__)


class WebSocketPushChannel(PushChannel):
    """Push channel over a WebSocket connection."""

    def __init__(
        self,
        url: str = "ws://localhost:4567/ws",
        ping_interval: float | None = 30,
        ping_timeout: float | None = 10,
    ) -> None:
        super().__init__(url)
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self._ws: Any = None  # websockets ClientConnection

    async def _do_connect(self) -> None:
        """Open the WebSocket connection."""
        self._ws = await websockets.connect(
            self.url,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_timeout,
        )

    async def _do_disconnect(self) -> None:
        """Close the WebSocket connection."""
        if self._ws:
            await self._ws.close()
            self._ws = None

    async def _receive_messages(self) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded frames until the server closes the socket."""
        if not self._ws:
            raise ConnectionError("WebSocket not connected")

        try:
            async for data in self._ws:
                message = self._decode(data)
                if message is not None:
                    yield message
        except websockets.ConnectionClosed as e:
            logger.info(f"WebSocket closed by server: {e}")
