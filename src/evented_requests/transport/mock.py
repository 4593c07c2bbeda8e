"""Mock transports for testing.

No actual I/O - everything is in-memory.

Usage:
    requests = MockRequestTransport(ack={"requestQueued": True})
    push = MockPushChannel()

    client = EventedClient(request_transport=requests, push_channel=push)
    await client.connect()
    correlation_id = await client.send({"url": "/api/user/"}, success_kinds=["UserCreated"])

    await push.deliver({"event": "UserCreated", "clientMsgId": correlation_id})
    assert requests.recorded_requests[0].url == "/api/user/"
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from ..protocol.events import IncomingEvent
from ..protocol.requests import OutboundRequest
from .base import PushChannel

Message = dict[str, Any] | IncomingEvent


def _to_message(message: Message) -> dict[str, Any]:
    return message.to_wire() if isinstance(message, IncomingEvent) else dict(message)


class MockRequestTransport:
    """Records requests and returns a canned acknowledgement.

    Args:
        ack: Value returned from every send()
        on_send: Optional hook awaited with each request before send()
            returns (e.g. to push the reply before the send completes)
        fail_with: Exception raised from every send()
    """

    def __init__(
        self,
        ack: Any = None,
        on_send: Callable[[OutboundRequest], Awaitable[None]] | None = None,
        fail_with: Exception | None = None,
    ) -> None:
        self.ack = ack
        self.on_send = on_send
        self.fail_with = fail_with
        self._recorded_requests: list[OutboundRequest] = []
        self.closed = False

    @property
    def recorded_requests(self) -> list[OutboundRequest]:
        """Get all requests sent through this transport."""
        return self._recorded_requests.copy()

    async def send(self, request: OutboundRequest) -> Any:
        """Record the request, run the hook, return the canned ack."""
        self._recorded_requests.append(request)
        if self.on_send is not None:
            await self.on_send(request)
        if self.fail_with is not None:
            raise self.fail_with
        return self.ack

    async def close(self) -> None:
        self.closed = True

    def clear(self) -> None:
        """Clear recorded requests."""
        self._recorded_requests.clear()


class MockPushChannel(PushChannel):
    """Push channel fed from the test.

    - inject(): queue a message for the background reader
    - deliver(): hand a message straight to the sink and wait for it
    """

    def __init__(self) -> None:
        super().__init__("mock://push")
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def inject(self, message: Message) -> None:
        """Queue a message for the reader task."""
        self._queue.put_nowait(_to_message(message))

    async def deliver(self, message: Message) -> None:
        """Decode and dispatch a message immediately."""
        await self._deliver(IncomingEvent.from_wire(_to_message(message)))

    async def _do_connect(self) -> None:
        """No-op for mock."""
        pass

    async def _do_disconnect(self) -> None:
        """No-op for mock."""
        pass

    async def _receive_messages(self) -> AsyncIterator[dict[str, Any]]:
        """Yield injected messages."""
        while True:
            yield await self._queue.get()
