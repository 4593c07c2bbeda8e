"""Evented client - one object owning both channels.

Wires together:
- NotificationBus (generic listeners)
- Correlator (pending futures)
- RequestDispatcher (register, then send)
- a RequestTransport (HTTP) and a PushChannel (WebSocket/SSE)

The push channel feeds every message into Correlator.dispatch, which
resolves the matching future and then publishes the event on the bus.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from .bus import Listener, NotificationBus, Subscription
from .config import ClientConfig, FutureDefaults, FutureOptions
from .correlator import Correlator, FutureResult
from .dispatcher import RequestDispatcher
from .protocol.events import IncomingEvent
from .protocol.requests import OutboundRequest
from .transport import (
    MockPushChannel,
    MockRequestTransport,
    PushChannel,
    RequestTransport,
    create_push_channel,
    create_request_transport,
)

logger = logging.getLogger(__name__)


class EventedClient:
    """Client for servers that answer requests over a push channel.

    Usage:
        async with create_client("http://localhost:4567") as client:
            result = await client.request(
                {"url": "/api/user/", "json": {"username": "dummyuser"}},
                success_kinds=["UserCreated"],
                error_kinds=["UserCreationFailed", "UserExists"],
                deadline=5.0,
            )
            if result.ok:
                print("User created!")
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        request_transport: RequestTransport | None = None,
        push_channel: PushChannel | None = None,
        defaults: FutureDefaults | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.bus = NotificationBus()
        self.correlator = Correlator(
            defaults=defaults or FutureDefaults(deadline=self.config.future_deadline),
            bus=self.bus,
        )
        self.request_transport = request_transport or create_request_transport(self.config)
        self.push_channel = push_channel or create_push_channel(self.config)
        self.push_channel.bind(self.correlator.dispatch)
        self.dispatcher = RequestDispatcher(
            self.correlator,
            self.request_transport,
            correlation_field=self.config.correlation_field,
        )

    @property
    def is_connected(self) -> bool:
        """Check if the push channel is connected."""
        return self.push_channel.is_connected

    async def connect(self) -> None:
        """Open the push channel.

        Connect before sending: results for requests sent while the push
        channel is down are lost and their futures time out.
        """
        await self.push_channel.connect()

    async def disconnect(self) -> None:
        """Cancel pending futures and close both channels."""
        cancelled = self.correlator.cancel_all()
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending futures on disconnect")
        await self.push_channel.disconnect()
        await self.request_transport.close()

    async def send(
        self,
        request: OutboundRequest | dict[str, Any],
        future: FutureOptions | None = None,
        **future_overrides: Any,
    ) -> str:
        """Send a request; callbacks fire when its result is pushed.

        Returns:
            The correlation id
        """
        return await self.dispatcher.send(request, future, **future_overrides)

    async def request(
        self,
        request: OutboundRequest | dict[str, Any],
        future: FutureOptions | None = None,
        **future_overrides: Any,
    ) -> FutureResult:
        """Send a request and wait for its terminal outcome."""
        return await self.dispatcher.request(request, future, **future_overrides)

    def cancel(self, correlation_id: str) -> bool:
        """Abandon a pending request without firing any callback."""
        return self.correlator.cancel(correlation_id)

    def subscribe(self, kind: str, listener: Listener) -> Subscription:
        """Listen for every event of a kind, correlated or not."""
        return self.bus.subscribe(kind, listener)

    def subscribe_all(self, listener: Listener) -> Subscription:
        """Listen for every event."""
        return self.bus.subscribe_all(listener)

    def events(self, kind: str = "*") -> AsyncIterator[IncomingEvent]:
        """Iterate over published events."""
        return self.bus.stream(kind)

    async def __aenter__(self) -> EventedClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()


# Factory functions


def create_client(
    base_url: str | None = None,
    push_mode: str | None = None,
    timeout: float | None = None,
    future_deadline: float | None = None,
    correlation_field: str | None = None,
) -> EventedClient:
    """Create a client for a running server.

    Unset arguments come from EVENTED_* environment variables, then
    ClientConfig defaults.

    Args:
        base_url: Server URL
        push_mode: "websocket" or "sse"
        timeout: HTTP timeout in seconds
        future_deadline: Default deadline for futures in seconds
        correlation_field: Request parameter carrying the correlation id

    Returns:
        EventedClient with HTTP and WebSocket/SSE transports
    """
    config = ClientConfig.from_env(
        base_url=base_url,
        push_mode=push_mode,
        timeout=timeout,
        future_deadline=future_deadline,
        correlation_field=correlation_field,
    )
    return EventedClient(config)


def create_test_client(
    request_transport: MockRequestTransport | None = None,
    push_channel: MockPushChannel | None = None,
    defaults: FutureDefaults | None = None,
) -> EventedClient:
    """Create a client backed by mock transports.

    Returns:
        EventedClient with MockRequestTransport and MockPushChannel
    """
    return EventedClient(
        request_transport=request_transport or MockRequestTransport(),
        push_channel=push_channel or MockPushChannel(),
        defaults=defaults,
    )
