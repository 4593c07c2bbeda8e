"""Transport layer for both channels.

Request channel:
- HTTPRequestTransport - httpx, returns the server's acknowledgement
- MockRequestTransport - in-memory, for tests

Push channel:
- WebSocketPushChannel - one JSON object per frame
- SSEPushChannel - `data:` lines of a text/event-stream
- MockPushChannel - in-memory, for tests
"""

from __future__ import annotations

from ..config import ClientConfig
from .base import ChannelState, EventSink, PushChannel, RequestTransport
from .http import HTTPRequestTransport
from .mock import MockPushChannel, MockRequestTransport
from .sse import SSEPushChannel
from .websocket import WebSocketPushChannel


def create_request_transport(config: ClientConfig) -> HTTPRequestTransport:
    """Create the HTTP request transport for a client config."""
    return HTTPRequestTransport(base_url=config.base_url, timeout=config.timeout)


def create_push_channel(config: ClientConfig) -> PushChannel:
    """Create the push channel selected by `config.push_mode`."""
    if config.push_mode == "sse":
        return SSEPushChannel(url=config.push_url, timeout=config.timeout)
    return WebSocketPushChannel(url=config.push_url)


__all__ = [
    "ChannelState",
    "EventSink",
    "HTTPRequestTransport",
    "MockPushChannel",
    "MockRequestTransport",
    "PushChannel",
    "RequestTransport",
    "SSEPushChannel",
    "WebSocketPushChannel",
    "create_push_channel",
    "create_request_transport",
]
