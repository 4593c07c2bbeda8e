"""Evented requests - HTTP requests whose results arrive over a push channel.

A request goes out over HTTP carrying a correlation id; the server later
pushes the outcome over a shared WebSocket/SSE stream, echoing that id.
The Correlator matches the two and calls exactly one of the request's
success, error or timeout callbacks.
"""

from .bus import NotificationBus, Subscription
from .client import EventedClient, create_client, create_test_client
from .config import ClientConfig, FutureDefaults, FutureOptions
from .correlator import (
    ConfigurationError,
    Correlator,
    DuplicateCorrelationIdError,
    FutureResult,
    FutureState,
    PendingFuture,
)
from .dispatcher import RequestDispatcher
from .protocol import CorrelationIdGenerator, IncomingEvent, OutboundRequest

__version__ = "0.1.0"

__all__ = [
    "ClientConfig",
    "ConfigurationError",
    "CorrelationIdGenerator",
    "Correlator",
    "DuplicateCorrelationIdError",
    "EventedClient",
    "FutureDefaults",
    "FutureOptions",
    "FutureResult",
    "FutureState",
    "IncomingEvent",
    "NotificationBus",
    "OutboundRequest",
    "PendingFuture",
    "RequestDispatcher",
    "Subscription",
    "create_client",
    "create_test_client",
]
