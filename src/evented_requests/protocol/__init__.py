"""Wire protocol for the two channels.

Key concepts:
- OutboundRequest: Client -> Server over HTTP, carries a correlation id
- IncomingEvent: Server -> Client over the push channel, echoes it back
- Correlation: a correlated event links back to its originating request

Uncorrelated events (no correlation id) are server-initiated
notifications such as "connected".
"""

from .events import EventKind, IncomingEvent
from .ids import CorrelationIdGenerator, generate_correlation_id
from .requests import HTTPMethod, OutboundRequest

__all__ = [
    "CorrelationIdGenerator",
    "EventKind",
    "HTTPMethod",
    "IncomingEvent",
    "OutboundRequest",
    "generate_correlation_id",
]
