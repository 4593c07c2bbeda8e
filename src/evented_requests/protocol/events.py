"""Event definitions for the push channel.

Events are server notifications delivered over the shared push channel.
They can be:
- Correlated: Response to a specific client request (has correlation_id)
- Uncorrelated: Server-initiated notifications (no correlation_id)

The correlation_id echoes the id the client attached to its request.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# Wire keys accepted for the event kind, in lookup order
KIND_KEYS = ("event", "kind", "type")

# Wire keys accepted for the correlation id, in lookup order
CORRELATION_KEYS = ("clientMsgId", "correlationId", "correlation_id")


class EventKind(str, Enum):
    """Event kinds produced by the push channel itself."""

    CONNECTED = "connected"


class IncomingEvent(BaseModel):
    """An event received from the push channel.

    Each event:
    - Has a `kind` identifying the event type (e.g. "UserCreated")
    - Has an optional `correlation_id` linking it to a client request
    - Has a `payload` with every field of the original message

    Example (correlated):
        {
            "event": "UserCreated",
            "clientMsgId": "req_3f2a9c01_7",
            "timestamp": "2024-01-15T10:30:00Z"
        }

    Example (uncorrelated):
        {
            "sid": 1,
            "event": "connected",
            "timestamp": "2024-01-15T10:30:00Z"
        }
    """

    kind: str
    correlation_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    def is_correlated(self) -> bool:
        """Check if this event answers a specific request."""
        return self.correlation_id is not None

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to the push channel message shape."""
        message = {**self.payload, "event": self.kind}
        if self.correlation_id is not None:
            message["correlationId"] = self.correlation_id
        return message

    @classmethod
    def create(
        cls,
        kind: str | EventKind,
        payload: dict[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> IncomingEvent:
        """Factory method for creating events."""
        return cls(
            kind=kind.value if isinstance(kind, EventKind) else kind,
            correlation_id=correlation_id,
            payload=payload or {},
        )

    @classmethod
    def from_wire(cls, message: dict[str, Any]) -> IncomingEvent:
        """Build an event from a decoded push channel message.

        Raises:
            ValueError: If the message carries no event kind
        """
        kind = next((message[key] for key in KIND_KEYS if message.get(key)), None)
        if not kind:
            raise ValueError(f"Message has no event kind: {sorted(message)}")

        correlation_id = next(
            (message[key] for key in CORRELATION_KEYS if message.get(key) is not None),
            None,
        )
        return cls(
            kind=str(kind),
            correlation_id=str(correlation_id) if correlation_id is not None else None,
            payload=dict(message),
        )
