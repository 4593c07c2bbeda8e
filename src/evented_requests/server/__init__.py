"""Demo server: acknowledges requests over HTTP, answers over a push channel."""

from .app import DEFAULT_DELAY, create_app
from .channel import BroadcastChannel
from .routes import EXISTING_USERNAME, UserEvent

__all__ = [
    "DEFAULT_DELAY",
    "EXISTING_USERNAME",
    "BroadcastChannel",
    "UserEvent",
    "create_app",
]
