"""Configuration values for correlated requests.

Two layers:
- FutureDefaults: immutable per-future defaults owned by a Correlator.
  Per-call FutureOptions merge on top without touching the defaults.
- ClientConfig: connection settings for the EventedClient facade.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any

DEFAULT_DEADLINE = 10.0
DEFAULT_CORRELATION_FIELD = "correlationId"

# Callback signatures
EventCallback = Callable[..., Any]  # (event, payload) -> None | Awaitable[None]
TimeoutCallback = Callable[[], Any]


def _as_kinds(kinds: str | Iterable[str] | None) -> frozenset[str]:
    """Normalize a single kind or an iterable of kinds to a frozenset."""
    if kinds is None:
        return frozenset()
    if isinstance(kinds, str):
        return frozenset([kinds])
    return frozenset(kinds)


@dataclass(frozen=True)
class FutureOptions:
    """Per-call registration options.

    Every field is optional. Unset fields (None) fall back to the
    Correlator's FutureDefaults at registration time.

    Example:
        FutureOptions(
            success_kinds=["UserCreated"],
            error_kinds=["UserCreationFailed", "UserExists"],
            on_success=lambda event, payload: print("created"),
            deadline=1.0,
        )
    """

    success_kinds: str | Iterable[str] | None = None
    error_kinds: str | Iterable[str] | None = None
    on_success: EventCallback | None = None
    on_error: EventCallback | None = None
    on_timeout: TimeoutCallback | None = None
    deadline: float | None = None
    correlation_id: str | None = None

    def with_overrides(self, **overrides: Any) -> FutureOptions:
        """Return a copy with the non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


@dataclass(frozen=True)
class ResolvedOptions:
    """Fully merged options for a single registration."""

    success_kinds: frozenset[str]
    error_kinds: frozenset[str]
    on_success: EventCallback | None
    on_error: EventCallback | None
    on_timeout: TimeoutCallback | None
    deadline: float
    correlation_id: str | None
    explicit_timeout: bool  # caller supplied on_timeout for this call


@dataclass(frozen=True)
class FutureDefaults:
    """Immutable default configuration for futures.

    Replaces a process-wide mutable settings object: use merge() to derive
    a new set of defaults and hand it to a Correlator.
    """

    deadline: float = DEFAULT_DEADLINE
    success_kinds: frozenset[str] = field(default_factory=frozenset)
    error_kinds: frozenset[str] = field(default_factory=frozenset)
    on_success: EventCallback | None = None
    on_error: EventCallback | None = None
    on_timeout: TimeoutCallback | None = None

    def merge(self, **overrides: Any) -> FutureDefaults:
        """Return new defaults with the given fields replaced."""
        for key in ("success_kinds", "error_kinds"):
            if key in overrides:
                overrides[key] = _as_kinds(overrides[key])
        return replace(self, **overrides)

    def resolve(self, options: FutureOptions | None = None) -> ResolvedOptions:
        """Merge per-call options on top of these defaults."""
        options = options or FutureOptions()
        return ResolvedOptions(
            success_kinds=(
                _as_kinds(options.success_kinds)
                if options.success_kinds is not None
                else self.success_kinds
            ),
            error_kinds=(
                _as_kinds(options.error_kinds)
                if options.error_kinds is not None
                else self.error_kinds
            ),
            on_success=options.on_success or self.on_success,
            on_error=options.on_error or self.on_error,
            on_timeout=options.on_timeout or self.on_timeout,
            deadline=options.deadline if options.deadline is not None else self.deadline,
            correlation_id=options.correlation_id,
            explicit_timeout=options.on_timeout is not None,
        )


@dataclass
class ClientConfig:
    """Configuration for the EventedClient.

    Covers both channels: the HTTP request channel and the push channel
    that carries correlated results back.
    """

    # Request channel
    base_url: str = "http://localhost:4567"
    timeout: float = 30.0

    # Push channel
    push_mode: str = "websocket"  # "websocket" | "sse"
    push_path: str = "/ws"

    # Correlation
    correlation_field: str = DEFAULT_CORRELATION_FIELD
    future_deadline: float = DEFAULT_DEADLINE

    def __post_init__(self) -> None:
        if self.push_mode not in ("websocket", "sse"):
            raise ValueError(f"Unknown push mode: {self.push_mode}")
        if self.push_mode == "sse" and self.push_path == "/ws":
            self.push_path = "/event"

    @property
    def push_url(self) -> str:
        """Absolute URL of the push channel endpoint."""
        base = self.base_url.rstrip("/")
        if self.push_mode == "websocket":
            base = base.replace("http://", "ws://").replace("https://", "wss://")
        return f"{base}{self.push_path}"

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """Build a config from EVENTED_* environment variables.

        Explicit keyword overrides win over the environment.
        """
        values: dict[str, Any] = {}
        if base_url := os.environ.get("EVENTED_BASE_URL"):
            values["base_url"] = base_url
        if push_mode := os.environ.get("EVENTED_PUSH_MODE"):
            values["push_mode"] = push_mode.lower()
        if deadline := os.environ.get("EVENTED_FUTURE_TIMEOUT"):
            values["future_deadline"] = float(deadline)
        if correlation_field := os.environ.get("EVENTED_CORRELATION_FIELD"):
            values["correlation_field"] = correlation_field
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
