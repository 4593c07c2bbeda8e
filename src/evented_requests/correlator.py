"""Correlator - binds outstanding requests to push channel events.

A request goes out over HTTP; its result arrives later over the shared
push channel, interleaved with every other client's traffic. The
Correlator keeps one PendingFuture per outstanding request and resolves
it when an event with the same correlation id and an expected kind
arrives, or times it out when nothing arrives before its deadline.

Guarantees:
- Exactly one terminal outcome per future (success, error or timeout),
  delivered once, after which the future is gone.
- Registration is synchronous, so it always happens before the request
  is transmitted and a fast reply can't be missed.
- An event only ever resolves the future registered under its own
  correlation id.
- Every dispatched event is published on the NotificationBus afterwards,
  resolved or not, for listeners that don't care about correlation.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .bus import NotificationBus
from .config import EventCallback, FutureDefaults, FutureOptions, ResolvedOptions, TimeoutCallback
from .protocol.events import IncomingEvent
from .protocol.ids import generate_correlation_id

logger = logging.getLogger(__name__)

# (event kind, correlation id)
RouteKey = tuple[str, str]


class ConfigurationError(ValueError):
    """Raised when a future registration is invalid."""

    pass


class DuplicateCorrelationIdError(ConfigurationError):
    """Raised when a correlation id is already pending."""

    def __init__(self, correlation_id: str) -> None:
        super().__init__(f"Correlation id already pending: {correlation_id}")
        self.correlation_id = correlation_id


class FutureState(str, Enum):
    """Lifecycle of a PendingFuture. Everything but PENDING is terminal."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FutureResult:
    """Terminal outcome of a future, as seen through Correlator.expect()."""

    outcome: FutureState
    event: IncomingEvent | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == FutureState.SUCCEEDED

    @property
    def payload(self) -> dict[str, Any]:
        return self.event.payload if self.event else {}


@dataclass(eq=False)
class PendingFuture:
    """One outstanding correlation.

    The timer and routes are owned by this future and released the
    moment it leaves the PENDING state.
    """

    correlation_id: str
    success_kinds: frozenset[str]
    error_kinds: frozenset[str]
    deadline: float
    on_success: EventCallback | None = None
    on_error: EventCallback | None = None
    on_timeout: TimeoutCallback | None = None
    timer: asyncio.TimerHandle | None = None
    routes: tuple[RouteKey, ...] = ()
    waiter: asyncio.Future[FutureResult] | None = None
    state: FutureState = FutureState.PENDING

    @property
    def is_pending(self) -> bool:
        return self.state == FutureState.PENDING

    def outcome_for(self, kind: str) -> FutureState | None:
        """Map an event kind to the outcome it produces, if any."""
        if kind in self.success_kinds:
            return FutureState.SUCCEEDED
        if kind in self.error_kinds:
            return FutureState.FAILED
        return None


class Correlator:
    """Owns the table of pending futures.

    Usage:
        correlator = Correlator(FutureDefaults(deadline=5.0))
        correlation_id = correlator.register(
            success_kinds=["UserCreated"],
            error_kinds=["UserExists"],
            on_success=handle_created,
            on_error=handle_exists,
            on_timeout=handle_timeout,
        )
        ...
        await correlator.dispatch(IncomingEvent.from_wire(message))
    """

    def __init__(
        self,
        defaults: FutureDefaults | None = None,
        bus: NotificationBus | None = None,
        id_generator: Callable[[], str] | None = None,
    ) -> None:
        self.defaults = defaults or FutureDefaults()
        self.bus = bus or NotificationBus()
        self._generate_id = id_generator or generate_correlation_id
        self._pending: dict[str, PendingFuture] = {}
        self._routes: dict[RouteKey, PendingFuture] = {}
        self._callback_tasks: set[asyncio.Task[Any]] = set()

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, options: FutureOptions | None = None, **overrides: Any) -> str:
        """Register a future and arm its deadline timer.

        Must be called from within the running event loop. Returns before
        any dispatch for the new id can run.

        Args:
            options: Per-call options, merged on top of the defaults
            **overrides: FutureOptions fields, applied on top of `options`

        Returns:
            The correlation id the future is registered under

        Raises:
            ConfigurationError: Overlapping or empty kind sets, bad deadline
            DuplicateCorrelationIdError: The id is already pending
        """
        return self._register(self._merge(options, overrides)).correlation_id

    def expect(
        self, options: FutureOptions | None = None, **overrides: Any
    ) -> tuple[str, asyncio.Future[FutureResult]]:
        """Register a future and return an awaitable for its outcome.

        Callbacks in the options still fire. Cancelling the returned
        asyncio future cancels the registration.

        Returns:
            (correlation_id, asyncio future resolving to a FutureResult)
        """
        waiter: asyncio.Future[FutureResult] = asyncio.get_running_loop().create_future()
        future = self._register(self._merge(options, overrides), waiter=waiter)
        correlation_id = future.correlation_id

        def on_waiter_done(done: asyncio.Future[FutureResult]) -> None:
            # The id may already belong to a newer registration
            if done.cancelled() and self._pending.get(correlation_id) is future:
                self.cancel(correlation_id)

        waiter.add_done_callback(on_waiter_done)
        return correlation_id, waiter

    def _merge(self, options: FutureOptions | None, overrides: dict[str, Any]) -> ResolvedOptions:
        if overrides:
            options = (options or FutureOptions()).with_overrides(**overrides)
        return self.defaults.resolve(options)

    def _register(
        self,
        resolved: ResolvedOptions,
        waiter: asyncio.Future[FutureResult] | None = None,
    ) -> PendingFuture:
        self._validate(resolved)

        correlation_id = resolved.correlation_id or self._generate_id()
        if correlation_id in self._pending:
            raise DuplicateCorrelationIdError(correlation_id)

        loop = asyncio.get_running_loop()
        future = PendingFuture(
            correlation_id=correlation_id,
            success_kinds=resolved.success_kinds,
            error_kinds=resolved.error_kinds,
            deadline=resolved.deadline,
            on_success=resolved.on_success,
            on_error=resolved.on_error,
            on_timeout=resolved.on_timeout,
            waiter=waiter,
        )
        future.routes = tuple(
            (kind, correlation_id) for kind in sorted(resolved.success_kinds | resolved.error_kinds)
        )

        self._pending[correlation_id] = future
        for key in future.routes:
            self._routes[key] = future
        future.timer = loop.call_later(resolved.deadline, self._expire, future)

        logger.debug(
            f"Registered future {correlation_id} "
            f"(success={sorted(future.success_kinds)}, error={sorted(future.error_kinds)}, "
            f"deadline={future.deadline}s)"
        )
        return future

    @staticmethod
    def _validate(resolved: ResolvedOptions) -> None:
        overlap = resolved.success_kinds & resolved.error_kinds
        if overlap:
            raise ConfigurationError(
                f"Event kinds cannot be both success and error: {sorted(overlap)}"
            )
        if not resolved.success_kinds and not resolved.error_kinds and not resolved.explicit_timeout:
            raise ConfigurationError(
                "No success or error kinds given; pass on_timeout to wait for the deadline only"
            )
        if resolved.deadline <= 0:
            raise ConfigurationError(f"Deadline must be positive, got {resolved.deadline}")

    # =========================================================================
    # Resolution
    # =========================================================================

    async def dispatch(self, event: IncomingEvent) -> bool:
        """Route an incoming event, then publish it on the bus.

        Returns:
            True if the event resolved a pending future
        """
        resolved = self.resolve(event)
        await self.bus.publish(event)
        return resolved

    def resolve(self, event: IncomingEvent) -> bool:
        """Resolve the future matching this event, without publishing.

        Returns:
            True if the event resolved a pending future
        """
        if event.correlation_id is None:
            return False

        future = self._routes.get((event.kind, event.correlation_id))
        if future is None:
            if event.correlation_id in self._pending:
                logger.debug(f"Event {event.kind} not expected by future {event.correlation_id}")
            else:
                logger.debug(f"Unmatched event {event.kind} for {event.correlation_id}")
            return False

        outcome = future.outcome_for(event.kind)
        if outcome is None:
            return False

        self._release(future, outcome, event)
        callback = future.on_success if outcome == FutureState.SUCCEEDED else future.on_error
        logger.debug(f"Future {future.correlation_id} {outcome.value} on {event.kind}")
        self._invoke(callback, event, event.payload)
        return True

    def _expire(self, future: PendingFuture) -> None:
        """Timer callback: time out the future if it is still pending."""
        if not future.is_pending or self._pending.get(future.correlation_id) is not future:
            return

        self._release(future, FutureState.TIMED_OUT)
        logger.warning(f"Future {future.correlation_id} timed out after {future.deadline}s")
        self._invoke(future.on_timeout)

    def cancel(self, correlation_id: str) -> bool:
        """Abandon a pending future. No callback fires.

        Returns:
            True if the future was pending
        """
        future = self._pending.get(correlation_id)
        if future is None:
            return False

        self._release(future, FutureState.CANCELLED)
        logger.debug(f"Future {correlation_id} cancelled")
        return True

    def cancel_all(self) -> int:
        """Cancel every pending future.

        Returns:
            Number of futures cancelled
        """
        count = 0
        for correlation_id in list(self._pending):
            if self.cancel(correlation_id):
                count += 1
        return count

    def _release(
        self,
        future: PendingFuture,
        state: FutureState,
        event: IncomingEvent | None = None,
    ) -> None:
        """Leave the PENDING state: drop timer, routes and table entry."""
        future.state = state

        if future.timer is not None:
            future.timer.cancel()
            future.timer = None

        for key in future.routes:
            self._routes.pop(key, None)
        future.routes = ()
        self._pending.pop(future.correlation_id, None)

        if future.waiter is not None and not future.waiter.done():
            future.waiter.set_result(FutureResult(state, event))

    # =========================================================================
    # Callbacks
    # =========================================================================

    def _invoke(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        """Call a user callback. Failures are logged, never raised.

        Coroutine results are scheduled as tasks on the running loop.
        """
        if callback is None:
            return

        try:
            result = callback(*args)
        except Exception:
            logger.exception(f"Error in future callback {getattr(callback, '__name__', callback)}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._callback_tasks.add(task)
            task.add_done_callback(self._on_callback_done)

    def _on_callback_done(self, task: asyncio.Task[Any]) -> None:
        self._callback_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Error in async future callback", exc_info=error)

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def pending_count(self) -> int:
        """Number of futures still waiting for an outcome."""
        return len(self._pending)

    def is_pending(self, correlation_id: str) -> bool:
        return correlation_id in self._pending

    def pending_ids(self) -> list[str]:
        return list(self._pending)

    def __contains__(self, correlation_id: object) -> bool:
        return correlation_id in self._pending
