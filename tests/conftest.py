"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from evented_requests.bus import NotificationBus
from evented_requests.correlator import Correlator
from evented_requests.protocol.events import IncomingEvent


class CallbackRecorder:
    """Records every future callback invocation in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, IncomingEvent | None, dict[str, Any] | None]] = []

    def on_success(self, event: IncomingEvent, payload: dict[str, Any]) -> None:
        self.calls.append(("success", event, payload))

    def on_error(self, event: IncomingEvent, payload: dict[str, Any]) -> None:
        self.calls.append(("error", event, payload))

    def on_timeout(self) -> None:
        self.calls.append(("timeout", None, None))

    @property
    def outcomes(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    def callbacks(self, **options: Any) -> dict[str, Any]:
        """Registration keyword arguments wired to this recorder."""
        return {
            "on_success": self.on_success,
            "on_error": self.on_error,
            "on_timeout": self.on_timeout,
            **options,
        }


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
def bus() -> NotificationBus:
    return NotificationBus()


@pytest.fixture
def correlator(bus: NotificationBus) -> Correlator:
    return Correlator(bus=bus)

