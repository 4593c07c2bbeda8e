"""Correlation id generation."""

from __future__ import annotations

import itertools
import uuid


class CorrelationIdGenerator:
    """Produces correlation ids that never repeat within a process run.

    Ids combine a random per-generator prefix with a monotonic counter:
    "req_3f2a9c01_1", "req_3f2a9c01_2", ...
    """

    def __init__(self, prefix: str = "req") -> None:
        self._prefix = f"{prefix}_{uuid.uuid4().hex[:8]}"
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self._prefix}_{next(self._counter)}"


# Module-level generator shared by correlators that don't bring their own
generate_correlation_id = CorrelationIdGenerator()
