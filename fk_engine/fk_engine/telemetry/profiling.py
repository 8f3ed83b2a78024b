"""Timing instrumentation for the engine's analysis operations.

``@profile_operation(name)`` wraps a sync or async callable, measures its
wall-clock duration with ``perf_counter_ns`` and records it in the
process-wide :class:`ProfileCollector`.  Each measurement is also logged at
DEBUG level.

Usage::

    from fk_engine.telemetry.profiling import profile_operation

    @profile_operation("cycles.detect")
    def detect_cycles(graph):
        ...
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class ProfileResult:
    """Duration of one profiled call."""

    operation: str
    duration_ms: float


class ProfileCollector:
    """Thread-safe store of the most recent durations per operation.

    Parameters
    ----------
    max_results:
        Number of samples retained per operation name.
    """

    _instance: ProfileCollector | None = None
    _lock_cls = threading.Lock()

    def __init__(self, max_results: int = 100) -> None:
        self._max_results = max_results
        self._data: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> ProfileCollector:
        """Return the process-wide collector, creating it on first use."""
        if cls._instance is None:
            with cls._lock_cls:
                if cls._instance is None:
                    cls._instance = ProfileCollector()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the process-wide collector (for testing)."""
        with cls._lock_cls:
            cls._instance = None

    def record(self, result: ProfileResult) -> None:
        with self._lock:
            samples = self._data.setdefault(result.operation, deque(maxlen=self._max_results))
            samples.append(result.duration_ms)

    def get_stats(self, operation: str) -> dict[str, Any] | None:
        """Aggregate the retained samples for *operation*.

        Returns ``None`` when nothing was recorded, otherwise
        ``{"operation", "count", "mean_ms", "p50_ms", "p95_ms", "max_ms"}``.
        """
        with self._lock:
            samples = self._data.get(operation)
            if not samples:
                return None
            durations = sorted(samples)

        count = len(durations)
        return {
            "operation": operation,
            "count": count,
            "mean_ms": round(sum(durations) / count, 3),
            "p50_ms": round(_percentile(durations, 50), 3),
            "p95_ms": round(_percentile(durations, 95), 3),
            "max_ms": round(durations[-1], 3),
        }

    def get_all_stats(self) -> list[dict[str, Any]]:
        """Stats for every tracked operation, sorted by name."""
        with self._lock:
            operations = sorted(self._data)
        return [stats for op in operations if (stats := self.get_stats(op)) is not None]


def _percentile(sorted_data: list[float], p: float) -> float:
    """Linear-interpolated percentile of already sorted data."""
    n = len(sorted_data)
    k = (p / 100.0) * (n - 1)
    lower = int(k)
    upper = min(lower + 1, n - 1)
    return sorted_data[lower] + (k - lower) * (sorted_data[upper] - sorted_data[lower])


def _record(name: str, start_ns: int) -> None:
    duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
    ProfileCollector.get_instance().record(ProfileResult(operation=name, duration_ms=round(duration_ms, 3)))
    logger.debug("PROFILE %s: %.3f ms", name, duration_ms)


def profile_operation(name: str) -> Callable[[F], F]:
    """Decorator that times a sync or async function under *name*."""

    def decorator(func: F) -> F:
        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                start_ns = time.perf_counter_ns()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _record(name, start_ns)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start_ns = time.perf_counter_ns()
            try:
                return func(*args, **kwargs)
            finally:
                _record(name, start_ns)

        return sync_wrapper  # type: ignore[return-value]

    return decorator
