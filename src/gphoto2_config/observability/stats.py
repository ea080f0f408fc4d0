"""Device call statistics.

``Camera`` times each device round trip (``fetch_tree``, ``push_tree``,
``fetch_single``, ``push_single``, ``capture_preview``) and reports it here
when given a ``DeviceStats``. Slow PTP transfers and bodies that keep
answering ``GP_ERROR_CAMERA_BUSY`` show up in the summaries.

Thread-safe.

Example:
    stats = DeviceStats()
    camera = Camera(driver, handle, stats=stats)
    camera["iso"] = "400"
    camera.save()

    summary = stats.get_summary("push_tree")
    print(f"{summary.total_calls} saves, p95 {summary.p95_duration_ms:.1f}ms")
"""

from __future__ import annotations

import threading
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, NamedTuple

#: Successful durations kept per operation.
DEFAULT_STATS_WINDOW_SIZE: int = 500


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class StatsSummary:
    """Snapshot for one operation.

    Counters cover every call since the last reset. Durations (milliseconds)
    cover successful calls still inside the rolling window.
    ``error_counts`` maps an error symbol such as ``GP_ERROR_IO`` to the
    number of failures carrying it.
    """

    operation: str
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    success_rate: float = 0.0
    min_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    avg_duration_ms: float = 0.0
    p95_duration_ms: float = 0.0
    error_counts: dict[str, int] = field(default_factory=dict)
    last_call_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready copy; ``last_call_time`` becomes an ISO string."""
        data = asdict(self)
        if self.last_call_time is not None:
            data["last_call_time"] = self.last_call_time.isoformat()
        return data


class CallRecord(NamedTuple):
    duration_ms: float
    success: bool
    error_type: str | None = None


class OperationStatsCollector:
    """Rolling window plus lifetime counters for one operation name."""

    def __init__(
        self, operation: str, window_size: int = DEFAULT_STATS_WINDOW_SIZE
    ) -> None:
        self.operation = operation
        self._window: deque[CallRecord] = deque(maxlen=window_size)
        self._errors: Counter[str] = Counter()
        self._calls = 0
        self._successes = 0
        self._last_call: datetime | None = None
        self._lock = threading.Lock()

    def record(
        self, duration_ms: float, success: bool, error_type: str | None = None
    ) -> None:
        """Add one call; ``error_type`` names the failure, if known."""
        with self._lock:
            self._window.append(CallRecord(duration_ms, success, error_type))
            self._calls += 1
            self._last_call = _utc_now()
            if success:
                self._successes += 1
            elif error_type:
                self._errors[error_type] += 1

    def get_summary(self) -> StatsSummary:
        with self._lock:
            calls, successes = self._calls, self._successes
            durations = sorted(r.duration_ms for r in self._window if r.success)
            summary = StatsSummary(
                operation=self.operation,
                total_calls=calls,
                successful_calls=successes,
                failed_calls=calls - successes,
                success_rate=successes / calls if calls else 0.0,
                error_counts=dict(self._errors),
                last_call_time=self._last_call,
            )
        if durations:
            summary.min_duration_ms = durations[0]
            summary.max_duration_ms = durations[-1]
            summary.avg_duration_ms = sum(durations) / len(durations)
            summary.p95_duration_ms = _percentile(durations, 95)
        return summary

    def reset(self) -> None:
        with self._lock:
            self._window.clear()
            self._errors.clear()
            self._calls = self._successes = 0
            self._last_call = None


class DeviceStats:
    """Collectors for every operation name seen so far."""

    def __init__(self, window_size: int = DEFAULT_STATS_WINDOW_SIZE) -> None:
        self._window_size = window_size
        self._collectors: dict[str, OperationStatsCollector] = {}
        self._lock = threading.Lock()

    def _collector(self, operation: str) -> OperationStatsCollector:
        with self._lock:
            if operation not in self._collectors:
                self._collectors[operation] = OperationStatsCollector(
                    operation, self._window_size
                )
            return self._collectors[operation]

    def record_call(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error_type: str | None = None,
    ) -> None:
        self._collector(operation).record(duration_ms, success, error_type)

    def get_summary(self, operation: str) -> StatsSummary:
        """Summary for ``operation``, all zeros if it was never recorded."""
        return self._collector(operation).get_summary()

    def get_all_summaries(self) -> dict[str, StatsSummary]:
        with self._lock:
            collectors = dict(self._collectors)
        return {name: c.get_summary() for name, c in collectors.items()}

    def reset(self, operation: str | None = None) -> None:
        """Clear one operation, or all of them when ``operation`` is None."""
        with self._lock:
            if operation is None:
                collectors = list(self._collectors.values())
            elif operation in self._collectors:
                collectors = [self._collectors[operation]]
            else:
                collectors = []
        for collector in collectors:
            collector.reset()

    def to_dict(self) -> dict[str, Any]:
        summaries = self.get_all_summaries()
        return {
            "operations": {name: s.to_dict() for name, s in summaries.items()},
            "timestamp": _utc_now().isoformat(),
        }


def _percentile(sorted_data: list[float], p: float) -> float:
    """Percentile ``p`` (0-100) of sorted data, interpolating linearly.

    Example:
        >>> _percentile([10.0, 20.0, 30.0, 40.0], 95)
        38.5
    """
    if p < 0 or p > 100:
        raise ValueError(f"Percentile must be within 0-100, got {p}")
    if not sorted_data:
        return 0.0
    position = (len(sorted_data) - 1) * p / 100
    below = int(position)
    if below + 1 >= len(sorted_data):
        return sorted_data[-1]
    fraction = position - below
    return sorted_data[below] + (sorted_data[below + 1] - sorted_data[below]) * fraction
