"""
Metrics collection and aggregation for benchmarking.
"""

from __future__ import annotations

import statistics
import threading
from dataclasses import dataclass

from labbench.timing import TimingRecord

MIN_SAMPLES = 2


@dataclass(frozen=True)
class OperationStats:
    """Statistical summary for one (operation, file) pair."""

    name: str
    count: int
    mean_s: float
    std_s: float
    min_s: float
    max_s: float
    total_s: float

    @classmethod
    def from_durations(cls, name: str, durations_s: list[float]) -> OperationStats:
        """Create stats from a list of durations in seconds.

        The standard deviation is the sample one (n - 1 denominator), so at
        least two durations are required.
        """
        if len(durations_s) < MIN_SAMPLES:
            raise ValueError(
                f"Sample standard deviation needs at least {MIN_SAMPLES} durations, "
                f"got {len(durations_s)} for {name}"
            )

        return cls(
            name=name,
            count=len(durations_s),
            mean_s=statistics.mean(durations_s),
            std_s=statistics.stdev(durations_s),
            min_s=min(durations_s),
            max_s=max(durations_s),
            total_s=sum(durations_s),
        )

    def throughput_mib_s(self, size_bytes: int) -> float:
        """Mean throughput for a payload of ``size_bytes``."""
        return (size_bytes / (1024 * 1024)) / self.mean_s if self.mean_s > 0 else 0.0


class MetricsCollector:
    """Collects trial timings keyed by (operation, file).

    Thread-safe, although the orchestrator records from a single thread.
    """

    def __init__(self) -> None:
        self._records: list[TimingRecord] = []
        self._lock = threading.Lock()

    def record(self, record: TimingRecord) -> None:
        """Thread-safe recording of timing data."""
        with self._lock:
            self._records.append(record)

    def get_records(self, operation: str, file_path: str) -> list[TimingRecord]:
        """Get the trials recorded for one operation on one file, in order."""
        with self._lock:
            return [
                r for r in self._records
                if r.name == operation and r.metadata.get("file") == file_path
            ]

    def count(self, operation: str, file_path: str) -> int:
        """Number of trials recorded for a pair."""
        return len(self.get_records(operation, file_path))

    def compute_stats(self, operation: str, file_path: str) -> OperationStats:
        """Summarise the durations recorded for a pair."""
        durations = [r.duration_s for r in self.get_records(operation, file_path)]
        return OperationStats.from_durations(operation, durations)

    def discard(self, operation: str, file_path: str) -> int:
        """Drop the trials of a pair that will not be reported. Returns how many."""
        with self._lock:
            kept = [
                r for r in self._records
                if not (r.name == operation and r.metadata.get("file") == file_path)
            ]
            dropped = len(self._records) - len(kept)
            self._records = kept
        return dropped
