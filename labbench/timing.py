"""
Core timing primitives for the benchmarking system.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TimingRecord:
    """A single trial: one timed execution of an operation on a file."""

    name: str
    start_ns: int
    end_ns: int
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ns(self) -> int:
        """Duration in nanoseconds."""
        return self.end_ns - self.start_ns

    @property
    def duration_s(self) -> float:
        """Duration in seconds."""
        return self.duration_ns / 1_000_000_000

    @classmethod
    def from_duration(cls, name: str, duration_ns: int, **metadata: Any) -> TimingRecord:
        """Build a record for a duration measured elsewhere (e.g. by a transcoder)."""
        end_ns = time.perf_counter_ns()
        return cls(name=name, start_ns=end_ns - duration_ns, end_ns=end_ns, metadata=metadata)


class TimingContext:
    """Context manager for timing code blocks.

    A record is only produced when the block exits cleanly; a block that
    raises produces no measurement.

    Usage:
        with TimingContext("read", file="movie.mkv") as ctx:
            read_file(path)
        collector.record(ctx.record)
    """

    def __init__(self, name: str, **metadata: Any):
        self.name = name
        self.metadata = metadata
        self._start_ns: int = 0
        self._record: TimingRecord | None = None

    def __enter__(self) -> TimingContext:
        self._start_ns = time.perf_counter_ns()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        end_ns = time.perf_counter_ns()
        if exc_type is not None:
            return
        self._record = TimingRecord(
            name=self.name,
            start_ns=self._start_ns,
            end_ns=end_ns,
            metadata=self.metadata,
        )

    @property
    def record(self) -> TimingRecord | None:
        """Get the timing record after context exit."""
        return self._record
