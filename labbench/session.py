"""
Benchmark session orchestrator.

Runs every enabled operation against every target file, each exactly
``repeats`` times and strictly one after another, then summarises the
durations per (operation, file) pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    IPvAnyAddress,
    ValidationError,
    field_validator,
    model_validator,
)

from labbench.client import TransferClient, wait_for_server
from labbench.config import (
    DEFAULT_REPEATS,
    DEFAULT_TIMEOUT_S,
    DEFAULT_TRANSCODE_SECONDS,
    LOOPBACK_HOST,
    get_default_port,
)
from labbench.errors import (
    BenchmarkError,
    ConfigurationError,
    ConnectivityError,
    TargetError,
    TrialError,
)
from labbench.metrics import MIN_SAMPLES, MetricsCollector, OperationStats
from labbench.operations import (
    DEFAULT_OPERATIONS,
    TRANSFER_OPERATIONS,
    BenchmarkTarget,
    Operation,
    read_file,
)
from labbench.timing import TimingContext, TimingRecord
from labbench.transcoder import FfmpegTranscoder, Transcoder

logger = logging.getLogger(__name__)


class BenchmarkConfig(BaseModel):
    """Configuration for a benchmark run."""

    model_config = ConfigDict(frozen=True)

    files: list[Path] = Field(min_length=1)
    ip: IPvAnyAddress | None = None
    port: int = Field(default_factory=get_default_port, ge=1, le=65535)
    local_port: int | None = Field(None, ge=1, le=65535)  # echo server on this machine
    repeats: int = DEFAULT_REPEATS
    operations: list[Operation] = Field(default_factory=lambda: list(DEFAULT_OPERATIONS), min_length=1)
    warmup: int = Field(0, ge=0)  # untimed runs before each pair's trials
    transcode_seconds: float = Field(DEFAULT_TRANSCODE_SECONDS, gt=0)
    timeout: float = Field(DEFAULT_TIMEOUT_S, gt=0)
    keep_going: bool = False  # report failed pairs as missing instead of aborting

    @field_validator("repeats")
    @classmethod
    def _enough_repeats(cls, v: int) -> int:
        if v < MIN_SAMPLES:
            raise ValueError(
                f"repeats must be at least {MIN_SAMPLES}; "
                "the sample standard deviation is undefined for fewer trials"
            )
        return v

    @field_validator("files", "operations")
    @classmethod
    def _unique(cls, v: list) -> list:
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def _endpoints_for_transfer(self) -> BenchmarkConfig:
        if Operation.TRANSFER in self.operations and self.ip is None:
            raise ValueError("an echo server ip is required when the transfer operation is enabled")
        if Operation.LOCAL_TRANSFER in self.operations and self.local_port is None:
            raise ValueError("a local echo server port is required when the local-transfer operation is enabled")
        return self

    @classmethod
    def from_options(cls, **options) -> BenchmarkConfig:
        """Validate options, raising ConfigurationError with a readable message."""
        try:
            return cls(**options)
        except ValidationError as e:
            problems = []
            for err in e.errors():
                loc = ".".join(str(part) for part in err["loc"])
                problems.append(f"{loc}: {err['msg']}" if loc else err["msg"])
            raise ConfigurationError("Invalid benchmark options: " + "; ".join(problems)) from e


@dataclass(frozen=True)
class PairResult:
    """One row of the results table."""

    operation: Operation
    target: BenchmarkTarget
    stats: OperationStats | None = None
    error: str | None = None
    trials_completed: int = 0

    @property
    def ok(self) -> bool:
        return self.stats is not None


@dataclass
class BenchmarkResult:
    """Result of a benchmark run."""

    rows: list[PairResult]
    repeats: int
    start_time: datetime
    end_time: datetime

    @property
    def wall_time_s(self) -> float:
        """Total wall clock time in seconds."""
        return (self.end_time - self.start_time).total_seconds()

    @property
    def missing(self) -> list[PairResult]:
        return [row for row in self.rows if not row.ok]

    @property
    def ok(self) -> bool:
        return not self.missing


class BenchmarkSession:
    """Manages a complete benchmark run.

    Orchestrates:
    - Target validation (before any trial runs)
    - Echo server reachability (before any trial runs)
    - Warmup runs
    - Measured trials, one at a time
    - Per-pair statistics
    """

    def __init__(
        self,
        config: BenchmarkConfig,
        transcoder: Transcoder | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ):
        """Initialize benchmark session.

        Args:
            config: Benchmark configuration
            transcoder: Transcoder to time; defaults to ffmpeg
            progress_callback: Optional callback for progress updates.
                              Called with (current, total, message).
        """
        self.config = config
        self.collector = MetricsCollector()
        self.transcoder = transcoder or FfmpegTranscoder(seconds=config.transcode_seconds)
        self.clients: dict[Operation, TransferClient] = {}
        if config.ip is not None:
            self.clients[Operation.TRANSFER] = TransferClient(str(config.ip), config.port, timeout=config.timeout)
        if config.local_port is not None:
            self.clients[Operation.LOCAL_TRANSFER] = TransferClient(
                LOOPBACK_HOST, config.local_port, timeout=config.timeout
            )
        self._unreachable: dict[Operation, ConnectivityError] = {}
        self._progress_callback = progress_callback

    def _report_progress(self, current: int, total: int, message: str) -> None:
        """Report progress if callback is set."""
        if self._progress_callback:
            self._progress_callback(current, total, message)

    def load_targets(self) -> list[BenchmarkTarget]:
        """Validate every file before running anything.

        Raises:
            TargetError: for the first unusable file
        """
        targets = [BenchmarkTarget.load(path) for path in self.config.files]
        for target in targets:
            logger.info(f"Target {target.path} ({target.size_bytes} bytes)")
        return targets

    def check_echo_servers(self) -> dict[Operation, ConnectivityError]:
        """Make sure every echo server a transfer operation needs accepts connections.

        Returns:
            The unreachable servers' errors by operation; only ever non-empty
            with keep_going set.

        Raises:
            ConnectivityError: for the first unreachable server unless keep_going is set
        """
        unreachable: dict[Operation, ConnectivityError] = {}
        for operation in self.config.operations:
            if operation not in TRANSFER_OPERATIONS:
                continue
            client = self.clients[operation]
            logger.info(f"Checking echo server at {client.address}")
            if wait_for_server(client.host, client.port, timeout=self.config.timeout):
                continue

            error = ConnectivityError(
                f"Echo server at {client.address} is not reachable "
                f"(no connection within {self.config.timeout:g}s)"
            )
            if not self.config.keep_going:
                raise error
            logger.error(f"{error}; {operation} will be reported as missing")
            unreachable[operation] = error
        return unreachable

    def measure(self, operation: Operation, target: BenchmarkTarget) -> int:
        """Run one operation once and return its duration in nanoseconds."""
        if operation is Operation.READ:
            try:
                with TimingContext(operation.value) as ctx:
                    read_file(target.path)
            except OSError as e:
                raise TargetError(f"Cannot read {target.path}: {e}") from e
            return ctx.record.duration_ns

        if operation is Operation.TRANSCODE:
            result = self.transcoder.transcode(target.path)
            result.check(target.path)
            return result.duration_ns

        if operation in TRANSFER_OPERATIONS:
            client = self.clients.get(operation)
            if client is None:
                raise ConfigurationError(f"No echo server configured for {operation} trials")
            return client.transfer(target.path).duration_ns

        raise ConfigurationError(f"Unknown operation: {operation}")

    def run_pair(self, operation: Operation, target: BenchmarkTarget, step: int, total: int) -> PairResult:
        """Run warmup then the measured trials for one (operation, file) pair."""
        file_key = str(target.path)

        if operation in self._unreachable:
            return self._trial_failed(
                operation, target, TrialError(operation.value, file_key, 1, self._unreachable[operation])
            )

        for _ in range(self.config.warmup):
            step += 1
            self._report_progress(step, total, f"Warmup {operation} {target.name}")
            try:
                self.measure(operation, target)
            except BenchmarkError as e:
                return self._trial_failed(operation, target, TrialError(operation.value, file_key, 0, e))

        for trial in range(1, self.config.repeats + 1):
            step += 1
            self._report_progress(step, total, f"{operation} {target.name} ({trial}/{self.config.repeats})")
            try:
                duration_ns = self.measure(operation, target)
            except BenchmarkError as e:
                return self._trial_failed(operation, target, TrialError(operation.value, file_key, trial, e))

            self.collector.record(
                TimingRecord.from_duration(operation.value, duration_ns, file=file_key, trial=trial)
            )
            logger.debug(f"{operation} {target.name} trial {trial}: {duration_ns / 1_000_000:.1f}ms")

        stats = self.collector.compute_stats(operation.value, file_key)
        logger.info(
            f"{operation} {target.name}: mean={stats.mean_s:.3f}s std={stats.std_s:.3f}s "
            f"over {stats.count} trials"
        )
        return PairResult(operation=operation, target=target, stats=stats, trials_completed=stats.count)

    def _trial_failed(self, operation: Operation, target: BenchmarkTarget, error: TrialError) -> PairResult:
        if not self.config.keep_going:
            raise error from error.cause

        completed = self.collector.discard(operation.value, str(target.path))
        logger.error(f"{error}; reporting pair as missing ({completed}/{self.config.repeats} trials done)")
        return PairResult(
            operation=operation,
            target=target,
            error=str(error.cause),
            trials_completed=completed,
        )

    def run(self) -> BenchmarkResult:
        """Execute the full benchmark.

        Returns:
            BenchmarkResult with one row per (operation, file) pair.

        Raises:
            TargetError: if a file is unusable (before any trial runs)
            ConnectivityError: if an echo server is unreachable (before any
                trial runs) unless keep_going is set
            TrialError: on the first failed trial unless keep_going is set
        """
        start_time = datetime.now()
        logger.info(f"Starting benchmark at {start_time}")

        targets = self.load_targets()
        self._unreachable = self.check_echo_servers()
        operations = self.config.operations
        per_pair = self.config.warmup + self.config.repeats
        total = len(targets) * len(operations) * per_pair

        rows: list[PairResult] = []
        step = 0
        for target in targets:
            for operation in operations:
                rows.append(self.run_pair(operation, target, step, total))
                step += per_pair

        self._report_progress(total, total, "Done")
        end_time = datetime.now()
        logger.info(f"Benchmark completed at {end_time}")

        return BenchmarkResult(
            rows=rows,
            repeats=self.config.repeats,
            start_time=start_time,
            end_time=end_time,
        )
