"""
Home-lab machine benchmark.

Times file reads, ffmpeg transcodes and LAN transfers to an echo server,
repeating each several times and reporting mean and sample standard
deviation per operation and file.

Usage:
    python -m labbench echo-server
    python -m labbench benchmark --files ./movie.mkv --ip 192.168.1.20
"""

from labbench.timing import TimingRecord, TimingContext
from labbench.metrics import OperationStats, MetricsCollector
from labbench.operations import BenchmarkTarget, Operation, read_file
from labbench.echo_server import EchoServer, ServerSession, run_echo_server
from labbench.client import TransferClient, TransferResult
from labbench.transcoder import FfmpegTranscoder, Transcoder, TranscodeResult
from labbench.session import BenchmarkConfig, BenchmarkSession, BenchmarkResult, PairResult
from labbench.report import ReportGenerator
from labbench.errors import (
    BenchmarkError,
    ConfigurationError,
    ConnectivityError,
    TargetError,
    TranscodeError,
    TrialError,
)

__all__ = [
    # Timing primitives
    "TimingRecord",
    "TimingContext",
    # Statistics
    "OperationStats",
    "MetricsCollector",
    # Operations
    "BenchmarkTarget",
    "Operation",
    "read_file",
    # Network
    "EchoServer",
    "ServerSession",
    "run_echo_server",
    "TransferClient",
    "TransferResult",
    # Transcoding
    "FfmpegTranscoder",
    "Transcoder",
    "TranscodeResult",
    # Session management
    "BenchmarkConfig",
    "BenchmarkSession",
    "BenchmarkResult",
    "PairResult",
    # Reporting
    "ReportGenerator",
    # Errors
    "BenchmarkError",
    "ConfigurationError",
    "ConnectivityError",
    "TargetError",
    "TranscodeError",
    "TrialError",
]
