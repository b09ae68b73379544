"""
Exception types raised by the benchmark harness.
"""

from __future__ import annotations


class BenchmarkError(Exception):
    """Base class for every failure the harness reports."""


class ConfigurationError(BenchmarkError):
    """Invalid benchmark options."""


class TargetError(BenchmarkError):
    """A target file is missing, not a regular file or unreadable."""


class ConnectivityError(BenchmarkError):
    """The echo server could not be reached or the connection broke."""


class TranscodeError(BenchmarkError):
    """The transcoder failed to run or exited with a non-zero status."""

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode


class TrialError(BenchmarkError):
    """A single trial failed; carries where in the run it happened."""

    def __init__(self, operation: str, file_path: str, trial: int, cause: BenchmarkError):
        super().__init__(f"{operation} trial {trial} on {file_path} failed: {cause}")
        self.operation = operation
        self.file_path = file_path
        self.trial = trial
        self.cause = cause
