"""
Benchmark targets, operation kinds and the local file read operation.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path

from labbench.config import CHUNK_SIZE
from labbench.errors import TargetError


class Operation(str, enum.Enum):
    """The operation classes a benchmark run can time."""

    READ = "read"
    TRANSCODE = "transcode"
    TRANSFER = "transfer"
    LOCAL_TRANSFER = "local-transfer"  # same transfer, to an echo server on this machine

    def __str__(self) -> str:
        return self.value


# Loopback transfer is opt-in
DEFAULT_OPERATIONS = (Operation.READ, Operation.TRANSCODE, Operation.TRANSFER)
TRANSFER_OPERATIONS = (Operation.TRANSFER, Operation.LOCAL_TRANSFER)


@dataclass(frozen=True)
class BenchmarkTarget:
    """A file to benchmark against."""

    path: Path
    size_bytes: int

    @classmethod
    def load(cls, path: Path | str) -> BenchmarkTarget:
        """Validate a file up front so no trial runs against a bad target.

        Raises:
            TargetError: if the path is missing, not a regular file or unreadable
        """
        path = Path(path)
        if not path.exists():
            raise TargetError(f"File does not exist: {path}")
        if not path.is_file():
            raise TargetError(f"Not a regular file: {path}")
        try:
            with open(path, "rb") as f:
                f.read(1)
            size = path.stat().st_size
        except OSError as e:
            raise TargetError(f"Cannot read {path}: {e}") from e
        return cls(path=path, size_bytes=size)

    @property
    def name(self) -> str:
        return self.path.name

    def __str__(self) -> str:
        return str(self.path)


def read_file(path: Path | str, chunk_size: int = CHUNK_SIZE) -> int:
    """Read a file to EOF, discarding the content. Returns bytes read."""
    buffer = bytearray(chunk_size)
    view = memoryview(buffer)
    total = 0
    with open(path, "rb", buffering=0) as f:
        while True:
            n = f.readinto(view)
            if not n:
                break
            total += n
    return total
