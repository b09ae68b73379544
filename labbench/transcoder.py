"""
Transcode invoker.

The benchmark only needs the wall-clock duration and exit status of a
transcode, so the tool sits behind the ``Transcoder`` protocol. Tests swap
in doubles; real runs use ``FfmpegTranscoder``.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from labbench.config import DEFAULT_TRANSCODE_SECONDS, get_ffmpeg_binary
from labbench.errors import TranscodeError

logger = logging.getLogger(__name__)

# Keep this much of the tool's stderr in error messages
STDERR_TAIL_CHARS = 2000


@dataclass(frozen=True)
class TranscodeResult:
    """Exit status and duration of one transcode."""

    returncode: int
    duration_ns: int
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    def check(self, file_path: Path | str) -> None:
        """Raise TranscodeError if the transcode failed."""
        if not self.succeeded:
            tail = self.stderr[-STDERR_TAIL_CHARS:].strip()
            message = f"Transcoder exited with status {self.returncode} for {file_path}"
            if tail:
                message += f":\n{tail}"
            raise TranscodeError(message, returncode=self.returncode)


class Transcoder(Protocol):
    """Anything that can transcode a file and report how long it took."""

    def transcode(self, file_path: Path) -> TranscodeResult:
        ...


@dataclass
class FfmpegTranscoder:
    """Transcodes the first ``seconds`` of a file to H.264/AAC Matroska on stdout.

    The output is discarded; stderr is kept only for diagnostics.
    """

    seconds: float = DEFAULT_TRANSCODE_SECONDS
    binary: str = ""

    def __post_init__(self) -> None:
        if not self.binary:
            self.binary = get_ffmpeg_binary()

    def command(self, file_path: Path) -> list[str]:
        return [
            self.binary,
            "-hide_banner",
            "-loglevel", "error",
            "-t", str(self.seconds),
            "-i", str(file_path),
            "-c:v", "libx264",
            "-c:a", "aac",
            "-r", "30",
            "-crf", "26",
            "-f", "matroska",
            "-",
        ]

    def transcode(self, file_path: Path) -> TranscodeResult:
        """Run ffmpeg once, timed from spawn to exit.

        Raises:
            TranscodeError: if the binary cannot be started
        """
        cmd = self.command(file_path)
        logger.debug(f"Running {' '.join(cmd)}")

        start = time.perf_counter_ns()
        try:
            proc = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeError(f"Failed to start {self.binary}: {e}") from e
        duration_ns = time.perf_counter_ns() - start

        return TranscodeResult(
            returncode=proc.returncode,
            duration_ns=duration_ns,
            stderr=proc.stderr.decode(errors="replace"),
        )
