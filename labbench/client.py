"""
Transfer client for benchmarking LAN throughput against the echo server.

A transfer is one TCP connection: the raw file bytes, a half-close, then a
wait for the server to close its side once it has drained everything.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from pathlib import Path

from labbench.config import CHUNK_SIZE, DEFAULT_TIMEOUT_S, get_default_port
from labbench.errors import ConnectivityError, TargetError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a single transfer."""

    file_path: str
    bytes_sent: int
    duration_ns: int
    # Anything the server wrote back before closing; the protocol expects 0
    bytes_returned: int = 0

    @property
    def duration_s(self) -> float:
        return self.duration_ns / 1_000_000_000


class TransferClient:
    """Streams files to an echo server, one connection per transfer."""

    def __init__(
        self,
        host: str,
        port: int | None = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        chunk_size: int = CHUNK_SIZE,
    ):
        self.host = host
        self.port = port if port is not None else get_default_port()
        self.timeout = timeout
        self.chunk_size = chunk_size

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def transfer(self, file_path: Path | str) -> TransferResult:
        """Send a file and block until the server has closed the connection.

        The duration spans opening the connection through observing the
        server's close, so it includes the server's drain time.

        Raises:
            ConnectivityError: connection refused, timed out or reset
        """
        bytes_sent = 0
        bytes_returned = 0
        start = time.perf_counter_ns()
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout) as conn:
                with open(file_path, "rb") as f:
                    while chunk := f.read(self.chunk_size):
                        conn.sendall(chunk)
                        bytes_sent += len(chunk)

                conn.shutdown(socket.SHUT_WR)

                while data := conn.recv(self.chunk_size):
                    bytes_returned += len(data)
        except (socket.timeout, ConnectionError) as e:
            raise ConnectivityError(
                f"Transfer of {file_path} to {self.address} failed after {bytes_sent} bytes: {e}"
            ) from e
        except OSError as e:
            if e.filename is not None:
                raise TargetError(f"Cannot read {file_path}: {e}") from e
            raise ConnectivityError(f"Cannot reach echo server at {self.address}: {e}") from e

        duration_ns = time.perf_counter_ns() - start

        if bytes_returned:
            logger.warning(f"Echo server at {self.address} sent back {bytes_returned} bytes; ignored")
        logger.debug(f"Sent {bytes_sent} bytes to {self.address} in {duration_ns / 1_000_000:.1f}ms")

        return TransferResult(
            file_path=str(file_path),
            bytes_sent=bytes_sent,
            duration_ns=duration_ns,
            bytes_returned=bytes_returned,
        )


def wait_for_server(host: str, port: int, timeout: float = 10.0, poll_interval: float = 0.1) -> bool:
    """Wait for the echo server to accept connections.

    Args:
        host: Server address
        port: Server port
        timeout: Maximum time to wait in seconds
        poll_interval: Time between checks in seconds

    Returns:
        True if server is available, False if timeout reached
    """
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=0.5):
                return True
        except OSError:
            time.sleep(poll_interval)

    return False
