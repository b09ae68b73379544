"""
Echo server: the fixed endpoint that transfer trials stream files to.

Every accepted connection is drained on its own thread until the peer
half-closes, the bytes are discarded and the connection is closed. That
close is what the transfer client waits for to mark a transfer complete.
"""

from __future__ import annotations

import logging
import socket
import socketserver
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from labbench.config import CHUNK_SIZE, DEFAULT_HOST, get_default_port

logger = logging.getLogger(__name__)


@dataclass
class ServerSession:
    """Per-connection state, owned by the thread handling it."""

    peer: str
    started_ns: int = field(default_factory=time.perf_counter_ns)
    bytes_received: int = 0

    @property
    def elapsed_s(self) -> float:
        return (time.perf_counter_ns() - self.started_ns) / 1_000_000_000


class DrainHandler(socketserver.BaseRequestHandler):
    """Reads a connection to EOF through one reused buffer."""

    server: EchoServer

    def handle(self) -> None:
        host, port = self.client_address[:2]
        session = ServerSession(peer=f"{host}:{port}")
        logger.info(f"Got connection from {session.peer}")

        view = memoryview(bytearray(self.server.chunk_size))
        conn: socket.socket = self.request
        try:
            while True:
                n = conn.recv_into(view)
                if not n:
                    break
                session.bytes_received += n
        except OSError as e:
            logger.warning(
                f"Abandoning connection from {session.peer} after "
                f"{session.bytes_received} bytes: {e}"
            )
            return

        logger.info(
            f"Finished connection from {session.peer}: "
            f"{session.bytes_received} bytes in {session.elapsed_s:.2f}s"
        )
        self.server.session_closed(session)


class EchoServer(socketserver.ThreadingTCPServer):
    """Threaded TCP listener; one daemon thread per connection.

    Args:
        address: (host, port) to bind; port 0 picks a free port. Defaults to
            all interfaces on the configured port
        on_session_closed: optional callback receiving every session that
            was drained to EOF
        chunk_size: size of the per-connection receive buffer
    """

    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int] | None = None,
        on_session_closed: Callable[[ServerSession], None] | None = None,
        chunk_size: int = CHUNK_SIZE,
    ):
        self.chunk_size = chunk_size
        self._on_session_closed = on_session_closed
        if address is None:
            address = (DEFAULT_HOST, get_default_port())
        super().__init__(address, DrainHandler)

    @property
    def port(self) -> int:
        return self.server_address[1]

    def session_closed(self, session: ServerSession) -> None:
        if self._on_session_closed:
            self._on_session_closed(session)

    def handle_error(self, request: Any, client_address: Any) -> None:
        """Log a failed session instead of printing to stderr; keep serving."""
        logger.exception(f"Unhandled error in connection from {client_address}")


def run_echo_server(host: str = DEFAULT_HOST, port: int | None = None) -> None:
    """Bind and serve until interrupted.

    Raises:
        OSError: if the port cannot be bound
    """
    if port is None:
        port = get_default_port()
    with EchoServer((host, port)) as server:
        logger.info(f"Echo server listening on {host}:{server.port}")
        try:
            server.serve_forever()
        finally:
            logger.info("Echo server stopped")
