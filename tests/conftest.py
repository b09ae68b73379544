import os
import queue
import socket
import subprocess
import sys
import threading
from pathlib import Path

import pytest

from labbench.client import wait_for_server
from labbench.echo_server import EchoServer, ServerSession


def _free_port() -> int:
    """Ask the OS for a port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class RunningEchoServer:
    """An in-process echo server plus the sessions it has finished."""

    def __init__(self) -> None:
        self.sessions: "queue.Queue[ServerSession]" = queue.Queue()
        self.server = EchoServer(("127.0.0.1", 0), on_session_closed=self.sessions.put)
        self.host = "127.0.0.1"
        self.port = self.server.port
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self.server.shutdown()
        self.server.server_close()
        self._thread.join(timeout=5.0)

    def next_session(self, timeout: float = 5.0) -> ServerSession:
        return self.sessions.get(timeout=timeout)


@pytest.fixture
def echo_server():
    """Echo server on an ephemeral localhost port, serving from a thread."""
    server = RunningEchoServer()
    server.start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def closed_port() -> int:
    """A localhost port that refuses connections."""
    return _free_port()


@pytest.fixture
def make_file(tmp_path):
    """Factory writing a file of random bytes and returning its path."""

    def _make(size: int, name: str = "payload.bin") -> Path:
        path = tmp_path / name
        path.write_bytes(os.urandom(size))
        return path

    return _make


@pytest.fixture(scope="session")
def echo_server_process():
    """
    Start `python -m labbench echo-server` in a subprocess.

    Yields (host, port) to run tests against.
    """
    host = os.environ.get("ECHO_HOST", "127.0.0.1")
    port = int(os.environ.get("ECHO_PORT", str(_free_port())))

    cmd = [sys.executable, "-m", "labbench", "echo-server", "--host", host, "--port", str(port)]

    proc = subprocess.Popen(
        cmd,
        cwd=os.getcwd(),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=os.environ.copy(),
    )

    started = wait_for_server(host, port, timeout=15.0)
    if not started:
        # Capture some output for debugging
        try:
            out, err = proc.communicate(timeout=1.0)
        except subprocess.TimeoutExpired:
            proc.kill()
            out, err = b"", b""
        raise RuntimeError(
            f"Echo server failed to start (port {port} not open). "
            f"stdout:\n{out.decode(errors='ignore')}\nstderr:\n{err.decode(errors='ignore')}"
        )

    try:
        yield host, port
    finally:
        proc.terminate()
        try:
            proc.wait(timeout=5.0)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
