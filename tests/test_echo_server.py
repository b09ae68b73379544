import socket
import struct
import threading

import pytest

from labbench.client import TransferClient
from labbench.errors import ConnectivityError


@pytest.mark.parametrize("size", [0, 1, 65536, 65537, 3 * 1024 * 1024 + 17])
def test_server_observes_every_byte(echo_server, make_file, size):
    """A transfer of S bytes is seen as exactly S bytes by the server."""
    path = make_file(size)
    client = TransferClient(echo_server.host, echo_server.port, timeout=10.0)

    result = client.transfer(path)
    session = echo_server.next_session()

    assert result.bytes_sent == size
    assert session.bytes_received == size
    assert result.bytes_returned == 0
    assert result.duration_ns > 0


def test_concurrent_sessions_are_isolated(echo_server, tmp_path):
    sizes = [0, 10, 1000, 70_000, 250_000, 1_000_003, 2_000_000, 5]
    paths = []
    for i, size in enumerate(sizes):
        path = tmp_path / f"file{i}.bin"
        path.write_bytes(bytes([i]) * size)
        paths.append(path)

    errors = []

    def send(path):
        try:
            TransferClient(echo_server.host, echo_server.port, timeout=10.0).transfer(path)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=send, args=(p,)) for p in paths]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    received = sorted(echo_server.next_session().bytes_received for _ in sizes)
    assert received == sorted(sizes)


def test_reset_connection_does_not_stop_server(echo_server, make_file):
    """A client that aborts mid-stream leaves the listener serving others."""
    conn = socket.create_connection((echo_server.host, echo_server.port))
    conn.sendall(b"x" * 1234)
    # Close with RST instead of FIN
    conn.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
    conn.close()

    path = make_file(4321)
    result = TransferClient(echo_server.host, echo_server.port, timeout=10.0).transfer(path)
    assert result.bytes_sent == 4321

    # The aborted session may or may not have finished cleanly; find ours
    seen = []
    while 4321 not in seen:
        seen.append(echo_server.next_session().bytes_received)
    assert 4321 in seen


def test_failed_connection_does_not_block_later_trials(echo_server, closed_port, make_file):
    path = make_file(2048)

    with pytest.raises(ConnectivityError):
        TransferClient("127.0.0.1", closed_port, timeout=2.0).transfer(path)

    for _ in range(3):
        result = TransferClient(echo_server.host, echo_server.port, timeout=10.0).transfer(path)
        assert result.bytes_sent == 2048
        assert echo_server.next_session().bytes_received == 2048


def test_server_closes_after_half_close(echo_server):
    """The server's close is the completion signal: recv returns EOF."""
    with socket.create_connection((echo_server.host, echo_server.port), timeout=5.0) as conn:
        conn.sendall(b"hello")
        conn.shutdown(socket.SHUT_WR)
        assert conn.recv(1024) == b""

    assert echo_server.next_session().bytes_received == 5


def test_subprocess_echo_server(echo_server_process, make_file):
    host, port = echo_server_process
    path = make_file(512 * 1024)

    results = [TransferClient(host, port, timeout=10.0).transfer(path) for _ in range(3)]

    assert [r.bytes_sent for r in results] == [512 * 1024] * 3
