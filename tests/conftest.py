import contextlib
import errno
import io
import socket
import threading

import pytest

from socks5_relay.core.config import ServerConfig
from socks5_relay.core.lib.proxy_server import SocksProxy

TIMEOUT = 5.0


class BytesStream:
    """In-memory stream: reads from a fixed buffer and records writes."""

    def __init__(self, data: bytes = b"", chunk: int | None = None) -> None:
        self._input = io.BytesIO(data)
        self.chunk = chunk
        self.written = bytearray()
        self.closed = False
        self.close_calls = 0
        self.timeout = None

    def read(self, size: int) -> bytes:
        if self.closed:
            raise OSError(errno.EBADF, "stream closed")
        if self.chunk:
            size = min(size, self.chunk)
        return self._input.read(size)

    def write(self, data: bytes) -> None:
        if self.closed:
            raise OSError(errno.EBADF, "stream closed")
        self.written += data

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True

    def settimeout(self, timeout) -> None:
        self.timeout = timeout

    def remaining(self) -> bytes:
        return self._input.read()


class EchoServer:
    """Threaded TCP echo server on an ephemeral loopback port.

    With ``close_after_first`` set, each connection is closed after the first
    chunk is echoed.
    """

    def __init__(self, close_after_first: bool = False) -> None:
        self.sock = socket.create_server(("127.0.0.1", 0))
        self.port = self.sock.getsockname()[1]
        self.close_after_first = close_after_first
        self.accepted = 0
        self.peer_closed = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        while True:
            try:
                conn, _ = self.sock.accept()
            except OSError:
                return
            self.accepted += 1
            threading.Thread(target=self._echo, args=(conn,), daemon=True).start()

    def _echo(self, conn: socket.socket) -> None:
        with conn:
            try:
                while data := conn.recv(4096):
                    conn.sendall(data)
                    if self.close_after_first:
                        return
            except OSError:
                pass
            self.peer_closed.set()

    def close(self) -> None:
        with contextlib.suppress(OSError):
            self.sock.shutdown(socket.SHUT_RDWR)
        self.sock.close()


def closed_port() -> int:
    """Return a loopback port with nothing listening on it."""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def recv_exact(sock: socket.socket, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


@pytest.fixture
def echo_server():
    server = EchoServer()
    yield server
    server.close()


@pytest.fixture
def closing_server():
    server = EchoServer(close_after_first=True)
    yield server
    server.close()


@pytest.fixture
def socket_pair():
    """Connected pair: (server side, client side), both with timeouts."""
    server_side, client_side = socket.socketpair()
    server_side.settimeout(TIMEOUT)
    client_side.settimeout(TIMEOUT)
    yield server_side, client_side
    for sock in (server_side, client_side):
        with contextlib.suppress(OSError):
            sock.close()


@pytest.fixture
def start_proxy():
    """Factory that runs a SocksProxy in a background thread."""
    servers = []

    def start(config: ServerConfig | None = None) -> SocksProxy:
        config = config or ServerConfig(address="127.0.0.1", port=0, dns_fallback=False)
        server = SocksProxy(config)
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.shutdown()
        server.server_close()


@pytest.fixture
def connect_client():
    """Factory for client sockets to a proxy, closed at teardown."""
    clients = []

    def connect(server: SocksProxy) -> socket.socket:
        client = socket.create_connection(("127.0.0.1", server.port), timeout=TIMEOUT)
        clients.append(client)
        return client

    yield connect
    for client in clients:
        with contextlib.suppress(OSError):
            client.close()
