"""Byte stream capability used by the protocol engine.

The session and relay only need to read, write, close and set a deadline on a
connection. ``Stream`` describes that capability so the engine works the same
over a TCP socket or a test double, and ``SocketStream`` implements it on top
of ``socket.socket``.
"""

import contextlib
import socket
import threading
from typing import Protocol

from socks5_relay.core.exceptions import ShortReadError, StreamError


class Stream(Protocol):
    """Minimal bidirectional byte stream."""

    def read(self, size: int) -> bytes:
        """Read at most ``size`` bytes, ``b""`` at end of stream."""
        ...

    def write(self, data: bytes) -> None:
        """Write all of ``data``."""
        ...

    def close(self) -> None:
        """Close the stream, unblocking any pending read."""
        ...

    def settimeout(self, timeout: float | None) -> None:
        """Set the deadline for subsequent blocking operations."""
        ...


class SocketStream:
    """``Stream`` backed by a connected TCP socket."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self._closed = False
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"SocketStream(fd={self.sock.fileno()})"

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self, size: int) -> bytes:
        return self.sock.recv(size)

    def write(self, data: bytes) -> None:
        self.sock.sendall(data)

    def settimeout(self, timeout: float | None) -> None:
        self.sock.settimeout(timeout)

    def close(self) -> None:
        """Shut down both directions, then release the descriptor.

        ``shutdown`` wakes a ``recv`` blocked in another thread, which a bare
        ``close`` does not do on Linux.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        with contextlib.suppress(OSError):
            self.sock.shutdown(socket.SHUT_RDWR)
        self.sock.close()


def read_exact(stream: Stream, size: int, field: str) -> bytes:
    """Read exactly ``size`` bytes for ``field``.

    Args:
        stream: Stream to read from
        size: Number of bytes the field occupies
        field: Field name used in error messages

    Returns:
        bytes: The field contents

    Raises:
        ShortReadError: If the stream ends early
        StreamError: If the read fails or times out
    """
    chunks = []
    received = 0
    while received < size:
        try:
            chunk = stream.read(size - received)
        except OSError as exc:
            raise StreamError(f"reading {field}: {exc}") from exc
        if not chunk:
            raise ShortReadError(field, size, received)
        chunks.append(chunk)
        received += len(chunk)
    return b"".join(chunks)


def write_all(stream: Stream, data: bytes, field: str) -> None:
    """Write ``data`` for ``field``, wrapping OS errors in ``StreamError``."""
    try:
        stream.write(data)
    except OSError as exc:
        raise StreamError(f"writing {field}: {exc}") from exc
