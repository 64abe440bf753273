"""SOCKS5 method negotiation and username/password authentication.

Greeting and method selection (RFC 1928)::

    +----+----------+----------+        +----+--------+
    |VER | NMETHODS | METHODS  |        |VER | METHOD |
    +----+----------+----------+        +----+--------+
    | 1  |    1     | 1 to 255 |        | 1  |   1    |
    +----+----------+----------+        +----+--------+

Username/password sub-negotiation (RFC 1929)::

    +----+------+----------+------+----------+        +----+--------+
    |VER | ULEN |  UNAME   | PLEN |  PASSWD  |        |VER | STATUS |
    +----+------+----------+------+----------+        +----+--------+
    | 1  |  1   | 1 to 255 |  1   | 1 to 255 |        | 1  |   1    |
    +----+------+----------+------+----------+        +----+--------+

The selected method depends only on the server's credentials, never on the
methods the client offered.
"""

import enum
import struct
from dataclasses import dataclass
from typing import Final

from socks5_relay.core.config import Credentials
from socks5_relay.core.exceptions import (
    BadAuthVersionError,
    BadVersionError,
    InvalidCredentialsError,
)

from .stream import Stream, read_exact, write_all

SOCKS_VERSION: Final = 5
AUTH_VERSION: Final = 1
AUTH_SUCCESS: Final = 0x00


class AuthMethod(enum.IntEnum):
    NO_AUTH = 0x00
    USER_PASS = 0x02


class AuthState(enum.Enum):
    AWAIT_GREETING = "await_greeting"
    AWAIT_CREDENTIALS = "await_credentials"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Greeting:
    version: int
    methods: bytes


class AuthNegotiator:
    """Run the negotiation phase for one client connection."""

    def __init__(self, credentials: Credentials) -> None:
        self.credentials = credentials
        self.state = AuthState.AWAIT_GREETING
        self.method: AuthMethod | None = None

    def read_greeting(self, stream: Stream) -> Greeting:
        version, nmethods = struct.unpack("!BB", read_exact(stream, 2, "greeting header"))
        if version != SOCKS_VERSION:
            raise BadVersionError(version)
        methods = read_exact(stream, nmethods, "methods")
        return Greeting(version, methods)

    def negotiate(self, stream: Stream) -> AuthMethod:
        """Consume the greeting and authenticate the client.

        Args:
            stream: Client stream positioned at the greeting

        Returns:
            AuthMethod: The method that was selected

        Raises:
            BadVersionError: If the greeting is not SOCKS5
            BadAuthVersionError: If the sub-negotiation version is not 1
            InvalidCredentialsError: If the credentials do not match
            StreamError: On short reads or socket failures
        """
        self.read_greeting(stream)

        if not self.credentials.auth_required:
            write_all(stream, struct.pack("!BB", SOCKS_VERSION, AuthMethod.NO_AUTH), "method selection")
            return self._authenticated(AuthMethod.NO_AUTH)

        write_all(stream, struct.pack("!BB", SOCKS_VERSION, AuthMethod.USER_PASS), "method selection")
        self.state = AuthState.AWAIT_CREDENTIALS
        username, password = self.read_credentials(stream)
        if not self.credentials.matches(username, password):
            raise InvalidCredentialsError
        write_all(stream, struct.pack("!BB", AUTH_VERSION, AUTH_SUCCESS), "auth status")
        return self._authenticated(AuthMethod.USER_PASS)

    def read_credentials(self, stream: Stream) -> tuple[bytes, bytes]:
        version, ulen = struct.unpack("!BB", read_exact(stream, 2, "auth header"))
        if version != AUTH_VERSION:
            raise BadAuthVersionError(version)
        username = read_exact(stream, ulen, "username")
        (plen,) = read_exact(stream, 1, "password length")
        password = read_exact(stream, plen, "password")
        return username, password

    def _authenticated(self, method: AuthMethod) -> AuthMethod:
        self.method = method
        self.state = AuthState.AUTHENTICATED
        return method
