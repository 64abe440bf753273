"""Immutable server configuration.

The configuration is built once at startup from the command-line options and
handed to every session. Nothing in the protocol engine reads global state.

Example:
    config = ServerConfig(port=1080, credentials=Credentials("user", "secret"))
    server = SocksProxy(config)
"""

import hmac
from dataclasses import dataclass, field
from typing import Final

DEFAULT_PORT: Final = 1080
NEGOTIATION_TIMEOUT: Final = 5.0  # Seconds
CONNECT_TIMEOUT: Final = 5.0  # Seconds
RELAY_BUFFER_SIZE: Final = 32 * 1024  # Bytes


@dataclass(frozen=True)
class Credentials:
    """Static username/password pair.

    Attributes:
        username: Username expected from clients
        password: Password expected from clients
    """

    username: str = ""
    password: str = ""

    @property
    def auth_required(self) -> bool:
        """Authentication is enforced only when both values are set."""
        return bool(self.username and self.password)

    def matches(self, username: bytes, password: bytes) -> bool:
        """Compare raw credentials from the wire against the configured pair."""
        # Both fields are always compared
        user_ok = hmac.compare_digest(username, self.username.encode())
        pass_ok = hmac.compare_digest(password, self.password.encode())
        return user_ok and pass_ok


@dataclass(frozen=True)
class ServerConfig:
    """Settings shared read-only by every session.

    Attributes:
        address: Listen address, empty for all interfaces
        port: Listen port
        credentials: Credentials clients must present
        negotiation_timeout: Deadline for greeting, auth and request parsing
        connect_timeout: Deadline for opening the destination connection
        buffer_size: Relay copy window in bytes
        dns_fallback: Retry failed lookups through public nameservers
        log_connections: Log one line per client, connect and close at INFO
    """

    address: str = ""
    port: int = DEFAULT_PORT
    credentials: Credentials = field(default_factory=Credentials)
    negotiation_timeout: float | None = NEGOTIATION_TIMEOUT
    connect_timeout: float | None = CONNECT_TIMEOUT
    buffer_size: int = RELAY_BUFFER_SIZE
    dns_fallback: bool = True
    log_connections: bool = False

    @property
    def listen_endpoint(self) -> str:
        """Listen address in ``host:port`` form, ``*`` for all interfaces."""
        return f"{self.address or '*'}:{self.port}"
