"""Custom exceptions for the relay.

This module defines the exception hierarchy used by the SOCKS5 protocol engine.
Every error raised while serving one connection derives from ``ProxyError`` and
falls into one of these families:
- Protocol errors (bad version, unsupported command, invalid address type)
- Authentication errors (credential mismatch)
- Stream errors (short reads, resets, timeouts)
- Dial errors (destination unreachable, refused, DNS failure)

The errors are caught at the session boundary, logged, and end only the
session that raised them.

Example:
    try:
        negotiator.negotiate(stream)
    except AuthError:
        logger.warning("Authentication failed")
"""

from typing import Final

# SOCKS5 reply codes (RFC 1928, section 6)
REP_GENERAL_FAILURE: Final = 0x01
REP_NETWORK_UNREACHABLE: Final = 0x03
REP_HOST_UNREACHABLE: Final = 0x04
REP_CONNECTION_REFUSED: Final = 0x05
REP_CMD_NOT_SUPPORTED: Final = 0x07
REP_ADDR_NOT_SUPPORTED: Final = 0x08


class ProxyError(Exception):
    """Base exception for proxy errors."""

    #: SOCKS5 reply code sent to the client before closing, if any.
    reply_code: int | None = None


class ProtocolError(ProxyError):
    """Raised when the client violates the SOCKS5 wire protocol."""


class BadVersionError(ProtocolError):
    """Raised when a greeting or request does not carry version 5."""

    def __init__(self, version: int) -> None:
        super().__init__(f"invalid SOCKS version {version}, expected 5")
        self.version = version


class BadAuthVersionError(ProtocolError):
    """Raised when the username/password sub-negotiation version is not 1."""

    def __init__(self, version: int) -> None:
        super().__init__(f"invalid auth version {version}, expected 1")
        self.version = version


class UnsupportedCommandError(ProtocolError):
    """Raised for any command other than CONNECT."""

    reply_code = REP_CMD_NOT_SUPPORTED

    def __init__(self, command: int) -> None:
        super().__init__(f"unsupported command {command:#04x}")
        self.command = command


class InvalidAddressTypeError(ProtocolError):
    """Raised when the ATYP byte is not IPv4, domain or IPv6."""

    reply_code = REP_ADDR_NOT_SUPPORTED

    def __init__(self, address_type: int) -> None:
        super().__init__(f"invalid address type {address_type:#04x}")
        self.address_type = address_type


class AuthError(ProxyError):
    """Base exception for authentication failures."""


class InvalidCredentialsError(AuthError):
    """Raised when the username or password does not match."""

    def __init__(self) -> None:
        super().__init__("invalid username/password")


class StreamError(ProxyError):
    """Raised when reading from or writing to a stream fails."""


class ShortReadError(StreamError):
    """Raised when a stream ends before a fixed-length field is complete."""

    def __init__(self, field: str, expected: int, actual: int) -> None:
        super().__init__(f"reading {field}: expected {expected} bytes, got {actual}")
        self.field = field
        self.expected = expected
        self.actual = actual


class DialError(ProxyError):
    """Raised when the destination connection cannot be opened."""

    def __init__(self, endpoint: str, reason: str, reply_code: int = REP_GENERAL_FAILURE) -> None:
        super().__init__(f"dial {endpoint}: {reason}")
        self.endpoint = endpoint
        self.reply_code = reply_code


class DNSResolutionError(DialError):
    """Raised when DNS resolution fails."""

    def __init__(self, domain: str, reason: str = "could not resolve") -> None:
        super().__init__(domain, reason, REP_HOST_UNREACHABLE)
        self.domain = domain


class StunError(Exception):
    """Raised when public address discovery fails."""
