"""Outbound connection to the requested destination.

The dialer opens the TCP connection and, once it is up, tells the client with
a fixed success reply. The reply's bound address is a zero placeholder.

Example:
    dialer = Dialer(connect_timeout=5.0)
    destination = dialer.connect(client, "example.com:443")
"""

import errno
import ipaddress
import socket
import struct
from typing import Final

from loguru import logger

from socks5_relay.core.exceptions import (
    REP_CONNECTION_REFUSED,
    REP_GENERAL_FAILURE,
    REP_HOST_UNREACHABLE,
    REP_NETWORK_UNREACHABLE,
    DialError,
    StreamError,
)

from .address import AddressSpec, AddressType, encode_address
from .auth import SOCKS_VERSION
from .dns_handler import DNSResolver
from .stream import SocketStream, Stream, write_all

REP_SUCCESS: Final = 0x00
PLACEHOLDER_BIND: Final = AddressSpec(AddressType.IPV4, "0.0.0.0", 0)

_ERRNO_REPLIES: Final = {
    errno.ECONNREFUSED: REP_CONNECTION_REFUSED,
    errno.ENETUNREACH: REP_NETWORK_UNREACHABLE,
    errno.EHOSTUNREACH: REP_HOST_UNREACHABLE,
}


def build_reply(code: int) -> bytes:
    """Build a reply carrying ``code`` and the placeholder bound address."""
    return struct.pack("!BBB", SOCKS_VERSION, code, 0) + encode_address(PLACEHOLDER_BIND)


SUCCESS_REPLY: Final = build_reply(REP_SUCCESS)


def split_endpoint(endpoint: str) -> tuple[str, int]:
    """Split ``host:port`` (IPv6 hosts bracketed) into its parts."""
    host, sep, port = endpoint.rpartition(":")
    if not sep or not port.isdigit():
        raise DialError(endpoint, "malformed endpoint")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


class Dialer:
    """Open destination connections for sessions.

    Args:
        connect_timeout: Deadline for establishing the TCP connection
        resolver: Fallback resolver for names the system cannot resolve
    """

    def __init__(self, connect_timeout: float | None = None, resolver: DNSResolver | None = None) -> None:
        self.connect_timeout = connect_timeout
        self.resolver = resolver

    def _open(self, address: tuple[str, int], endpoint: str) -> socket.socket:
        try:
            return socket.create_connection(address, timeout=self.connect_timeout)
        except socket.gaierror as exc:
            raise DialError(endpoint, str(exc), REP_HOST_UNREACHABLE) from exc
        except TimeoutError as exc:
            raise DialError(endpoint, "timed out", REP_HOST_UNREACHABLE) from exc
        except OSError as exc:
            code = _ERRNO_REPLIES.get(exc.errno, REP_GENERAL_FAILURE)
            raise DialError(endpoint, exc.strerror or str(exc), code) from exc
        except ValueError as exc:
            # IDNA encoding rejects empty or over-long labels
            raise DialError(endpoint, "invalid hostname", REP_HOST_UNREACHABLE) from exc

    def dial(self, endpoint: str) -> Stream:
        """Open a TCP connection to ``endpoint``.

        Raises:
            DialError: If the destination is unreachable, refuses, or
                cannot be resolved
        """
        host, port = split_endpoint(endpoint)
        try:
            sock = self._open((host, port), endpoint)
        except DialError as exc:
            if self.resolver is None or _is_ip(host) or not isinstance(exc.__cause__, socket.gaierror):
                raise
            logger.debug(f"System resolver failed for {host}, trying fallback nameservers")
            sock = self._open((self.resolver.resolve(host), port), endpoint)
        sock.settimeout(None)
        return SocketStream(sock)

    def connect(self, client: Stream, endpoint: str) -> Stream:
        """Dial ``endpoint`` and send the success reply to ``client``.

        The destination is closed again if the reply cannot be written.
        """
        destination = self.dial(endpoint)
        try:
            write_all(client, SUCCESS_REPLY, "connect reply")
        except StreamError:
            destination.close()
            raise
        return destination
