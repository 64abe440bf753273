"""Public address discovery with a STUN Binding Request (RFC 5389).

The result is only shown in the startup banner. Failures are reported and
never affect serving.

Message header::

     0                   1                   2                   3
     0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    |0 0|     STUN Message Type     |         Message Length        |
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    |                         Magic Cookie                          |
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    |                     Transaction ID (96 bits)                  |
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+

MAPPED-ADDRESS and XOR-MAPPED-ADDRESS values::

    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    |0 0 0 0 0 0 0 0|    Family     |         (X-)Port              |
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    |               (X-)Address (32 bits or 128 bits)               |
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+

Example:
    ipv4, ipv6 = discover_public_ips()
"""

import errno
import ipaddress
import os
import socket
import struct
from typing import Final

from loguru import logger

from socks5_relay.core.exceptions import StunError

DEFAULT_STUN_SERVER: Final = "stun.cloudflare.com:3478"
STUN_TIMEOUT: Final = 3.0  # Seconds

BINDING_REQUEST: Final = 0x0001
MAGIC_COOKIE: Final = 0x2112A442
HEADER_SIZE: Final = 20
ATTR_MAPPED_ADDRESS: Final = 0x0001
ATTR_XOR_MAPPED_ADDRESS: Final = 0x0020
FAMILY_IPV4: Final = 0x01
FAMILY_IPV6: Final = 0x02

_FAMILIES: Final = {4: socket.AF_INET, 6: socket.AF_INET6}
_ADDRESS_SIZES: Final = {FAMILY_IPV4: 4, FAMILY_IPV6: 16}


def build_request(transaction_id: bytes) -> bytes:
    """Build a Binding Request with an empty attribute section."""
    return struct.pack("!HHI", BINDING_REQUEST, 0, MAGIC_COOKIE) + transaction_id


def _xor(data: bytes, key: bytes) -> bytes:
    return bytes(a ^ b for a, b in zip(data, key))


def _decode_address(attr_type: int, value: bytes, transaction_id: bytes) -> str:
    if len(value) < 8:
        raise StunError("invalid address attribute length")
    family = value[1]
    size = _ADDRESS_SIZES.get(family)
    if size is None:
        raise StunError(f"unknown address family {family}")
    raw = value[4 : 4 + size]
    if len(raw) != size:
        raise StunError("invalid address attribute length")
    if attr_type == ATTR_XOR_MAPPED_ADDRESS:
        raw = _xor(raw, struct.pack("!I", MAGIC_COOKIE) + transaction_id)
    return str(ipaddress.ip_address(raw))


def parse_response(response: bytes, transaction_id: bytes) -> str:
    """Extract the mapped address from a Binding Response.

    Args:
        response: Datagram received from the STUN server
        transaction_id: The 12-byte id sent in the request

    Returns:
        str: Public IP address in textual form

    Raises:
        StunError: If the response is malformed or carries no address
    """
    if len(response) < HEADER_SIZE:
        raise StunError("invalid response")
    _, length, cookie = struct.unpack("!HHI", response[:8])
    if cookie != MAGIC_COOKIE:
        raise StunError("invalid magic cookie in response")
    if response[8:HEADER_SIZE] != transaction_id:
        raise StunError("transaction ID mismatch in response")

    attributes = response[HEADER_SIZE : HEADER_SIZE + length]
    offset = 0
    while offset + 4 <= len(attributes):
        attr_type, attr_length = struct.unpack("!HH", attributes[offset : offset + 4])
        value = attributes[offset + 4 : offset + 4 + attr_length]
        if len(value) != attr_length:
            raise StunError("invalid attribute length")
        if attr_type in (ATTR_MAPPED_ADDRESS, ATTR_XOR_MAPPED_ADDRESS):
            return _decode_address(attr_type, value, transaction_id)
        # Attribute values are padded to a multiple of 4 bytes
        offset += 4 + (attr_length + 3) // 4 * 4
    raise StunError("public IP not found in STUN response")


def get_public_ip(version: int, server: str = DEFAULT_STUN_SERVER, timeout: float = STUN_TIMEOUT) -> str:
    """Ask a STUN server for this host's public address.

    Args:
        version: IP version to probe, 4 or 6
        server: STUN server as ``host:port``
        timeout: Deadline for the whole exchange

    Raises:
        StunError: If the probe fails for any reason
    """
    family = _FAMILIES.get(version)
    if family is None:
        raise StunError(f"invalid IP version {version}, expected 4 or 6")
    host, _, port = server.rpartition(":")
    host = host.strip("[]")

    try:
        addrinfo = socket.getaddrinfo(host, int(port), family, socket.SOCK_DGRAM)
    except socket.gaierror as e:
        raise StunError(f"the STUN server doesn't support IPv{version}") from e
    except ValueError as e:
        raise StunError(f"invalid STUN server {server!r}") from e

    transaction_id = os.urandom(12)
    try:
        sock = socket.socket(family, socket.SOCK_DGRAM)
    except OSError as e:
        raise StunError(f"no IPv{version}") from e
    with sock:
        sock.settimeout(timeout)
        try:
            sock.connect(addrinfo[0][4])
            sock.send(build_request(transaction_id))
            response = sock.recv(1024)
        except OSError as e:
            if e.errno in (errno.ENETUNREACH, errno.EHOSTUNREACH, errno.EADDRNOTAVAIL):
                raise StunError(f"no IPv{version}") from e
            raise StunError(str(e) or type(e).__name__) from e
    return parse_response(response, transaction_id)


def discover_public_ips(
    server: str = DEFAULT_STUN_SERVER, timeout: float = STUN_TIMEOUT
) -> tuple[str | None, str | None]:
    """Probe IPv4 and IPv6, returning ``None`` for a family that failed."""
    results: list[str | None] = []
    for version in (4, 6):
        try:
            results.append(get_public_ip(version, server, timeout))
        except (StunError, OSError) as e:
            logger.debug(f"STUN IPv{version} probe failed: {e}")
            results.append(None)
    return results[0], results[1]
