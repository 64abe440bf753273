"""SOCKS5 address encoding and decoding.

A destination is sent as an address-type byte (ATYP) followed by the address
and a big-endian 16-bit port::

    +------+----------+----------+
    | ATYP | DST.ADDR | DST.PORT |
    +------+----------+----------+
    |  1   | Variable |    2     |
    +------+----------+----------+

ATYP 0x01 carries 4 IPv4 bytes, 0x03 a length byte plus that many hostname
bytes, and 0x04 16 IPv6 bytes.

Example:
    spec = decode_address(atyp, stream)
    spec.endpoint  # "example.com:443"
"""

import enum
import ipaddress
import struct
from dataclasses import dataclass

from socks5_relay.core.exceptions import InvalidAddressTypeError

from .stream import Stream, read_exact

MAX_DOMAIN_LENGTH = 255


class AddressType(enum.IntEnum):
    IPV4 = 0x01
    DOMAIN = 0x03
    IPV6 = 0x04


@dataclass(frozen=True)
class AddressSpec:
    """Destination address decoded from a request.

    Attributes:
        type: Address encoding used on the wire
        host: Dotted-quad, hostname or compressed IPv6 text
        port: Destination port
    """

    type: AddressType
    host: str
    port: int

    @property
    def endpoint(self) -> str:
        """``host:port`` with IPv6 hosts in brackets."""
        if self.type is AddressType.IPV6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @classmethod
    def from_host(cls, host: str, port: int) -> "AddressSpec":
        """Build a spec, choosing the address type from the host text."""
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            return cls(AddressType.DOMAIN, host, port)
        if ip.version == 4:
            return cls(AddressType.IPV4, str(ip), port)
        return cls(AddressType.IPV6, ip.compressed, port)


def read_port(stream: Stream) -> int:
    """Read a big-endian 16-bit port."""
    (port,) = struct.unpack("!H", read_exact(stream, 2, "port"))
    return port


def decode_address(address_type: int, stream: Stream) -> AddressSpec:
    """Decode the address and port following an ATYP byte.

    Args:
        address_type: ATYP byte already read from the request header
        stream: Stream positioned at DST.ADDR

    Returns:
        AddressSpec: The decoded destination

    Raises:
        InvalidAddressTypeError: If ATYP is not 0x01, 0x03 or 0x04
        ShortReadError: If the stream ends inside the address or port
    """
    if address_type == AddressType.IPV4:
        host = str(ipaddress.IPv4Address(read_exact(stream, 4, "IPv4 address")))
    elif address_type == AddressType.DOMAIN:
        (length,) = read_exact(stream, 1, "hostname length")
        # Names are not validated here; a bad one fails at dial time
        host = read_exact(stream, length, "hostname").decode("latin-1")
    elif address_type == AddressType.IPV6:
        host = ipaddress.IPv6Address(read_exact(stream, 16, "IPv6 address")).compressed
    else:
        raise InvalidAddressTypeError(address_type)
    return AddressSpec(AddressType(address_type), host, read_port(stream))


def encode_address(spec: AddressSpec) -> bytes:
    """Encode ``spec`` as ATYP, address and port."""
    if spec.type is AddressType.IPV4:
        body = ipaddress.IPv4Address(spec.host).packed
    elif spec.type is AddressType.IPV6:
        body = ipaddress.IPv6Address(spec.host).packed
    else:
        name = spec.host.encode("latin-1")
        if len(name) > MAX_DOMAIN_LENGTH:
            raise ValueError(f"hostname longer than {MAX_DOMAIN_LENGTH} bytes")
        body = struct.pack("!B", len(name)) + name
    return struct.pack("!B", spec.type) + body + struct.pack("!H", spec.port)
