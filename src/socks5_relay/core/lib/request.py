"""SOCKS5 request parsing.

Request layout::

    +----+-----+-------+------+----------+----------+
    |VER | CMD |  RSV  | ATYP | DST.ADDR | DST.PORT |
    +----+-----+-------+------+----------+----------+
    | 1  |  1  | X'00' |  1   | Variable |    2     |
    +----+-----+-------+------+----------+----------+

Only CONNECT is served. UDP ASSOCIATE and BIND are rejected before any
address bytes are read.
"""

import enum
import struct
from dataclasses import dataclass

from socks5_relay.core.exceptions import BadVersionError, UnsupportedCommandError

from .address import AddressSpec, decode_address
from .auth import SOCKS_VERSION
from .stream import Stream, read_exact


class Command(enum.IntEnum):
    CONNECT = 0x01
    BIND = 0x02
    UDP_ASSOCIATE = 0x03


@dataclass(frozen=True)
class ConnectRequest:
    command: Command
    address: AddressSpec


def parse_request(stream: Stream) -> ConnectRequest:
    """Read a CONNECT request from ``stream``.

    Raises:
        BadVersionError: If the request is not SOCKS5
        UnsupportedCommandError: For any command but CONNECT
        InvalidAddressTypeError: For an unknown ATYP
        StreamError: On short reads or socket failures
    """
    version, command, _, address_type = struct.unpack("!BBBB", read_exact(stream, 4, "request header"))
    if version != SOCKS_VERSION:
        raise BadVersionError(version)
    if command != Command.CONNECT:
        raise UnsupportedCommandError(command)
    return ConnectRequest(Command.CONNECT, decode_address(address_type, stream))
