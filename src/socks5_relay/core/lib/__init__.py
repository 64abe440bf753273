"""Core relay library components."""

from .address import AddressSpec, AddressType, decode_address, encode_address
from .auth import AuthMethod, AuthNegotiator
from .dialer import Dialer
from .proxy_server import SocksProxy, run_server
from .relay import RelayResult, relay
from .request import Command, ConnectRequest, parse_request
from .session import Session, SessionState
from .socks_handler import SocksHandler
from .stream import SocketStream, Stream

__all__ = [
    "AddressSpec",
    "AddressType",
    "AuthMethod",
    "AuthNegotiator",
    "Command",
    "ConnectRequest",
    "decode_address",
    "Dialer",
    "encode_address",
    "parse_request",
    "relay",
    "RelayResult",
    "run_server",
    "Session",
    "SessionState",
    "SocketStream",
    "SocksHandler",
    "SocksProxy",
    "Stream",
]
