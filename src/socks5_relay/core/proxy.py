"""Main entry point for the SOCKS5 relay server.

This module exposes the pieces the command line needs and hides the
``socketserver`` plumbing behind them.

Example:
    from socks5_relay.core.proxy import ServerConfig, run_server

    # Serve on localhost:1080 without authentication
    run_server(ServerConfig(address="127.0.0.1", port=1080))

Attributes:
    __all__ (list): List of public components exposed by this module
"""

from .config import Credentials, ServerConfig
from .lib import SocksProxy, run_server

__all__ = ["Credentials", "ServerConfig", "SocksProxy", "run_server"]
