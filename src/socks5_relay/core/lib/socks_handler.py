"""socketserver glue between accepted connections and sessions.

Example:
    # The handler is automatically used by the SocksProxy server class
    server = SocksProxy(config)
    server.serve_forever()
"""

import socketserver

from socks5_relay.core.utils.utils import format_endpoint

from .session import Session
from .stream import SocketStream


class SocksHandler(socketserver.BaseRequestHandler):
    """Handle incoming SOCKS5 connections."""

    def handle(self) -> None:
        """Run one session on the accepted socket."""
        peer = format_endpoint(*self.client_address[:2])
        Session(SocketStream(self.request), self.server.config, peer).run()
