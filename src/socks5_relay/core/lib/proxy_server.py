"""Threaded SOCKS5 listener.

This module implements the accept loop on top of ``socketserver``:
- One daemon thread per accepted connection
- Address reuse so restarts do not wait for TIME_WAIT
- IPv6 listen addresses
- Errors from a single connection are logged and never stop the loop

Example:
    # Serve on all interfaces, port 1080
    run_server(ServerConfig(port=1080))
"""

import contextlib
import socket
import socketserver

from loguru import logger

from socks5_relay.core.config import ServerConfig

from .socks_handler import SocksHandler


class SocksProxy(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """SOCKS proxy server implementation."""

    allow_reuse_address = True
    daemon_threads = True
    request_queue_size = 100

    def __init__(self, config: ServerConfig, handler=SocksHandler, bind_and_activate: bool = True) -> None:
        self.config = config
        if ":" in config.address:
            self.address_family = socket.AF_INET6
        super().__init__((config.address, config.port), handler, bind_and_activate)

    @property
    def port(self) -> int:
        """Port actually bound, useful when configured with port 0."""
        return self.server_address[1]

    def handle_error(self, request, client_address) -> None:
        """Log unexpected handler errors instead of printing to stderr."""
        logger.opt(exception=True).error(f"Unhandled error serving {client_address}")


def run_server(config: ServerConfig) -> None:
    """Bind the listener and serve until interrupted.

    Args:
        config: Server settings

    Raises:
        OSError: If the listen address cannot be bound
    """
    server = SocksProxy(config)
    try:
        logger.info(f"Socks server listening {config.listen_endpoint}")
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server stopping")
    finally:
        with contextlib.suppress(OSError):
            server.server_close()
        logger.info("Server closed")
