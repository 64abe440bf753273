"""One SOCKS5 session, from greeting to the end of the relay.

A session runs its stages strictly in order: negotiation, request parsing,
dialing and relaying. Any failure ends the session, closes both streams and is
logged; nothing propagates to the listener.
"""

import contextlib
import enum

from loguru import logger

from socks5_relay.core.config import ServerConfig
from socks5_relay.core.exceptions import (
    AuthError,
    DialError,
    ProtocolError,
    ProxyError,
    StreamError,
)
from socks5_relay.core.utils.utils import format_bytes

from .auth import AuthMethod, AuthNegotiator
from .dialer import Dialer, build_reply
from .dns_handler import DNSResolver
from .relay import relay
from .request import parse_request
from .stream import Stream


class SessionState(enum.Enum):
    NEGOTIATING = "negotiating"
    REQUESTING = "requesting"
    DIALING = "dialing"
    RELAYING = "relaying"
    CLOSED = "closed"
    FAILED = "failed"


class Session:
    """Drive one client connection through the SOCKS5 stages.

    Args:
        client: Accepted client stream
        config: Shared read-only server settings
        peer: Client address used in log lines
        dialer: Dialer override, mainly for tests
    """

    def __init__(
        self,
        client: Stream,
        config: ServerConfig,
        peer: str = "-",
        dialer: Dialer | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.peer = peer
        self.dialer = dialer or Dialer(
            connect_timeout=config.connect_timeout,
            resolver=DNSResolver() if config.dns_fallback else None,
        )
        self.destination: Stream | None = None
        self.method: AuthMethod | None = None
        self.state = SessionState.NEGOTIATING

    def _log(self, message: str) -> None:
        level = "INFO" if self.config.log_connections else "DEBUG"
        logger.log(level, message)

    def run(self) -> SessionState:
        """Serve the connection until the relay ends or a stage fails."""
        try:
            self._serve()
        except (ProtocolError, AuthError, DialError) as e:
            self.state = SessionState.FAILED
            logger.warning(f"[{self.peer}] {type(e).__name__}: {e}")
            self._send_failure(e)
        except StreamError as e:
            self.state = SessionState.FAILED
            logger.debug(f"[{self.peer}] {type(e).__name__}: {e}")
        finally:
            self.close()
        return self.state

    def _serve(self) -> None:
        self._log(f"Client:   {self.peer}")
        self.client.settimeout(self.config.negotiation_timeout)

        self.method = AuthNegotiator(self.config.credentials).negotiate(self.client)

        self.state = SessionState.REQUESTING
        request = parse_request(self.client)
        endpoint = request.address.endpoint

        self.state = SessionState.DIALING
        self.destination = self.dialer.connect(self.client, endpoint)
        self._log(f"Connect:  {self.peer} -> {endpoint}")

        self.state = SessionState.RELAYING
        self.client.settimeout(None)
        result = relay(self.client, self.destination, self.config.buffer_size)
        self.state = SessionState.CLOSED
        self._log(
            f"Closed:   {self.peer} -> {endpoint} "
            f"(sent {format_bytes(result.upstream)}, received {format_bytes(result.downstream)})"
        )

    def _send_failure(self, error: ProxyError) -> None:
        """Answer request-stage errors with a SOCKS5 failure reply."""
        if error.reply_code is None or self.state not in (SessionState.REQUESTING, SessionState.DIALING):
            return
        with contextlib.suppress(OSError):
            self.client.write(build_reply(error.reply_code))

    def close(self) -> None:
        for stream in (self.destination, self.client):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError as e:
                logger.debug(f"[{self.peer}] Error closing stream: {e}")
