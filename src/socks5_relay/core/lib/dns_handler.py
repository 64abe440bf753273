"""Fallback DNS resolution using dnspython.

The dialer lets the system resolver handle hostnames first. When that fails,
``DNSResolver`` queries public nameservers directly, one at a time.
"""

from typing import Final

import dns.exception
import dns.resolver
from loguru import logger

from socks5_relay.core.exceptions import DNSResolutionError

# DNS resolver constants
DEFAULT_TIMEOUT: Final = 1.0  # seconds
DEFAULT_LIFETIME: Final = 3.0  # seconds
DEFAULT_NAMESERVERS: Final = (
    "1.1.1.1",  # Cloudflare
    "8.8.8.8",  # Google
    "9.9.9.9",  # Quad9
)


class DNSResolver:
    """A-record resolver bound to a fixed list of nameservers."""

    def __init__(self, nameservers: tuple[str, ...] = DEFAULT_NAMESERVERS) -> None:
        self.nameservers = nameservers

    def _make_resolver(self, nameservers: list[str]) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver(configure=False)
        resolver.timeout = DEFAULT_TIMEOUT
        resolver.lifetime = DEFAULT_LIFETIME
        resolver.nameservers = nameservers
        return resolver

    def _query(self, domain: str, nameservers: list[str]) -> str | None:
        try:
            answer = self._make_resolver(nameservers).resolve(domain, "A")
        except dns.exception.DNSException as e:
            logger.debug(f"Nameservers {nameservers} failed for {domain}: {e}")
            return None
        return str(answer[0])

    def resolve(self, domain: str) -> str:
        """Resolve domain name to IP address.

        Args:
            domain: Domain name to resolve

        Returns:
            str: Resolved IPv4 address

        Raises:
            DNSResolutionError: If no nameserver answers
        """
        if ip := self._query(domain, list(self.nameservers)):
            return ip

        for nameserver in self.nameservers:
            if ip := self._query(domain, [nameserver]):
                return ip

        raise DNSResolutionError(domain, "no nameserver could resolve it")
