"""Utility functions and helpers."""

from socks5_relay.core.utils.log_config import LOG_DIR, configure_logging
from socks5_relay.core.utils.utils import format_bytes

__all__ = ["configure_logging", "format_bytes", "LOG_DIR"]
