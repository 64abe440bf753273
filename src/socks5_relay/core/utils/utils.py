"""Common utility functions."""

from typing import Final

BYTES_PER_KB: Final = 1024
SIZE_UNITS: Final = ("B", "KB", "MB", "GB", "TB")


def format_bytes(bytes_: float) -> str:
    """Format bytes into human readable format.

    Args:
        bytes_: Number of bytes to format

    Returns:
        str: Formatted string with appropriate unit, e.g. ``"1.5 KB"``
    """
    for unit in SIZE_UNITS[:-1]:
        if bytes_ < BYTES_PER_KB:
            return f"{bytes_:.1f} {unit}"
        bytes_ /= BYTES_PER_KB
    return f"{bytes_:.1f} {SIZE_UNITS[-1]}"


def format_endpoint(host: str, port: int) -> str:
    """Join host and port, bracketing IPv6 hosts."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"
