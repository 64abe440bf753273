"""Local network interface listing.

When the relay listens on all interfaces, the banner shows the addresses it
can be reached on. Loopback, link-local and down interfaces are skipped.

Example:
    for interface in scan_interfaces():
        print(f"{interface.name}: {interface.ip}")
"""

import ipaddress
import socket
from dataclasses import dataclass

import psutil


@dataclass
class NetworkInterface:
    """Network interface address.

    Attributes:
        name: Interface name (e.g., 'en0', 'eth0')
        ip: IPv4 or IPv6 address assigned to the interface
        version: IP version of ``ip``
    """

    name: str
    ip: str
    version: int


def scan_interfaces() -> list[NetworkInterface]:
    """Return the usable addresses of every interface that is up."""
    stats = psutil.net_if_stats()
    interfaces = []
    for name, addrs in psutil.net_if_addrs().items():
        iface_stats = stats.get(name)
        if not iface_stats or not iface_stats.isup:
            continue

        for addr in addrs:
            if addr.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            # Strip the zone suffix psutil adds to scoped IPv6 addresses
            ip = ipaddress.ip_address(addr.address.split("%", 1)[0])
            if ip.is_loopback or ip.is_link_local:
                continue
            interfaces.append(NetworkInterface(name=name, ip=str(ip), version=ip.version))

    # IPv4 first, then by interface name
    interfaces.sort(key=lambda iface: (iface.version, iface.name))
    return interfaces
