"""Local interface lookup: which LAN are we on?

Reads the host's interface table on every call (nothing is cached, so a
DHCP renewal or a newly plugged cable is picked up by the next request).
"""

from __future__ import annotations

import ipaddress
import logging
import socket

import psutil

logger = logging.getLogger("camera-relay")

LOOPBACK_ADDRESS = "127.0.0.1"


def _is_loopback(address: str) -> bool:
    try:
        return ipaddress.IPv4Address(address).is_loopback
    except ValueError:
        return False


def _first_lan_address() -> str | None:
    """First non-loopback IPv4 address in interface enumeration order."""
    for name, addrs in psutil.net_if_addrs().items():
        for addr in addrs:
            if addr.family == socket.AF_INET and not _is_loopback(addr.address):
                logger.debug("Using interface %s (%s)", name, addr.address)
                return addr.address
    return None


def subnet_prefix(address: str) -> str:
    """Truncate an IPv4 address after its third octet: ``"192.168.1."``."""
    return address[: address.rfind(".") + 1]


def locate_local_address() -> str:
    """Return this machine's LAN IPv4 address, or ``127.0.0.1`` if offline."""
    return _first_lan_address() or LOOPBACK_ADDRESS


def locate_subnet() -> str | None:
    """Return the local /24 prefix (e.g. ``"192.168.1."``), or None."""
    address = _first_lan_address()
    if address is None:
        return None
    return subnet_prefix(address)
