"""RTSP camera discovery via port scanning.

Finds IP cameras on the local network by trying a TCP connect to the RTSP
port on every host of the local /24. Any host that accepts the connection
counts as a camera; nothing is sent over the socket.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .network import locate_subnet

if TYPE_CHECKING:
    from .config import CameraRelayConfig

logger = logging.getLogger("camera-relay")

RTSP_PORT = 554
SCAN_TIMEOUT_SECONDS = 0.5
HOST_RANGE = range(1, 255)  # .1 to .254, skips network and broadcast

NO_SUBNET_ERROR = "Unable to get subnet"


@dataclass
class ScanResult:
    """Results from one subnet sweep.

    ``hosts`` is in probe-completion order, which varies between runs.
    ``subnet`` is None when no LAN interface was found and nothing was probed.
    """

    subnet: str | None = None
    hosts: list[str] = field(default_factory=list)
    scanned_hosts: int = 0
    scan_time_seconds: float = 0.0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "subnet": self.subnet,
            "cameras": list(self.hosts),
            "scanned_hosts": self.scanned_hosts,
            "scan_time_seconds": round(self.scan_time_seconds, 3),
            "errors": list(self.errors),
        }


async def probe_port(host: str, port: int, timeout: float) -> bool:
    """Check if a TCP port is open on a host."""
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout=timeout
        )
    except (asyncio.TimeoutError, OSError):
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass  # Socket error while closing; the connect itself succeeded
    return True


async def scan_subnet(
    prefix: str | None,
    port: int = RTSP_PORT,
    timeout: float = SCAN_TIMEOUT_SECONDS,
) -> ScanResult:
    """Probe ``prefix + 1`` through ``prefix + 254`` on ``port`` all at once.

    Args:
        prefix: Subnet prefix such as ``"192.168.1."``. None means no
            subnet could be determined; the scan is skipped.
        port: TCP port to probe.
        timeout: Connect timeout per host in seconds.

    Returns:
        ScanResult with the hosts that accepted a connection.
    """
    result = ScanResult(subnet=prefix)
    if prefix is None:
        logger.error("Unable to get subnet!")
        result.errors.append(NO_SUBNET_ERROR)
        return result

    start = time.monotonic()
    hosts = [f"{prefix}{i}" for i in HOST_RANGE]
    result.scanned_hosts = len(hosts)

    logger.info("Scanning subnet: %s* (port %s)", prefix, port)

    async def check_host(host: str) -> None:
        if await probe_port(host, port, timeout):
            result.hosts.append(host)
            logger.info("Found camera at: %s", host)

    await asyncio.gather(*(check_host(host) for host in hosts))

    result.scan_time_seconds = time.monotonic() - start
    logger.info(
        "Scan complete. Found %d device(s) in %.1fs",
        len(result.hosts),
        result.scan_time_seconds,
    )
    return result


async def discover(config: CameraRelayConfig | None = None) -> ScanResult:
    """Locate the local subnet and scan it with the configured port/timeout."""
    if config is None:
        return await scan_subnet(locate_subnet())
    return await scan_subnet(
        locate_subnet(),
        port=config.scan.port,
        timeout=config.scan.timeout_seconds,
    )
