"""Local subnet detection and bounded-concurrency HTTP probing.

Subnet probing is the slow fallback: every host of the local /24 is asked
one cheap HTTP question, with a semaphore capping simultaneous sockets and a
sub-second timeout per host.
"""
from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

ELGATO_PORT = 9123
MIN_PREFIX = 24

HostProbe = Callable[[httpx.AsyncClient, str], Awaitable[bool]]


def resolve_subnet(subnet: str = "auto") -> ipaddress.IPv4Network | None:
    """Resolve 'auto' to the /24 of the outbound interface, or parse the given CIDR.

    A configured network wider than /24 is narrowed to the /24 at its base
    address; an unparseable one disables probing.
    """
    if subnet.lower() != "auto":
        try:
            network = ipaddress.IPv4Network(subnet, strict=False)
        except ValueError:
            logger.warning("Ignoring invalid subnet %r", subnet)
            return None
        if network.prefixlen < MIN_PREFIX:
            narrowed = ipaddress.IPv4Network(
                (network.network_address, MIN_PREFIX), strict=False
            )
            logger.warning("Subnet %s is too wide to probe, using %s", network, narrowed)
            return narrowed
        return network
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("8.8.8.8", 80))
            local_ip = s.getsockname()[0]
        finally:
            s.close()
    except OSError:
        logger.warning("Subnet auto-detection failed")
        return None
    network = ipaddress.IPv4Network(f"{local_ip}/24", strict=False)
    logger.info("Auto-detected subnet: %s (from local IP %s)", network, local_ip)
    return network


def expand_hosts(network: ipaddress.IPv4Network) -> list[str]:
    return [str(host) for host in network.hosts()]


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------

async def is_elgato_light(client: httpx.AsyncClient, ip: str) -> bool:
    try:
        resp = await client.get(f"http://{ip}:{ELGATO_PORT}/elgato/accessory-info")
    except httpx.HTTPError:
        return False
    return resp.status_code == 200


async def is_hue_bridge(client: httpx.AsyncClient, ip: str) -> bool:
    for url in (f"http://{ip}/api/config", f"https://{ip}/api/0/config"):
        try:
            resp = await client.get(url)
            config = resp.json()
        except (httpx.HTTPError, ValueError):
            continue
        if isinstance(config, dict) and config.get("bridgeid"):
            return True
    return False


# ---------------------------------------------------------------------------
# Prober
# ---------------------------------------------------------------------------

class SubnetProber:
    """Run a host probe across many addresses with bounded concurrency.

    Parameters
    ----------
    max_concurrent:
        Maximum simultaneous probes.
    timeout_per_host:
        Seconds each probe may take.
    transport:
        Optional httpx transport; tests pass an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        max_concurrent: int = 50,
        timeout_per_host: float = 0.8,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._max_concurrent = max_concurrent
        self._timeout = timeout_per_host
        self._transport = transport

    async def probe(self, hosts: list[str], check: HostProbe) -> list[str]:
        """Return the hosts for which *check* answered True, in input order."""
        if not hosts:
            return []
        semaphore = asyncio.Semaphore(self._max_concurrent)

        async with httpx.AsyncClient(
            timeout=self._timeout, verify=False, transport=self._transport
        ) as client:

            async def _one(ip: str) -> bool:
                async with semaphore:
                    try:
                        async with asyncio.timeout(self._timeout * 2):
                            return await check(client, ip)
                    except TimeoutError:
                        return False

            results = await asyncio.gather(*(_one(ip) for ip in hosts))

        found = [ip for ip, ok in zip(hosts, results) if ok]
        logger.info("Subnet probe: %d of %d host(s) answered", len(found), len(hosts))
        return found
