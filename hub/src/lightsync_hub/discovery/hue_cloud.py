"""Hue bridge lookup through the vendor's N-UPnP cloud endpoints."""
from __future__ import annotations

import logging

import httpx

from lightsync_hub.models import DiscoveredBridge

logger = logging.getLogger(__name__)

NUPNP_URLS = [
    "https://discovery.meethue.com/",
    "https://www.meethue.com/api/nupnp",
    "http://www.meethue.com/api/nupnp",
]


def parse_nupnp(entries: object) -> list[DiscoveredBridge]:
    """Turn an N-UPnP reply into bridges, naming each by its id suffix."""
    bridges: list[DiscoveredBridge] = []
    if not isinstance(entries, list):
        return bridges
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        address = entry.get("internalipaddress")
        if not address:
            continue
        bridge_id = str(entry.get("id") or "")
        name = f"Hue Bridge ({bridge_id[-6:]})" if len(bridge_id) >= 6 else "Hue Bridge"
        bridges.append(DiscoveredBridge(address=address, name=name))
    return bridges


async def lookup_bridges(
    timeout: float = 5.0,
    urls: list[str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[DiscoveredBridge]:
    """Try each endpoint in turn; the first one that names a bridge wins.

    Rate-limited (429) and failing endpoints are skipped.
    """
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        for url in urls or NUPNP_URLS:
            try:
                resp = await client.get(url)
            except httpx.HTTPError as exc:
                logger.info("Hue N-UPnP %s error: %s", url, exc)
                continue
            if resp.status_code == 429:
                logger.info("Hue N-UPnP %s rate limited (429), trying next", url)
                continue
            if resp.status_code != 200:
                logger.info("Hue N-UPnP %s returned %d", url, resp.status_code)
                continue
            try:
                bridges = parse_nupnp(resp.json())
            except ValueError as exc:
                logger.info("Hue N-UPnP %s parse error: %s", url, exc)
                continue
            if bridges:
                for bridge in bridges:
                    logger.info("N-UPnP found Hue bridge at %s", bridge.address)
                return bridges
    return []
