"""mDNS browser for Elgato lights.

Uses the zeroconf library to browse ``_elg._tcp.local.`` for a short window
and collect the IPv4 address behind every advertised light.
"""
from __future__ import annotations

import asyncio
import logging

from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

logger = logging.getLogger(__name__)

ELGATO_SERVICE_TYPE = "_elg._tcp.local."


def ipv4_from_info(info) -> str | None:
    """First IPv4 address of a resolved ServiceInfo, or None."""
    for address in info.parsed_addresses():
        if ":" not in address:
            return address
    return None


class MDNSBrowser:
    """Browse the local network for one or more mDNS service types.

    Parameters
    ----------
    browse_timeout:
        Seconds to collect browse results.
    service_types:
        Service types to browse. Defaults to the Elgato light service.
    """

    def __init__(
        self,
        browse_timeout: float = 3.0,
        service_types: list[str] | None = None,
    ) -> None:
        self._browse_timeout = browse_timeout
        self._service_types = service_types or [ELGATO_SERVICE_TYPE]

    async def browse(self) -> list[str]:
        """Browse for the configured services and return the IPv4 addresses found."""
        found: dict[str, str] = {}

        try:
            aiozc = AsyncZeroconf(ip_version=IPVersion.V4Only)

            async def on_service_state_change(
                zeroconf: Zeroconf,
                service_type: str,
                name: str,
                state_change: ServiceStateChange,
            ) -> None:
                if state_change != ServiceStateChange.Added:
                    return
                info = AsyncServiceInfo(service_type, name)
                await info.async_request(zeroconf, 1500)
                ip = ipv4_from_info(info)
                if ip and ip not in found:
                    logger.debug("mDNS entry %s at %s", name, ip)
                    found[ip] = name

            browser = AsyncServiceBrowser(
                aiozc.zeroconf,
                self._service_types,
                handlers=[on_service_state_change],
            )

            await asyncio.sleep(self._browse_timeout)
            await browser.async_cancel()
            await aiozc.async_close()

        except OSError:
            logger.warning("mDNS browse failed", exc_info=True)

        logger.info("mDNS browse found %d device(s)", len(found))
        return list(found)
