"""Multi-phase discovery scanner.

Phases run cheapest first and every one reports progress:

1. ``elgato``: mDNS browse for Elgato lights.
2. ``elgato``: only when mDNS found nothing, probe the local /24 on port 9123.
3. ``hue``: SSDP and the cloud lookup concurrently; subnet probe if both are empty.
4. ``lights``: the device manager's parallel per-brand discovery, streamed
   per controller, followed by ``done``.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable

from lightsync_hub.discovery.hue_cloud import lookup_bridges
from lightsync_hub.discovery.mdns_browser import MDNSBrowser
from lightsync_hub.discovery.ssdp import HueSSDPScanner
from lightsync_hub.discovery.subnet import (
    SubnetProber,
    expand_hosts,
    is_elgato_light,
    is_hue_bridge,
    resolve_subnet,
)
from lightsync_hub.errors import DiscoveryFailedError
from lightsync_hub.lights.elgato import ElgatoController
from lightsync_hub.lights.manager import DeviceManager
from lightsync_hub.models import DiscoveredBridge, DiscoveryResult, Device, ScanProgress

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanProgress], Awaitable[None] | None]


class DiscoveryScanner:
    """Orchestrates discovery across every protocol and feeds the device manager.

    Parameters
    ----------
    manager:
        Device manager whose controllers run the final phase.
    elgato:
        Elgato controller that receives addresses found in phases 1 and 2.
    mdns_browser:
        Optional MDNSBrowser instance. Created with defaults if not provided.
    ssdp_scanner:
        Optional HueSSDPScanner instance. Created with defaults if not provided.
    elgato_prober / bridge_prober:
        Optional SubnetProber instances for the fallback probes.
    subnet:
        CIDR to probe, or "auto" for the outbound interface's /24.
    cloud_timeout:
        Per-request timeout in seconds for the Hue cloud lookup.
    """

    def __init__(
        self,
        manager: DeviceManager,
        elgato: ElgatoController,
        mdns_browser: MDNSBrowser | None = None,
        ssdp_scanner: HueSSDPScanner | None = None,
        elgato_prober: SubnetProber | None = None,
        bridge_prober: SubnetProber | None = None,
        subnet: str = "auto",
        cloud_timeout: float = 5.0,
    ) -> None:
        self._manager = manager
        self._elgato = elgato
        self._mdns_browser = mdns_browser or MDNSBrowser()
        self._ssdp_scanner = ssdp_scanner or HueSSDPScanner()
        self._elgato_prober = elgato_prober or SubnetProber(max_concurrent=50, timeout_per_host=0.8)
        self._bridge_prober = bridge_prober or SubnetProber(max_concurrent=80, timeout_per_host=1.0)
        self._subnet = subnet
        self._cloud_timeout = cloud_timeout
        self._progress_lock = asyncio.Lock()

    def _subnet_hosts(self) -> list[str]:
        network = resolve_subnet(self._subnet)
        if network is None:
            logger.info("Could not determine local subnet for probe scan")
            return []
        return expand_hosts(network)

    # ------------------------------------------------------------------
    # Phases 1-2: Elgato
    # ------------------------------------------------------------------

    async def _discover_elgato(self, progress: Callable[..., Awaitable[None]]) -> int:
        addresses = await self._mdns_browser.browse()
        for address in addresses:
            self._elgato.add_device(address)
        logger.info("mDNS found %d Elgato device(s)", len(addresses))
        if addresses:
            return len(addresses)

        await progress("elgato", "Scanning subnet for Elgato lights...")
        found = await self._elgato_prober.probe(self._subnet_hosts(), is_elgato_light)
        for address in found:
            logger.info("Found Elgato light at %s via probe", address)
            self._elgato.add_device(address)
        return len(found)

    # ------------------------------------------------------------------
    # Phase 3: Hue bridges
    # ------------------------------------------------------------------

    async def discover_hue_bridges(self) -> list[DiscoveredBridge]:
        """Find Hue bridges on the LAN, deduplicated by address."""
        ssdp_result, cloud_result = await asyncio.gather(
            self._ssdp_scanner.scan(),
            lookup_bridges(timeout=self._cloud_timeout),
            return_exceptions=True,
        )

        bridges: dict[str, DiscoveredBridge] = {}
        if isinstance(ssdp_result, BaseException):
            logger.warning("SSDP bridge search failed: %s", ssdp_result)
        else:
            for address in ssdp_result:
                bridges.setdefault(address, DiscoveredBridge(address=address))
        if isinstance(cloud_result, BaseException):
            logger.warning("Cloud bridge lookup failed: %s", cloud_result)
        else:
            for bridge in cloud_result:
                bridges.setdefault(bridge.address, bridge)

        if not bridges:
            logger.info("SSDP and cloud found nothing, falling back to subnet probe")
            for address in await self._bridge_prober.probe(self._subnet_hosts(), is_hue_bridge):
                bridges.setdefault(address, DiscoveredBridge(address=address))

        return list(bridges.values())

    # ------------------------------------------------------------------
    # Full scan
    # ------------------------------------------------------------------

    async def scan_all(
        self,
        timeout: float,
        on_progress: ProgressCallback | None = None,
    ) -> DiscoveryResult:
        """Run every phase and return the merged result.

        Progress notifications are delivered one at a time, in phase order.
        """

        async def progress(phase: str, message: str, devices: list[Device] | None = None) -> None:
            logger.info("[%s] %s", phase, message)
            if on_progress is None:
                return
            async with self._progress_lock:
                outcome = on_progress(ScanProgress(phase=phase, message=message, devices=devices or []))
                if inspect.isawaitable(outcome):
                    await outcome

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        result = DiscoveryResult()

        await progress("elgato", "Searching for Elgato lights...")
        await self._discover_elgato(progress)

        await progress("hue", "Searching for Hue bridges...")
        result.bridges = await self.discover_hue_bridges()
        if result.bridges:
            await progress(
                "hue", f"Found {len(result.bridges)} Hue bridge(s), querying lights..."
            )

        await progress("lights", "Querying all bridges and devices for lights...")
        total = 0

        async def on_devices(devices: list[Device]) -> None:
            nonlocal total
            total += len(devices)
            await progress("lights", f"Found {total} light(s)...", devices)

        remaining = deadline - loop.time()
        if remaining <= 0:
            logger.warning("Scan deadline reached before the lights phase")
            result.errors = ["lights: scan deadline reached"]
        else:
            try:
                found = await self._manager.discover_all(remaining, on_devices)
            except DiscoveryFailedError as exc:
                result.errors = exc.errors
            else:
                result.devices = found.devices
                result.errors = found.errors

        await progress("done", f"Scan complete, found {len(result.devices)} light(s)")
        return result
