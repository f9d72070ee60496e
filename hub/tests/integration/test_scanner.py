"""Integration tests for the multi-phase discovery scanner."""

from __future__ import annotations

import asyncio

import pytest

from lightsync_hub.discovery import scanner as scanner_module
from lightsync_hub.discovery.scanner import DiscoveryScanner
from lightsync_hub.errors import ProtocolError
from lightsync_hub.lights.elgato import ElgatoController
from lightsync_hub.models import DiscoveredBridge, ScanProgress


class FakeBrowser:
    def __init__(self, addresses: list[str]) -> None:
        self.addresses = addresses

    async def browse(self) -> list[str]:
        return list(self.addresses)


class FakeSSDP:
    def __init__(
        self,
        addresses: list[str] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.addresses = addresses or []
        self.error = error
        self.delay = delay

    async def scan(self) -> list[str]:
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.addresses)


class FakeProber:
    def __init__(self, found: list[str] | None = None) -> None:
        self.found = found or []
        self.probed: list[list[str]] = []

    async def probe(self, hosts, check) -> list[str]:
        self.probed.append(list(hosts))
        return [h for h in self.found if h in hosts]


@pytest.fixture
def cloud(monkeypatch):
    """Replace the N-UPnP lookup with a canned bridge list."""
    bridges: list[DiscoveredBridge] = []

    async def fake_lookup(timeout: float = 5.0, **kwargs) -> list[DiscoveredBridge]:
        return list(bridges)

    monkeypatch.setattr(scanner_module, "lookup_bridges", fake_lookup)
    return bridges


def _scanner(manager, elgato=None, *, mdns=(), ssdp=None, elgato_probe=None, bridge_probe=None):
    return DiscoveryScanner(
        manager,
        elgato or ElgatoController(),
        mdns_browser=FakeBrowser(list(mdns)),
        ssdp_scanner=ssdp or FakeSSDP(),
        elgato_prober=elgato_probe or FakeProber(),
        bridge_prober=bridge_probe or FakeProber(),
        subnet="10.9.9.0/29",
    )


class TestElgatoPhases:
    async def test_mdns_results_skip_the_probe(self, manager, cloud) -> None:
        elgato = ElgatoController()
        prober = FakeProber(["10.9.9.3"])
        await _scanner(manager, elgato, mdns=["10.0.0.40"], elgato_probe=prober).scan_all(1.0)
        assert elgato.known_addresses() == ["10.0.0.40"]
        assert prober.probed == []
        await elgato.close()

    async def test_probe_fallback_when_mdns_is_empty(self, manager, cloud) -> None:
        elgato = ElgatoController()
        prober = FakeProber(["10.9.9.3"])
        await _scanner(manager, elgato, elgato_probe=prober).scan_all(1.0)
        assert elgato.known_addresses() == ["10.9.9.3"]
        assert len(prober.probed[0]) == 6
        await elgato.close()


class TestBridgePhase:
    async def test_ssdp_and_cloud_are_merged_by_address(self, manager, cloud) -> None:
        cloud.extend(
            [
                DiscoveredBridge(address="10.0.0.2", name="Hue Bridge (4a1b2c)"),
                DiscoveredBridge(address="10.0.0.3", name="Hue Bridge (ffffff)"),
            ]
        )
        scanner = _scanner(manager, ssdp=FakeSSDP(["10.0.0.2"]))
        bridges = await scanner.discover_hue_bridges()
        assert sorted(b.address for b in bridges) == ["10.0.0.2", "10.0.0.3"]

    async def test_ssdp_failure_is_tolerated(self, manager, cloud) -> None:
        cloud.append(DiscoveredBridge(address="10.0.0.2"))
        scanner = _scanner(manager, ssdp=FakeSSDP(error=OSError("no multicast")))
        assert [b.address for b in await scanner.discover_hue_bridges()] == ["10.0.0.2"]

    async def test_probe_fallback_when_nothing_answers(self, manager, cloud) -> None:
        prober = FakeProber(["10.9.9.5"])
        scanner = _scanner(manager, bridge_probe=prober)
        bridges = await scanner.discover_hue_bridges()
        assert [b.address for b in bridges] == ["10.9.9.5"]
        assert prober.probed

    async def test_no_probe_when_ssdp_finds_a_bridge(self, manager, cloud) -> None:
        prober = FakeProber(["10.9.9.5"])
        scanner = _scanner(manager, ssdp=FakeSSDP(["10.0.0.2"]), bridge_probe=prober)
        await scanner.discover_hue_bridges()
        assert prober.probed == []


class TestScanAll:
    async def test_progress_runs_in_phase_order(self, manager, cloud) -> None:
        cloud.append(DiscoveredBridge(address="10.0.0.2"))
        seen: list[ScanProgress] = []
        result = await _scanner(manager).scan_all(1.0, seen.append)

        phases = [p.phase for p in seen]
        assert phases[0] == "elgato"
        assert phases[-1] == "done"
        assert phases.index("hue") < phases.index("lights")
        streamed = [d.id for p in seen if p.phase == "lights" for d in p.devices]
        assert sorted(streamed) == sorted(d.id for d in result.devices)

    async def test_result_carries_devices_and_bridges(self, manager, cloud) -> None:
        cloud.append(DiscoveredBridge(address="10.0.0.2"))
        result = await _scanner(manager).scan_all(1.0)
        assert len(result.devices) == 3
        assert [b.address for b in result.bridges] == ["10.0.0.2"]
        assert result.errors == []

    async def test_total_discovery_failure_becomes_errors(self, manager, lifx, elgato, cloud) -> None:
        lifx.discover_error = ProtocolError("no socket")
        elgato.discover_error = ProtocolError("probe failed")
        seen: list[ScanProgress] = []

        async def collect(progress: ScanProgress) -> None:
            seen.append(progress)

        result = await _scanner(manager).scan_all(1.0, collect)
        assert result.devices == []
        assert len(result.errors) == 2
        assert seen[-1].phase == "done"

    async def test_slow_bridge_phase_does_not_overrun_the_deadline(self, manager, cloud) -> None:
        scanner = _scanner(manager, ssdp=FakeSSDP(delay=0.2))
        result = await scanner.scan_all(0.1)
        assert result.devices == []
        assert result.errors == ["lights: scan deadline reached"]
        assert manager.get_devices() == []
