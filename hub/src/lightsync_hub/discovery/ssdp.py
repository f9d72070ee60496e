"""SSDP search for Hue bridges.

Sends M-SEARCH for a few search targets on one socket and keeps every
responder whose reply mentions Hue, Philips or IpBridge.
"""
from __future__ import annotations

import asyncio
import logging
import socket

logger = logging.getLogger(__name__)

SSDP_ADDR = "239.255.255.250"
SSDP_PORT = 1900

SEARCH_TARGETS = [
    "ssdp:all",
    "urn:schemas-upnp-org:device:Basic:1",
    "upnp:rootdevice",
]

_HUE_MARKERS = ("HUE", "PHILIPS", "IPBRIDGE")


def build_msearch(search_target: str, mx: int = 3) -> bytes:
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {SSDP_ADDR}:{SSDP_PORT}\r\n"
        "MAN: \"ssdp:discover\"\r\n"
        f"ST: {search_target}\r\n"
        f"MX: {mx}\r\n"
        "\r\n"
    ).encode()


def is_hue_response(raw: str) -> bool:
    upper = raw.upper()
    return any(marker in upper for marker in _HUE_MARKERS)


class HueSSDPScanner:
    """Collect Hue bridge addresses from SSDP responses.

    Parameters
    ----------
    collect_timeout:
        Seconds to collect responses after the searches are sent.
    """

    def __init__(self, collect_timeout: float = 5.0) -> None:
        self._collect_timeout = collect_timeout

    async def scan(self) -> list[str]:
        """Return the addresses of bridges that answered, in arrival order."""
        bridges: list[str] = []
        responses = 0
        loop = asyncio.get_running_loop()

        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        except OSError:
            logger.warning("SSDP: failed to open UDP socket", exc_info=True)
            return bridges

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setblocking(False)
            sock.bind(("", 0))

            for st in SEARCH_TARGETS:
                try:
                    await loop.sock_sendto(sock, build_msearch(st), (SSDP_ADDR, SSDP_PORT))
                    logger.debug("SSDP: sent M-SEARCH for %s", st)
                except OSError as exc:
                    logger.warning("SSDP: failed to send M-SEARCH for %s: %s", st, exc)

            deadline = loop.time() + self._collect_timeout
            while (remaining := deadline - loop.time()) > 0:
                try:
                    data, addr = await asyncio.wait_for(
                        loop.sock_recvfrom(sock, 4096), timeout=min(remaining, 1.0)
                    )
                except TimeoutError:
                    continue
                except OSError as exc:
                    logger.debug("SSDP: read error: %s", exc)
                    continue
                responses += 1
                if not is_hue_response(data.decode("utf-8", errors="replace")):
                    continue
                if addr[0] not in bridges:
                    logger.info("SSDP found Hue bridge at %s", addr[0])
                    bridges.append(addr[0])
        finally:
            sock.close()

        logger.info(
            "SSDP: received %d response(s), found %d Hue bridge(s)", responses, len(bridges)
        )
        return bridges
