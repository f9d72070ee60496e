"""LIFX LAN protocol packet codec.

Every LIFX message is a 36-byte little-endian header (frame, frame address,
protocol header) followed by a type-specific payload. Only the messages the
hub needs are modelled here.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

LIFX_PORT = 56700
PROTOCOL_NUMBER = 1024
HEADER_SIZE = 36

_HEADER = struct.Struct("<HHIQ6sBBQHH")

_ADDRESSABLE = 1 << 12
_TAGGED = 1 << 13
_RES_REQUIRED = 0x01
_ACK_REQUIRED = 0x02


class MessageType:
    """Namespace for LIFX message type numbers."""

    GET_SERVICE = 2
    STATE_SERVICE = 3
    GET_HOST_FIRMWARE = 14
    STATE_HOST_FIRMWARE = 15
    GET_LABEL = 23
    STATE_LABEL = 25
    GET_VERSION = 32
    STATE_VERSION = 33
    ACKNOWLEDGEMENT = 45
    LIGHT_GET = 101
    LIGHT_SET_COLOR = 102
    LIGHT_STATE = 107
    LIGHT_GET_POWER = 116
    LIGHT_SET_POWER = 117
    LIGHT_STATE_POWER = 118


SERVICE_UDP = 1
POWER_ON = 0xFFFF
POWER_OFF = 0


@dataclass(frozen=True)
class Header:
    size: int
    tagged: bool
    source: int
    target: int
    res_required: bool
    ack_required: bool
    sequence: int
    msg_type: int

    @property
    def target_hex(self) -> str:
        """First six bytes of the target as lowercase hex (the device MAC)."""
        return self.target.to_bytes(8, "little")[:6].hex()


@dataclass(frozen=True)
class Packet:
    header: Header
    payload: bytes


@dataclass(frozen=True)
class HSBK:
    hue: int
    saturation: int
    brightness: int
    kelvin: int


@dataclass(frozen=True)
class LightStatePayload:
    color: HSBK
    power: int
    label: str


def target_from_hex(mac_hex: str) -> int:
    raw = bytes.fromhex(mac_hex)
    return int.from_bytes(raw.ljust(8, b"\x00"), "little")


def encode(
    msg_type: int,
    payload: bytes = b"",
    *,
    source: int,
    sequence: int,
    target: int = 0,
    res_required: bool = False,
    ack_required: bool = False,
) -> bytes:
    """Build a complete packet. A zero target broadcasts (tagged frame)."""
    tagged = target == 0
    flags = PROTOCOL_NUMBER | _ADDRESSABLE | (_TAGGED if tagged else 0)
    ack_res = (_RES_REQUIRED if res_required else 0) | (_ACK_REQUIRED if ack_required else 0)
    header = _HEADER.pack(
        HEADER_SIZE + len(payload),
        flags,
        source,
        target,
        b"\x00" * 6,
        ack_res,
        sequence & 0xFF,
        0,
        msg_type,
        0,
    )
    return header + payload


def decode(data: bytes) -> Packet:
    """Parse a datagram. Raises ``ValueError`` for anything that is not LIFX."""
    if len(data) < HEADER_SIZE:
        raise ValueError(f"packet too short: {len(data)} bytes")
    (size, flags, source, target, _reserved, ack_res, sequence,
     _reserved2, msg_type, _reserved3) = _HEADER.unpack_from(data)
    if flags & 0x0FFF != PROTOCOL_NUMBER:
        raise ValueError(f"unexpected protocol number {flags & 0x0FFF}")
    if size != len(data):
        raise ValueError(f"size field {size} does not match datagram length {len(data)}")
    header = Header(
        size=size,
        tagged=bool(flags & _TAGGED),
        source=source,
        target=target,
        res_required=bool(ack_res & _RES_REQUIRED),
        ack_required=bool(ack_res & _ACK_REQUIRED),
        sequence=sequence,
        msg_type=msg_type,
    )
    return Packet(header=header, payload=data[HEADER_SIZE:])


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def set_color_payload(color: HSBK, duration_ms: int) -> bytes:
    return struct.pack(
        "<BHHHHI", 0, color.hue, color.saturation, color.brightness, color.kelvin, duration_ms
    )


def set_power_payload(level: int, duration_ms: int) -> bytes:
    return struct.pack("<HI", level, duration_ms)


# ---------------------------------------------------------------------------
# Payload parsers
# ---------------------------------------------------------------------------

def _label(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def parse_state_service(payload: bytes) -> tuple[int, int]:
    service, port = struct.unpack_from("<BI", payload)
    return service, port


def parse_state_label(payload: bytes) -> str:
    return _label(payload[:32])


def parse_state_version(payload: bytes) -> tuple[int, int]:
    vendor, product, _ = struct.unpack_from("<III", payload)
    return vendor, product


def parse_state_host_firmware(payload: bytes) -> tuple[int, int]:
    _build, _reserved, minor, major = struct.unpack_from("<QQHH", payload)
    return major, minor


def parse_light_state(payload: bytes) -> LightStatePayload:
    hue, saturation, brightness, kelvin, _reserved, power = struct.unpack_from("<HHHHhH", payload)
    label = _label(payload[12:44])
    return LightStatePayload(
        color=HSBK(hue=hue, saturation=saturation, brightness=brightness, kelvin=kelvin),
        power=power,
        label=label,
    )


def parse_state_power(payload: bytes) -> int:
    (level,) = struct.unpack_from("<H", payload)
    return level
