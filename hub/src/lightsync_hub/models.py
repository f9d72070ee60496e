"""Pydantic domain models for LightSync Hub.

These models define the records shared across the hub: devices and their
state, scenes, bridge credentials, user settings, and the discovery
progress/result payloads. Every persisted record is a flat JSON document;
unknown fields are ignored and missing fields fall back to their defaults on
load, so older records keep loading after the model grows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Brand(str, Enum):
    LIFX = "lifx"
    HUE = "hue"
    ELGATO = "elgato"
    GOVEE = "govee"


class SceneTrigger(str, Enum):
    CAMERA_ON = "camera_on"
    CAMERA_OFF = "camera_off"
    NONE = ""

    @classmethod
    def for_sensor(cls, value: bool) -> SceneTrigger:
        """Map a camera-in-use transition to the trigger it fires."""
        return cls.CAMERA_ON if value else cls.CAMERA_OFF


DEFAULT_KELVIN = 4000


# ---------------------------------------------------------------------------
# Device identity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeviceID:
    """Explicit ``(brand, local_id)`` pair behind the ``brand:local_id`` string.

    Only the first ``:`` separates the brand, so local ids that contain the
    delimiter themselves (MAC addresses, IPv6 literals) survive a round trip.
    """

    brand: str
    local_id: str

    @classmethod
    def parse(cls, raw: str) -> DeviceID:
        brand, sep, local_id = raw.partition(":")
        if not sep:
            return cls(brand="", local_id=raw)
        return cls(brand=brand, local_id=local_id)

    @classmethod
    def build(cls, brand: Brand | str, local_id: str) -> str:
        return str(cls(brand=Brand(brand).value, local_id=local_id))

    def __str__(self) -> str:
        return f"{self.brand}:{self.local_id}"


# ---------------------------------------------------------------------------
# Device state
# ---------------------------------------------------------------------------

class Color(BaseModel):
    """HSB colour: hue in degrees, saturation and brightness in [0, 1]."""

    h: float = 0.0
    s: float = Field(default=0.0, ge=0.0, le=1.0)
    b: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("h")
    @classmethod
    def _wrap_hue(cls, value: float) -> float:
        return value % 360.0


class DeviceState(BaseModel):
    on: bool = False
    brightness: float = Field(default=0.0, ge=0.0, le=1.0)
    color: Color | None = None
    kelvin: int | None = None


class Device(BaseModel):
    id: str
    brand: Brand
    name: str = ""
    model: str | None = None
    last_ip: str = ""
    last_seen: datetime | None = None
    supports_color: bool = False
    supports_kelvin: bool = False
    # Zero means the range is unknown and the client should use its default.
    min_kelvin: int = 0
    max_kelvin: int = 0
    kelvin_step: int = 0
    firmware_version: str | None = None
    room: str | None = None

    @property
    def device_id(self) -> DeviceID:
        return DeviceID.parse(self.id)

    def merged_with(self, previous: Device) -> Device:
        """Return this freshly discovered record merged over *previous*.

        The user-assigned room always survives. Metadata the new discovery
        could not read keeps its previous value instead of being blanked.
        """
        update: dict[str, Any] = {"room": previous.room}
        if self.model is None:
            update["model"] = previous.model
        if self.firmware_version is None:
            update["firmware_version"] = previous.firmware_version
        if not self.min_kelvin and not self.max_kelvin:
            update["min_kelvin"] = previous.min_kelvin
            update["max_kelvin"] = previous.max_kelvin
        return self.model_copy(update=update)


# ---------------------------------------------------------------------------
# Scenes
# ---------------------------------------------------------------------------

class Scene(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = ""
    trigger: SceneTrigger = SceneTrigger.NONE
    devices: dict[str, DeviceState] = Field(default_factory=dict)
    # Editor round-trip only; activation never reads these.
    global_color: Color | None = None
    global_kelvin: int | None = None

    @field_validator("trigger", mode="before")
    @classmethod
    def _none_is_manual(cls, value: Any) -> Any:
        return SceneTrigger.NONE if value is None else value


# ---------------------------------------------------------------------------
# Credentials and settings
# ---------------------------------------------------------------------------

class Credential(BaseModel):
    """A paired bridge: network address plus the token it handed out."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    brand: Brand = Brand.HUE
    address: str
    token: str


class UserSettings(BaseModel):
    poll_interval_ms: int = 1000
    start_minimized: bool = False
    launch_at_login: bool = False


# ---------------------------------------------------------------------------
# Discovery payloads
# ---------------------------------------------------------------------------

class ScanProgress(BaseModel):
    phase: str
    message: str
    devices: list[Device] = Field(default_factory=list)


class DiscoveredBridge(BaseModel):
    address: str
    name: str = "Hue Bridge"


class DiscoveryResult(BaseModel):
    devices: list[Device] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    bridges: list[DiscoveredBridge] = Field(default_factory=list)
