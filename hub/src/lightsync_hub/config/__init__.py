"""Configuration loader for LightSync Hub.

Loads settings from a YAML file with built-in defaults. Supports environment
variable overrides using the LIGHTSYNC_ prefix with double-underscore
nesting (e.g., LIGHTSYNC_DISCOVERY__SCAN_TIMEOUT=45).
"""

from __future__ import annotations

import os
import pathlib
from typing import Any

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Config sub-models
# ---------------------------------------------------------------------------

class HubConfig(BaseModel):
    name: str = "LightSync Hub"
    data_dir: str = "./data"


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8787


class DiscoveryConfig(BaseModel):
    scan_timeout: float = 30.0
    mdns_timeout: float = 3.0
    elgato_probe_concurrency: int = 50
    elgato_probe_timeout: float = 0.8
    bridge_probe_concurrency: int = 80
    bridge_probe_timeout: float = 1.0
    ssdp_timeout: float = 5.0
    cloud_timeout: float = 5.0
    subnet: str = "auto"


class LightsConfig(BaseModel):
    command_timeout: float = 5.0
    lifx_discovery_timeout: float = 5.0
    govee_settle_seconds: float = 3.0
    govee_scan_interval: float = 30.0
    reconnect_attempts: int = 1
    elgato_min_brightness: int = 3
    hue_startup_timeout: float = 10.0


class ScenesConfig(BaseModel):
    activation_timeout: float = 10.0


class MonitorConfig(BaseModel):
    enabled: bool = True
    min_interval_ms: int = 500
    fallback_interval_ms: int = 1000


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseModel):
    hub: HubConfig = Field(default_factory=HubConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    lights: LightsConfig = Field(default_factory=LightsConfig)
    scenes: ScenesConfig = Field(default_factory=ScenesConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)


# ---------------------------------------------------------------------------
# Deep merge helper
# ---------------------------------------------------------------------------

def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *override* into *base*, returning a new dict."""
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "LIGHTSYNC_"


def _coerce(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _collect_env_overrides() -> dict[str, Any]:
    """Collect LIGHTSYNC_* env vars and build a nested dict.

    Double-underscore separates nesting levels.
    Example: LIGHTSYNC_API__PORT=9000
    becomes  {"api": {"port": 9000}}
    """
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        parts = key[len(_ENV_PREFIX):].lower().split("__")
        current = overrides
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = _coerce(value)
    return overrides


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_BUILTIN_DEFAULTS_PATH = pathlib.Path(__file__).resolve().parents[3] / "config" / "defaults.yaml"


def load_settings(
    config_path: pathlib.Path | None = None,
) -> Settings:
    """Load settings with layered precedence: defaults < file < env vars.

    Parameters
    ----------
    config_path:
        Path to a YAML config file. If ``None`` the bundled defaults file is
        used; a missing file simply leaves the model defaults in place.
    """
    base: dict[str, Any] = {}

    path = config_path if config_path is not None else _BUILTIN_DEFAULTS_PATH
    if path.exists():
        with open(path) as fh:
            file_data = yaml.safe_load(fh)
        if isinstance(file_data, dict):
            base = _deep_merge(base, file_data)

    env_overrides = _collect_env_overrides()
    if env_overrides:
        base = _deep_merge(base, env_overrides)

    return Settings(**base)
