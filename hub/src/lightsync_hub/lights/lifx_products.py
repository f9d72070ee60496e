"""LIFX product capability table, keyed by the product id in StateVersion."""

from __future__ import annotations

from dataclasses import dataclass

LIFX_VENDOR_ID = 1


@dataclass(frozen=True)
class LifxProduct:
    name: str
    color: bool
    min_kelvin: int
    max_kelvin: int


_COLOR_2500_9000 = (True, 2500, 9000)
_COLOR_1500_9000 = (True, 1500, 9000)


def _p(name: str, caps: tuple[bool, int, int]) -> LifxProduct:
    return LifxProduct(name, *caps)


PRODUCTS: dict[int, LifxProduct] = {
    1: _p("LIFX Original 1000", _COLOR_2500_9000),
    3: _p("LIFX Color 650", _COLOR_2500_9000),
    10: _p("LIFX White 800 (Low Voltage)", (False, 2700, 6500)),
    11: _p("LIFX White 800 (High Voltage)", (False, 2700, 6500)),
    15: _p("LIFX Color 1000 BR30", _COLOR_2500_9000),
    18: _p("LIFX White 900 BR30 (Low Voltage)", (False, 2500, 9000)),
    19: _p("LIFX White 900 BR30 (High Voltage)", (False, 2500, 9000)),
    20: _p("LIFX Color 1000 BR30", _COLOR_2500_9000),
    22: _p("LIFX Color 1000", _COLOR_2500_9000),
    27: _p("LIFX A19", _COLOR_2500_9000),
    28: _p("LIFX BR30", _COLOR_2500_9000),
    29: _p("LIFX A19 Night Vision", _COLOR_2500_9000),
    30: _p("LIFX BR30 Night Vision", _COLOR_2500_9000),
    31: _p("LIFX Z", _COLOR_2500_9000),
    32: _p("LIFX Z", _COLOR_2500_9000),
    36: _p("LIFX Downlight", _COLOR_2500_9000),
    37: _p("LIFX Downlight", _COLOR_2500_9000),
    38: _p("LIFX Beam", _COLOR_2500_9000),
    43: _p("LIFX A19", _COLOR_2500_9000),
    44: _p("LIFX BR30", _COLOR_2500_9000),
    45: _p("LIFX A19 Night Vision", _COLOR_2500_9000),
    46: _p("LIFX BR30 Night Vision", _COLOR_2500_9000),
    49: _p("LIFX Mini Color", _COLOR_1500_9000),
    50: _p("LIFX Mini White to Warm", (False, 1500, 4000)),
    51: _p("LIFX Mini White", (False, 2700, 2700)),
    52: _p("LIFX GU10", _COLOR_1500_9000),
    55: _p("LIFX Tile", _COLOR_2500_9000),
    57: _p("LIFX Candle", _COLOR_1500_9000),
    59: _p("LIFX Mini Color", _COLOR_1500_9000),
    60: _p("LIFX Mini White to Warm", (False, 1500, 4000)),
    61: _p("LIFX Mini White", (False, 2700, 2700)),
    62: _p("LIFX A19", _COLOR_1500_9000),
    63: _p("LIFX BR30", _COLOR_1500_9000),
    64: _p("LIFX A19 Night Vision", _COLOR_1500_9000),
    65: _p("LIFX BR30 Night Vision", _COLOR_1500_9000),
    66: _p("LIFX Mini White", (False, 2700, 2700)),
    68: _p("LIFX Candle", _COLOR_1500_9000),
    81: _p("LIFX Candle White to Warm", (False, 2200, 6500)),
    82: _p("LIFX Filament Clear", (False, 2100, 2100)),
    85: _p("LIFX Filament Amber", (False, 2000, 2000)),
    87: _p("LIFX Mini White", (False, 2700, 2700)),
    88: _p("LIFX Mini White", (False, 2700, 2700)),
    90: _p("LIFX Clean", _COLOR_1500_9000),
    91: _p("LIFX Color", _COLOR_1500_9000),
    92: _p("LIFX Color", _COLOR_1500_9000),
    94: _p("LIFX BR30", _COLOR_1500_9000),
    96: _p("LIFX Candle White to Warm", (False, 2200, 6500)),
    97: _p("LIFX A19", _COLOR_1500_9000),
    98: _p("LIFX BR30", _COLOR_1500_9000),
    99: _p("LIFX Clean", _COLOR_1500_9000),
    100: _p("LIFX Filament Clear", (False, 2100, 2100)),
    101: _p("LIFX Filament Amber", (False, 2000, 2000)),
}


def lookup(vendor: int, product: int) -> LifxProduct | None:
    if vendor != LIFX_VENDOR_ID:
        return None
    return PRODUCTS.get(product)
