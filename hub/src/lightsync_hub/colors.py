"""Colour-space helpers shared by the brand controllers.

Hue bridges take CIE xy chromaticity and reciprocal "mirek" colour
temperature; Govee takes 8-bit RGB; LIFX and the UI speak HSB.
"""

from __future__ import annotations

import colorsys

# Wide-gamut RGB -> XYZ (D65), as published for Hue bulbs.
_RGB_TO_XYZ = (
    (0.664511, 0.154324, 0.162028),
    (0.283881, 0.668433, 0.047685),
    (0.000088, 0.072310, 0.986039),
)

# D65 white point, returned for pure black where x,y are undefined.
WHITE_POINT_XY = (0.3127, 0.3290)

MIREK_SCALE = 1_000_000


def hsb_to_rgb(h: float, s: float, b: float) -> tuple[float, float, float]:
    """Convert HSB (hue in degrees) to RGB channels in [0, 1]."""
    return colorsys.hsv_to_rgb((h % 360.0) / 360.0, s, b)


def hsb_to_rgb8(h: float, s: float, b: float) -> tuple[int, int, int]:
    r, g, bl = hsb_to_rgb(h, s, b)
    return round(r * 255), round(g * 255), round(bl * 255)


def rgb8_to_hsb(r: int, g: int, b: int) -> tuple[float, float, float]:
    h, s, v = colorsys.rgb_to_hsv(r / 255.0, g / 255.0, b / 255.0)
    return h * 360.0, s, v


def gamma_correct(channel: float) -> float:
    """sRGB companding -> linear light."""
    if channel > 0.04045:
        return ((channel + 0.055) / 1.055) ** 2.4
    return channel / 12.92


def hsb_to_xy(h: float, s: float, b: float) -> tuple[float, float]:
    """Convert HSB to normalised CIE xy chromaticity."""
    linear = [gamma_correct(c) for c in hsb_to_rgb(h, s, b)]
    x, y, z = (sum(k * c for k, c in zip(row, linear)) for row in _RGB_TO_XYZ)
    total = x + y + z
    if total == 0:
        return WHITE_POINT_XY
    return x / total, y / total


def kelvin_to_mirek(kelvin: int, min_kelvin: int | None = None, max_kelvin: int | None = None) -> int:
    """Kelvin -> mirek, rounded to the nearest integer.

    Optional bounds clamp the Kelvin value first, since bridges reject mirek
    values outside their schema.
    """
    if min_kelvin is not None:
        kelvin = max(kelvin, min_kelvin)
    if max_kelvin is not None:
        kelvin = min(kelvin, max_kelvin)
    if kelvin <= 0:
        raise ValueError(f"kelvin must be positive, got {kelvin}")
    return round(MIREK_SCALE / kelvin)


def mirek_to_kelvin(mirek: int, default: int = 4000) -> int:
    if mirek <= 0:
        return default
    return round(MIREK_SCALE / mirek)
