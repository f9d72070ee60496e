"""Tests for the colour-space helpers."""

from __future__ import annotations

import pytest

from lightsync_hub.colors import (
    MIREK_SCALE,
    WHITE_POINT_XY,
    hsb_to_rgb8,
    hsb_to_xy,
    kelvin_to_mirek,
    mirek_to_kelvin,
    rgb8_to_hsb,
)


class TestHsb:
    def test_pure_red_to_rgb8(self) -> None:
        assert hsb_to_rgb8(0.0, 1.0, 1.0) == (255, 0, 0)

    def test_hue_wraps_past_360(self) -> None:
        assert hsb_to_rgb8(480.0, 1.0, 1.0) == hsb_to_rgb8(120.0, 1.0, 1.0)

    def test_rgb8_green_to_hsb(self) -> None:
        h, s, b = rgb8_to_hsb(0, 255, 0)
        assert h == pytest.approx(120.0)
        assert s == pytest.approx(1.0)
        assert b == pytest.approx(1.0)


class TestXy:
    def test_black_is_white_point(self) -> None:
        assert hsb_to_xy(0.0, 0.0, 0.0) == WHITE_POINT_XY

    def test_pure_red_chromaticity(self) -> None:
        x, y = hsb_to_xy(0.0, 1.0, 1.0)
        assert x == pytest.approx(0.7006, abs=1e-3)
        assert y == pytest.approx(0.2993, abs=1e-3)

    def test_white_lands_near_d65(self) -> None:
        x, y = hsb_to_xy(0.0, 0.0, 1.0)
        assert x == pytest.approx(0.3227, abs=0.02)
        assert y == pytest.approx(0.3290, abs=0.02)


class TestMirek:
    def test_known_values(self) -> None:
        assert kelvin_to_mirek(4000) == 250
        assert kelvin_to_mirek(2000) == 500
        assert mirek_to_kelvin(250) == 4000

    def test_clamps_to_bounds(self) -> None:
        assert kelvin_to_mirek(1000, min_kelvin=2000) == 500
        assert kelvin_to_mirek(10000, max_kelvin=6535) == round(MIREK_SCALE / 6535)

    def test_non_positive_kelvin_rejected(self) -> None:
        with pytest.raises(ValueError):
            kelvin_to_mirek(0)

    def test_zero_mirek_falls_back_to_default(self) -> None:
        assert mirek_to_kelvin(0) == 4000
        assert mirek_to_kelvin(0, default=3000) == 3000

    def test_mirek_is_stable_after_round_trip(self) -> None:
        for kelvin in range(2000, 6536, 7):
            mirek = kelvin_to_mirek(kelvin)
            assert kelvin_to_mirek(mirek_to_kelvin(mirek)) == mirek

    def test_kelvin_round_trip_within_quantization(self) -> None:
        # One mirek step spans about K^2 / 1e6 kelvin at the warm end.
        for kelvin in range(2000, 6536, 7):
            restored = mirek_to_kelvin(kelvin_to_mirek(kelvin))
            assert abs(restored - kelvin) <= kelvin * kelvin / MIREK_SCALE
