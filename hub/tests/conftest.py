"""Shared test fixtures for LightSync Hub tests."""

import pathlib

import pytest

REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
HUB_ROOT = REPO_ROOT / "hub"


@pytest.fixture
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def hub_root() -> pathlib.Path:
    return HUB_ROOT
