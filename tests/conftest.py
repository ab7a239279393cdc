"""
Pytest configuration and shared fixtures for UrbanGlow tests.

Builds small synthetic archives on a 7x7 grid of 30 m pixels that mimic the
VIIRS annual composites (split at 2022) and the Open Buildings temporal slices.
"""

import pytest
import sys
from pathlib import Path

import numpy as np


# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Add project root to sys.path for urbanglow imports
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from urbanglow.config import PipelineConfig
from urbanglow.constants import ASSETS, LIGHTS_BAND, BUILDINGS_BAND, BUILDINGS_TIME_PROPERTY
from urbanglow.memory_backend import MemoryBackend, make_tile
from urbanglow.temporal import anchor_epoch_seconds


GRID = (7, 7)
PIXEL_M = 30.0


def lights_tile(year, level=None):
    values = np.full(GRID, float(level if level is not None else year - 2010))
    return make_tile(LIGHTS_BAND, values, year=year, pixel_size_m=PIXEL_M)


def buildings_tile(year, points=((3, 3),), presence=0.9):
    values = np.zeros(GRID)
    for y, x in points:
        values[y, x] = presence
    return make_tile(BUILDINGS_BAND, values, pixel_size_m=PIXEL_M,
                     **{BUILDINGS_TIME_PROPERTY: anchor_epoch_seconds(year)})


def build_archives(lights_years=range(2016, 2024), building_years=range(2016, 2024), cutover=2022):
    return {
        ASSETS["lights_v21"]: [lights_tile(y) for y in lights_years if y < cutover],
        ASSETS["lights_v22"]: [lights_tile(y) for y in lights_years if y >= cutover],
        ASSETS["buildings"]: [buildings_tile(y) for y in building_years],
    }


@pytest.fixture(scope="session")
def project_root():
    """Returns the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def config():
    """Defaults, with a radius of exactly one pixel."""
    return PipelineConfig(inflation_radius_m=PIXEL_M)


@pytest.fixture
def archives():
    return build_archives()


@pytest.fixture
def backend(archives):
    return MemoryBackend(archives, shape=GRID, pixel_size_m=PIXEL_M)


@pytest.fixture
def region():
    return {"type": "Polygon", "coordinates": [[[29.0, 41.0], [29.1, 41.0], [29.1, 41.1], [29.0, 41.1], [29.0, 41.0]]]}
