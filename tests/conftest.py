"""Shared test fixtures for world generation tests."""

import numpy as np
import pytest

from worldgen.config import GenerationConfig
from worldgen.rng import SeededRNG
from worldgen.terrain.generator import World, generate_world


@pytest.fixture
def rng() -> SeededRNG:
    """Random source with a fixed seed."""
    return SeededRNG(42)


@pytest.fixture
def slope_elevation() -> np.ndarray:
    """32x32 land tilted down toward the west edge, all above sea level."""
    xs = np.arange(32, dtype=np.float64)
    row = 0.45 + 0.5 * xs / 31.0
    return np.tile(row, (32, 1))


@pytest.fixture(scope="session")
def golden_world() -> World:
    """The 64x64 world for seed 12345 with default configuration."""
    return generate_world(12345, 64, 64, GenerationConfig())
