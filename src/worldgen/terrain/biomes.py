"""Biome classification from elevation, temperature and precipitation.

The threshold table below is the classification contract. Rules are applied
in order: ocean depths, high-altitude overrides, lowland wetlands and
coasts, then a temperature x precipitation matrix. Any change to the table
must bump BIOME_TABLE_VERSION.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from ..types import FloatGrid

BIOME_TABLE_VERSION = 1

# Elevation thresholds (normalized elevation in [0, 1])
SEA_LEVEL = 0.40
DEEP_OCEAN_LEVEL = 0.20
COAST_LEVEL = 0.42
SWAMP_LEVEL = 0.44
MOUNTAIN_LEVEL = 0.78
SNOW_LEVEL = 0.90
SNOWLINE_TEMPERATURE = -5.0
SWAMP_PRECIPITATION = 150.0
SWAMP_TEMPERATURE = 5.0


class Biome(str, Enum):
    """Closed set of biome categories."""

    DEEP_OCEAN = "deep_ocean"
    OCEAN = "ocean"
    COAST = "coast"
    SWAMP = "swamp"
    ICE_CAP = "ice_cap"
    TUNDRA = "tundra"
    TAIGA = "taiga"
    GRASSLAND = "grassland"
    SAVANNA = "savanna"
    DESERT = "desert"
    FOREST = "forest"
    DENSE_FOREST = "dense_forest"
    RAINFOREST = "rainforest"
    MOUNTAIN = "mountain"
    SNOW = "snow"


# Grid storage codes follow declaration order
BIOME_CODES: dict[Biome, int] = {biome: code for code, biome in enumerate(Biome)}
_CODE_TO_BIOME: tuple[Biome, ...] = tuple(Biome)

# Upper bounds (exclusive) of each band; the last band is open-ended
TEMPERATURE_EDGES = (-15.0, 0.0, 10.0, 20.0, 26.0)
PRECIPITATION_EDGES = (25.0, 60.0, 120.0, 200.0)

_B = Biome
# Rows: frozen, cold, cool, temperate, warm, hot
# Columns: arid, dry, moderate, wet, very wet
CLIMATE_MATRIX: tuple[tuple[Biome, ...], ...] = (
    (_B.ICE_CAP, _B.ICE_CAP, _B.TUNDRA, _B.TUNDRA, _B.TUNDRA),
    (_B.TUNDRA, _B.TUNDRA, _B.TAIGA, _B.TAIGA, _B.TAIGA),
    (_B.GRASSLAND, _B.GRASSLAND, _B.FOREST, _B.FOREST, _B.DENSE_FOREST),
    (_B.DESERT, _B.GRASSLAND, _B.FOREST, _B.DENSE_FOREST, _B.DENSE_FOREST),
    (_B.DESERT, _B.SAVANNA, _B.GRASSLAND, _B.FOREST, _B.RAINFOREST),
    (_B.DESERT, _B.SAVANNA, _B.SAVANNA, _B.RAINFOREST, _B.RAINFOREST),
)

_MATRIX_CODES = np.array(
    [[BIOME_CODES[b] for b in row] for row in CLIMATE_MATRIX], dtype=np.uint8
)


@dataclass(frozen=True)
class BiomeProperties:
    """Static traits of a biome used by later stages."""

    habitability: float
    carrying_capacity: float
    forested: bool
    water: bool = False


BIOME_PROPERTIES: dict[Biome, BiomeProperties] = {
    Biome.DEEP_OCEAN: BiomeProperties(0.0, 40.0, False, water=True),
    Biome.OCEAN: BiomeProperties(0.0, 80.0, False, water=True),
    Biome.COAST: BiomeProperties(0.8, 90.0, False),
    Biome.SWAMP: BiomeProperties(0.3, 70.0, False),
    Biome.ICE_CAP: BiomeProperties(0.05, 5.0, False),
    Biome.TUNDRA: BiomeProperties(0.2, 20.0, False),
    Biome.TAIGA: BiomeProperties(0.4, 50.0, True),
    Biome.GRASSLAND: BiomeProperties(1.0, 120.0, False),
    Biome.SAVANNA: BiomeProperties(0.6, 90.0, False),
    Biome.DESERT: BiomeProperties(0.15, 10.0, False),
    Biome.FOREST: BiomeProperties(0.8, 100.0, True),
    Biome.DENSE_FOREST: BiomeProperties(0.5, 110.0, True),
    Biome.RAINFOREST: BiomeProperties(0.4, 130.0, True),
    Biome.MOUNTAIN: BiomeProperties(0.2, 15.0, False),
    Biome.SNOW: BiomeProperties(0.02, 2.0, False),
}


def biome_code(biome: Biome) -> int:
    """Grid storage code for a biome."""
    return BIOME_CODES[biome]


def biome_from_code(code: int) -> Biome:
    """Biome for a grid storage code."""
    return _CODE_TO_BIOME[int(code)]


def _band(value: float, edges: tuple[float, ...]) -> int:
    for index, edge in enumerate(edges):
        if value < edge:
            return index
    return len(edges)


def classify(elevation: float, temperature: float, precipitation: float) -> Biome:
    """Classify one cell. Pure: identical inputs always give the same biome.

    Args:
        elevation: Normalized elevation in [0, 1].
        temperature: Temperature in degrees C.
        precipitation: Precipitation in cm/year.

    Returns:
        The biome category.
    """
    if elevation < DEEP_OCEAN_LEVEL:
        return Biome.DEEP_OCEAN
    if elevation < SEA_LEVEL:
        return Biome.OCEAN
    if elevation >= SNOW_LEVEL or (
        elevation >= MOUNTAIN_LEVEL and temperature < SNOWLINE_TEMPERATURE
    ):
        return Biome.SNOW
    if elevation >= MOUNTAIN_LEVEL:
        return Biome.MOUNTAIN
    if (
        elevation < SWAMP_LEVEL
        and precipitation >= SWAMP_PRECIPITATION
        and temperature > SWAMP_TEMPERATURE
    ):
        return Biome.SWAMP
    if elevation < COAST_LEVEL:
        return Biome.COAST

    row = _band(temperature, TEMPERATURE_EDGES)
    col = _band(precipitation, PRECIPITATION_EDGES)
    return CLIMATE_MATRIX[row][col]


def classify_grid(
    elevation: FloatGrid,
    temperature: FloatGrid,
    precipitation: FloatGrid,
) -> NDArray[np.uint8]:
    """Vectorized ``classify`` over whole grids.

    Returns:
        Biome codes (see BIOME_CODES), same shape as the inputs.
    """
    rows = np.searchsorted(TEMPERATURE_EDGES, temperature, side="right")
    cols = np.searchsorted(PRECIPITATION_EDGES, precipitation, side="right")
    matrix = _MATRIX_CODES[rows, cols]

    high = elevation >= MOUNTAIN_LEVEL
    conditions = [
        elevation < DEEP_OCEAN_LEVEL,
        elevation < SEA_LEVEL,
        (elevation >= SNOW_LEVEL) | (high & (temperature < SNOWLINE_TEMPERATURE)),
        high,
        (elevation < SWAMP_LEVEL)
        & (precipitation >= SWAMP_PRECIPITATION)
        & (temperature > SWAMP_TEMPERATURE),
        elevation < COAST_LEVEL,
    ]
    choices = [
        BIOME_CODES[Biome.DEEP_OCEAN],
        BIOME_CODES[Biome.OCEAN],
        BIOME_CODES[Biome.SNOW],
        BIOME_CODES[Biome.MOUNTAIN],
        BIOME_CODES[Biome.SWAMP],
        BIOME_CODES[Biome.COAST],
    ]
    # Select in int64; numpy 2 refuses to cast int choices into a uint8 default
    codes = np.select(conditions, choices, default=matrix.astype(np.int64))
    return codes.astype(np.uint8)


def biome_property_grid(biomes: NDArray[np.uint8], attribute: str) -> FloatGrid:
    """Look up a BiomeProperties attribute for every cell."""
    table = np.array(
        [float(getattr(BIOME_PROPERTIES[b], attribute)) for b in _CODE_TO_BIOME]
    )
    return table[biomes]
