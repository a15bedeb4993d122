"""Climate stage: temperature, precipitation and moisture fields.

A pure function of elevation, latitude and water proximity. Temperature
falls with latitude and altitude and is moderated near water. Precipitation
rises near water and at the equator, and drops in the rain shadow behind
high ground relative to the prevailing wind.
"""

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from ..config import ClimateConfig, WindDirection
from ..types import BoolGrid, FloatGrid
from .biomes import SEA_LEVEL

logger = structlog.get_logger()

# Maps row indices and grid height to latitude in [0, 1] (0 = equator).
LatitudeFn = Callable[[NDArray[np.float64], int], NDArray[np.float64]]

# Step that points from a cell toward the side the wind comes from
_UPWIND_STEP = {
    WindDirection.WEST: (-1, 0),
    WindDirection.EAST: (1, 0),
    WindDirection.NORTH: (0, -1),
    WindDirection.SOUTH: (0, 1),
}


@dataclass(frozen=True)
class ClimateField:
    """Per-cell climate values."""

    temperature: FloatGrid
    precipitation: FloatGrid
    moisture: FloatGrid
    water_distance: FloatGrid


def equator_distance(rows: NDArray[np.float64], height: int) -> NDArray[np.float64]:
    """Latitude with the equator across the middle row and poles at the edges."""
    return np.clip(np.abs((rows + 0.5) / height - 0.5) * 2.0, 0.0, 1.0)


def compute_water_distance(water: BoolGrid) -> FloatGrid:
    """Euclidean distance from each cell to the nearest water cell.

    With no water anywhere, every cell gets width + height.
    """
    height, width = water.shape
    if not water.any():
        return np.full((height, width), float(width + height))
    return ndimage.distance_transform_edt(~water).astype(np.float64)


def shift_upwind(field: FloatGrid, wind: WindDirection, distance: int) -> FloatGrid:
    """Value of the cell ``distance`` steps upwind, or -inf past the edge."""
    height, width = field.shape
    step_x, step_y = _UPWIND_STEP[wind]
    dx, dy = step_x * distance, step_y * distance
    out = np.full((height, width), -np.inf)
    if abs(dx) >= width or abs(dy) >= height:
        return out
    dst_y = slice(max(0, -dy), height - max(0, dy))
    dst_x = slice(max(0, -dx), width - max(0, dx))
    src_y = slice(max(0, dy), height - max(0, -dy))
    src_x = slice(max(0, dx), width - max(0, -dx))
    out[dst_y, dst_x] = field[src_y, src_x]
    return out


def rain_shadow(elevation: FloatGrid, config: ClimateConfig) -> FloatGrid:
    """Fractional precipitation loss from upwind barriers.

    Every cell within ``shadow_distance`` upwind that is at least
    ``shadow_elevation`` and higher than the cell itself removes
    ``shadow_step``, up to ``shadow_cap``.
    """
    barriers = np.zeros(elevation.shape, dtype=np.int32)
    for d in range(1, config.shadow_distance + 1):
        upwind = shift_upwind(elevation, config.prevailing_wind, d)
        barriers += (upwind >= config.shadow_elevation) & (upwind > elevation)
    return np.minimum(config.shadow_cap, config.shadow_step * barriers)


def generate_climate(
    elevation: FloatGrid,
    latitude_fn: LatitudeFn = equator_distance,
    river_mask: BoolGrid | None = None,
    config: ClimateConfig | None = None,
) -> ClimateField:
    """Compute temperature, precipitation and moisture for every cell.

    Args:
        elevation: Elevation grid in [0, 1].
        latitude_fn: Maps row indices to latitude (0 equator, 1 pole).
        river_mask: Optional river cells counted as water.
        config: Climate parameters.

    Returns:
        ClimateField with temperature (C), precipitation (cm/year),
        moisture in [0, 1] and distance to water.
    """
    if config is None:
        config = ClimateConfig()
    height, width = elevation.shape

    rows = np.arange(height, dtype=np.float64)
    latitude = np.broadcast_to(latitude_fn(rows, height)[:, None], (height, width))

    water = elevation < SEA_LEVEL
    if river_mask is not None:
        water = water | river_mask
    water_distance = compute_water_distance(water)

    relief = np.clip((elevation - SEA_LEVEL) / (1.0 - SEA_LEVEL), 0.0, 1.0)

    # Temperature
    base = config.pole_temperature + (
        config.equator_temperature - config.pole_temperature
    ) * (1.0 - latitude)
    mean = 0.5 * (config.equator_temperature + config.pole_temperature)
    closeness = np.maximum(0.0, 1.0 - water_distance / config.moderation_distance)
    pull = np.minimum(np.abs(mean - base), closeness * config.coastal_moderation)
    temperature = base + np.sign(mean - base) * pull - config.lapse_rate * relief

    # Precipitation
    shadow = rain_shadow(elevation, config)
    ocean = config.ocean_moisture * np.exp(-water_distance / config.water_decay)
    equatorial = config.equatorial_boost * np.maximum(0.0, (1.0 - latitude) - 0.7)
    upwind = shift_upwind(elevation, config.prevailing_wind, 1)
    windward = (elevation > upwind) & (relief > 0) & (shadow < 0.3)
    orographic = np.where(windward, config.orographic_boost * relief, 0.0)

    precipitation = (config.base_precipitation + ocean + equatorial + orographic) * (
        1.0 - shadow
    )
    precipitation = np.maximum(precipitation, 0.0)
    moisture = np.clip(precipitation / config.moisture_reference, 0.0, 1.0)

    logger.debug(
        "climate_generated",
        wind=config.prevailing_wind.value,
        mean_temperature=round(float(temperature.mean()), 2),
        mean_precipitation=round(float(precipitation.mean()), 2),
        shadowed_cells=int((shadow > 0).sum()),
    )
    return ClimateField(
        temperature=temperature,
        precipitation=precipitation,
        moisture=moisture,
        water_distance=water_distance,
    )
