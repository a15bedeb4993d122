"""Heightmap stage: fractal noise elevation field."""

import numpy as np
import structlog

from ..config import HeightmapConfig
from ..noise import SimplexNoise, fbm, smoothstep
from ..rng import SeededRNG
from ..types import FloatGrid

logger = structlog.get_logger()


def edge_fade(width: int, height: int, falloff: float) -> FloatGrid:
    """Weight that is 1 in the interior and drops to 0 at the borders.

    Args:
        width: Grid width.
        height: Grid height.
        falloff: Fraction of each dimension over which the fade happens.

    Returns:
        Fade weights in [0, 1], shape (height, width).
    """
    if falloff <= 0:
        return np.ones((height, width), dtype=np.float64)

    xs = np.arange(width, dtype=np.float64)
    ys = np.arange(height, dtype=np.float64)
    edge_x = np.minimum(xs, width - 1 - xs) / max(width * falloff, 1.0)
    edge_y = np.minimum(ys, height - 1 - ys) / max(height * falloff, 1.0)
    nearest = np.minimum(edge_y[:, None], edge_x[None, :])
    return smoothstep(0.0, 1.0, nearest)


def normalize(field: FloatGrid) -> FloatGrid:
    """Min-max normalize to [0, 1]. A constant field becomes all zeros."""
    lo = float(field.min())
    hi = float(field.max())
    if hi - lo <= 1e-12:
        return np.zeros_like(field, dtype=np.float64)
    return (field - lo) / (hi - lo)


def generate_heightmap(
    width: int,
    height: int,
    rng: SeededRNG,
    config: HeightmapConfig,
) -> FloatGrid:
    """Generate a normalized elevation grid from layered simplex noise.

    Args:
        width: Grid width in cells.
        height: Grid height in cells.
        rng: Random source; consumed only to build the noise permutation.
        config: Octaves, persistence, lacunarity, scale and edge falloff.

    Returns:
        Elevation in [0, 1], shape (height, width).
    """
    noise = SimplexNoise(rng)
    ys, xs = np.meshgrid(
        np.arange(height, dtype=np.float64) * config.scale,
        np.arange(width, dtype=np.float64) * config.scale,
        indexing="ij",
    )
    elevation = fbm(
        noise,
        xs,
        ys,
        octaves=config.octaves,
        persistence=config.persistence,
        lacunarity=config.lacunarity,
    )

    # Push the borders toward ocean
    fade = edge_fade(width, height, config.edge_falloff)
    elevation = elevation * fade - (1.0 - fade) * 0.5

    elevation = normalize(elevation)
    logger.debug(
        "heightmap_generated",
        width=width,
        height=height,
        mean=round(float(elevation.mean()), 4),
    )
    return elevation
