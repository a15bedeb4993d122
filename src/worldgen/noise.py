"""Continuous noise fields for terrain generation.

Provides seeded 2D simplex noise (after Gustavson), fBm layering on top of
it, and a smoothstep helper.
"""

import math

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .rng import SeededRNG

# Gradients for 2D simplex noise
GRAD2 = np.array(
    [[1, 1], [-1, 1], [1, -1], [-1, -1], [1, 0], [-1, 0], [0, 1], [0, -1]],
    dtype=np.float64,
)

# Skewing factors for 2D
F2 = 0.5 * (math.sqrt(3.0) - 1.0)
G2 = (3.0 - math.sqrt(3.0)) / 6.0


class SimplexNoise:
    """2D simplex noise seeded from a SeededRNG.

    Construction consumes exactly 255 draws from the random source to
    shuffle the permutation table. Identical sources give identical fields.
    """

    def __init__(self, rng: SeededRNG):
        p = list(range(256))
        for i in range(255, 0, -1):
            j = rng.next_int(0, i)
            p[i], p[j] = p[j], p[i]
        # Doubled so lookups never need to wrap
        self.perm = np.array(p + p, dtype=np.int64)

    def sample(self, xs: ArrayLike, ys: ArrayLike) -> NDArray[np.float64]:
        """Evaluate noise at many coordinates at once.

        Args:
            xs: X coordinates (any shape).
            ys: Y coordinates, broadcastable against xs.

        Returns:
            Noise values in [-1, 1] with the broadcast shape of the inputs.
        """
        x, y = np.broadcast_arrays(
            np.asarray(xs, dtype=np.float64), np.asarray(ys, dtype=np.float64)
        )

        # Skew input space to find the containing simplex cell
        s = (x + y) * F2
        i = np.floor(x + s)
        j = np.floor(y + s)
        t = (i + j) * G2
        x0 = x - (i - t)
        y0 = y - (j - t)

        # Lower or upper triangle
        upper = x0 > y0
        i1 = upper.astype(np.int64)
        j1 = 1 - i1

        x1 = x0 - i1 + G2
        y1 = y0 - j1 + G2
        x2 = x0 - 1.0 + 2.0 * G2
        y2 = y0 - 1.0 + 2.0 * G2

        ii = i.astype(np.int64) & 255
        jj = j.astype(np.int64) & 255
        perm = self.perm
        gi0 = perm[ii + perm[jj]] % 8
        gi1 = perm[ii + i1 + perm[jj + j1]] % 8
        gi2 = perm[ii + 1 + perm[jj + 1]] % 8

        total = (
            _corner(x0, y0, gi0)
            + _corner(x1, y1, gi1)
            + _corner(x2, y2, gi2)
        )
        return np.clip(70.0 * total, -1.0, 1.0)

    def noise2d(self, x: float, y: float) -> float:
        """Evaluate noise at a single point. Returns a value in [-1, 1]."""
        return float(self.sample(np.array([x]), np.array([y]))[0])


def _corner(
    dx: NDArray[np.float64],
    dy: NDArray[np.float64],
    gradient_index: NDArray[np.int64],
) -> NDArray[np.float64]:
    """Contribution of one simplex corner."""
    t = 0.5 - dx * dx - dy * dy
    grad = GRAD2[gradient_index]
    dot = grad[..., 0] * dx + grad[..., 1] * dy
    t2 = t * t
    return np.where(t >= 0.0, t2 * t2 * dot, 0.0)


def fbm(
    noise: SimplexNoise,
    xs: ArrayLike,
    ys: ArrayLike,
    octaves: int = 6,
    persistence: float = 0.5,
    lacunarity: float = 2.0,
) -> NDArray[np.float64]:
    """Fractal Brownian motion over simplex noise.

    Sums octaves at increasing frequency and decreasing amplitude, then
    divides by the total amplitude so the result stays in [-1, 1].

    Args:
        noise: Noise field to layer.
        xs: X sample coordinates.
        ys: Y sample coordinates.
        octaves: Number of layers.
        persistence: Amplitude multiplier between octaves.
        lacunarity: Frequency multiplier between octaves.

    Returns:
        Layered noise values.
    """
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    result = np.zeros(np.broadcast_shapes(xs.shape, ys.shape), dtype=np.float64)

    amplitude = 1.0
    frequency = 1.0
    max_amplitude = 0.0

    for _ in range(octaves):
        result += amplitude * noise.sample(xs * frequency, ys * frequency)
        max_amplitude += amplitude
        amplitude *= persistence
        frequency *= lacunarity

    if max_amplitude > 0:
        result /= max_amplitude
    return result


def smoothstep(edge0: float, edge1: float, x: ArrayLike) -> NDArray[np.float64]:
    """Smooth Hermite interpolation between 0 and 1.

    Args:
        edge0: Lower edge of transition.
        edge1: Upper edge of transition.
        x: Input values.

    Returns:
        Smoothly interpolated values in [0, 1].
    """
    t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)
