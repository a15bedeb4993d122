"""Core types shared across generation stages."""

import numpy as np
from numpy.typing import NDArray

# A grid cell as (x, y). Grids themselves are indexed [y, x].
Cell = tuple[int, int]

FloatGrid = NDArray[np.float64]
BoolGrid = NDArray[np.bool_]


def freeze(array: NDArray) -> NDArray:
    """Mark an array read-only in place and return it."""
    array.flags.writeable = False
    return array

