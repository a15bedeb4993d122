"""Tectonics stage: plate partition, boundary classification, uplift.

Plates are a discrete Voronoi partition of the grid. Each boundary cell is
classified by the normal component of relative plate drift, and elevation
deltas for each collision kind are layered onto a copy of the heightmap.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from ..config import TectonicsConfig
from ..rng import SeededRNG
from ..types import Cell, FloatGrid

logger = structlog.get_logger()

# 4-neighbourhood: N, E, S, W
NEIGHBORS_4 = ((0, -1), (1, 0), (0, 1), (-1, 0))


class PlateKind(str, Enum):
    """Crust type of a plate."""

    CONTINENTAL = "continental"
    OCEANIC = "oceanic"


class BoundaryKind(IntEnum):
    """Classification of a cell on a plate boundary."""

    NONE = 0
    CONVERGENT = 1
    DIVERGENT = 2
    TRANSFORM = 3


@dataclass(frozen=True)
class Plate:
    """A tectonic plate seeded at one cell."""

    plate_id: int
    center: Cell
    drift: tuple[float, float]
    kind: PlateKind


@dataclass(frozen=True)
class TectonicsResult:
    """Output of the tectonics stage."""

    plates: tuple[Plate, ...]
    plate_ids: NDArray[np.int32]
    boundary: NDArray[np.uint8]
    stress: FloatGrid
    intensity: FloatGrid
    elevation: FloatGrid

    @property
    def boundary_mask(self) -> NDArray[np.bool_]:
        return self.boundary != BoundaryKind.NONE


def seed_plates(
    width: int,
    height: int,
    rng: SeededRNG,
    plate_count: int,
    oceanic_fraction: float,
) -> list[Plate]:
    """Place plate centers on distinct cells and assign drift and kind.

    Args:
        width: Grid width.
        height: Grid height.
        rng: Random source.
        plate_count: Number of plates; must not exceed the cell count.
        oceanic_fraction: Probability of each plate being oceanic.

    Returns:
        Plates ordered by id.
    """
    cell_count = width * height
    taken: set[int] = set()
    centers: list[Cell] = []
    while len(centers) < plate_count:
        index = rng.next_int(0, cell_count - 1)
        if index in taken:
            continue
        taken.add(index)
        centers.append((index % width, index // width))

    plates = []
    for plate_id, center in enumerate(centers):
        drift = (rng.next_range(-1.0, 1.0), rng.next_range(-1.0, 1.0))
        kind = PlateKind.OCEANIC if rng.next_bool(oceanic_fraction) else PlateKind.CONTINENTAL
        plates.append(Plate(plate_id=plate_id, center=center, drift=drift, kind=kind))
    return plates


def voronoi_partition(width: int, height: int, plates: list[Plate]) -> NDArray[np.int32]:
    """Assign every cell to its nearest plate center.

    Ties go to the lowest plate id.
    """
    ys, xs = np.mgrid[0:height, 0:width]
    best = np.full((height, width), np.inf)
    plate_ids = np.zeros((height, width), dtype=np.int32)
    for plate in plates:
        cx, cy = plate.center
        dist = (xs - cx) ** 2 + (ys - cy) ** 2
        closer = dist < best
        best[closer] = dist[closer]
        plate_ids[closer] = plate.plate_id
    return plate_ids


def _convergence_table(plates: list[Plate]) -> NDArray[np.float64]:
    """Normal component of relative drift for every ordered plate pair.

    Positive values mean the two plates close on each other.
    """
    n = len(plates)
    table = np.zeros((n, n), dtype=np.float64)
    for a in plates:
        for b in plates:
            if a.plate_id == b.plate_id:
                continue
            nx = b.center[0] - a.center[0]
            ny = b.center[1] - a.center[1]
            length = np.hypot(nx, ny)
            rx = a.drift[0] - b.drift[0]
            ry = a.drift[1] - b.drift[1]
            table[a.plate_id, b.plate_id] = (rx * nx + ry * ny) / length
    return table


def classify_boundaries(
    plate_ids: NDArray[np.int32],
    plates: list[Plate],
    transform_threshold: float,
) -> tuple[NDArray[np.uint8], FloatGrid, NDArray[np.int32]]:
    """Classify boundary cells from relative plate motion.

    Args:
        plate_ids: Plate partition.
        plates: Plate descriptors.
        transform_threshold: Stress magnitude separating transform from
            convergent/divergent.

    Returns:
        Tuple of (boundary kinds, signed stress, dominant neighbour plate id).
        The dominant id is -1 away from boundaries.
    """
    height, width = plate_ids.shape
    table = _convergence_table(plates)

    stress = np.zeros((height, width), dtype=np.float64)
    dominant = np.full((height, width), -1, dtype=np.int32)
    dominant_strength = np.full((height, width), -1.0)
    on_boundary = np.zeros((height, width), dtype=bool)

    for dx, dy in NEIGHBORS_4:
        # Neighbour ids, with out-of-grid neighbours marked -1
        neighbor = np.full((height, width), -1, dtype=np.int32)
        dst_y = slice(max(0, -dy), height - max(0, dy))
        dst_x = slice(max(0, -dx), width - max(0, dx))
        src_y = slice(max(0, dy), height - max(0, -dy))
        src_x = slice(max(0, dx), width - max(0, -dx))
        neighbor[dst_y, dst_x] = plate_ids[src_y, src_x]

        differs = (neighbor >= 0) & (neighbor != plate_ids)
        if not differs.any():
            continue
        contribution = np.zeros((height, width), dtype=np.float64)
        contribution[differs] = table[plate_ids[differs], neighbor[differs]]
        stress += contribution
        on_boundary |= differs

        stronger = differs & (np.abs(contribution) > dominant_strength)
        dominant[stronger] = neighbor[stronger]
        dominant_strength[stronger] = np.abs(contribution[stronger])

    stress = np.clip(stress, -1.0, 1.0)
    boundary = np.full((height, width), BoundaryKind.NONE, dtype=np.uint8)
    boundary[on_boundary] = BoundaryKind.TRANSFORM
    boundary[on_boundary & (stress > transform_threshold)] = BoundaryKind.CONVERGENT
    boundary[on_boundary & (stress < -transform_threshold)] = BoundaryKind.DIVERGENT
    return boundary, stress, dominant


def collision_deltas(
    plate_ids: NDArray[np.int32],
    plates: list[Plate],
    boundary: NDArray[np.uint8],
    intensity: FloatGrid,
    dominant: NDArray[np.int32],
    config: TectonicsConfig,
) -> FloatGrid:
    """Elevation change per cell caused by plate interactions.

    Convergent continental-continental boundaries raise mountains, a
    subduction zone raises the continental side and sinks the oceanic side
    into a trench, oceanic-oceanic convergence raises island arcs and
    divergent boundaries open rifts. Transform boundaries are unchanged.
    """
    oceanic = np.array([p.kind == PlateKind.OCEANIC for p in plates], dtype=bool)
    self_oceanic = oceanic[plate_ids]
    other_oceanic = np.zeros_like(self_oceanic)
    has_other = dominant >= 0
    other_oceanic[has_other] = oceanic[dominant[has_other]]

    convergent = boundary == BoundaryKind.CONVERGENT
    delta = np.zeros(plate_ids.shape, dtype=np.float64)
    delta[convergent & ~self_oceanic & ~other_oceanic] = config.continental_uplift
    delta[convergent & ~self_oceanic & other_oceanic] = config.coastal_uplift
    delta[convergent & self_oceanic & ~other_oceanic] = -config.trench_depth
    delta[convergent & self_oceanic & other_oceanic] = config.island_arc_uplift
    delta[boundary == BoundaryKind.DIVERGENT] = -config.rift_depth

    delta *= intensity
    if config.spread_sigma > 0:
        delta = ndimage.gaussian_filter(delta, sigma=config.spread_sigma, mode="nearest")
    return delta


def simulate_tectonics(
    elevation: FloatGrid,
    rng: SeededRNG,
    plate_count: int,
    config: TectonicsConfig,
) -> TectonicsResult:
    """Run the plate simulation over a heightmap.

    The input grid is never modified; the adjusted elevation is a new grid.

    Args:
        elevation: Heightmap in [0, 1].
        rng: Random source for plate centers, drift and kind.
        plate_count: Number of plates.
        config: Tectonics parameters.

    Returns:
        TectonicsResult with partition, collision field and new elevation.
    """
    height, width = elevation.shape
    plates = seed_plates(width, height, rng, plate_count, config.oceanic_fraction)
    plate_ids = voronoi_partition(width, height, plates)
    boundary, stress, dominant = classify_boundaries(
        plate_ids, plates, config.transform_threshold
    )
    on_boundary = boundary != BoundaryKind.NONE
    intensity = np.where(on_boundary, np.minimum(1.0, np.abs(stress)), 0.0)

    delta = collision_deltas(plate_ids, plates, boundary, intensity, dominant, config)
    adjusted = np.clip(elevation + delta, 0.0, 1.0)

    logger.debug(
        "tectonics_simulated",
        plates=len(plates),
        boundary_cells=int(on_boundary.sum()),
        convergent=int((boundary == BoundaryKind.CONVERGENT).sum()),
        divergent=int((boundary == BoundaryKind.DIVERGENT).sum()),
    )
    return TectonicsResult(
        plates=tuple(plates),
        plate_ids=plate_ids,
        boundary=boundary,
        stress=stress,
        intensity=intensity,
        elevation=adjusted,
    )
