"""Hydrology: river source selection, greedy downhill tracing, carving.

Rivers start on high land, step to the lowest strictly-lower neighbour and
stop at the sea, the map edge, an earlier river, a basin or the step bound.
Carving then makes every river's elevation non-increasing end to end.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
import structlog
from numpy.typing import NDArray

from ..config import HydrologyConfig
from ..rng import SeededRNG
from ..types import BoolGrid, Cell, FloatGrid
from .biomes import SEA_LEVEL
from .climate import ClimateField

logger = structlog.get_logger()

# D8 directions: N, NE, E, SE, S, SW, W, NW (clockwise from north).
# Scan order breaks ties between equally low neighbours.
D8_DY = (-1, -1, 0, 1, 1, 1, 0, -1)
D8_DX = (0, 1, 1, 1, 0, -1, -1, -1)

NO_RIVER = -1


class Terminus(str, Enum):
    """How a river trace ended."""

    SEA = "sea"
    EDGE = "edge"
    MERGE = "merge"
    LAKE = "lake"
    STEP_LIMIT = "step_limit"


@dataclass(frozen=True)
class River:
    """A traced river from source to terminus."""

    river_id: int
    points: tuple[Cell, ...]
    flow: tuple[float, ...]
    elevations: tuple[float, ...]
    terminus: Terminus
    merges_into: int | None = None

    @property
    def source(self) -> Cell:
        return self.points[0]

    @property
    def mouth(self) -> Cell:
        return self.points[-1]

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class HydrologyResult:
    """Rivers plus the carved elevation grid."""

    rivers: tuple[River, ...]
    elevation: FloatGrid
    river_ids: NDArray[np.int32]
    lakes: tuple[Cell, ...]

    @property
    def river_mask(self) -> BoolGrid:
        return self.river_ids != NO_RIVER


@dataclass
class _Trace:
    points: list[Cell]
    flow: list[float]
    terminus: Terminus
    merges_into: int | None = None


def select_river_sources(
    elevation: FloatGrid,
    rng: SeededRNG,
    config: HydrologyConfig,
    count: int,
    precipitation: FloatGrid | None = None,
) -> list[Cell]:
    """Pick well-spaced river sources on high land.

    Candidates are land cells at or above the configured elevation
    percentile, ranked by elevation (times normalized precipitation when
    given). Each candidate that respects the spacing is accepted with a
    fixed probability until enough sources are chosen.

    Args:
        elevation: Elevation grid.
        rng: Random source for acceptance draws.
        config: Hydrology configuration.
        count: Number of sources wanted.
        precipitation: Optional precipitation grid to weight candidates.

    Returns:
        Source cells in selection order.
    """
    land = elevation >= SEA_LEVEL
    if count <= 0 or not land.any():
        return []

    threshold = np.percentile(elevation[land], config.source_percentile)
    ys, xs = np.nonzero(land & (elevation >= threshold))
    weights = elevation[ys, xs]
    if precipitation is not None:
        peak = float(precipitation.max())
        if peak > 0:
            weights = weights * (precipitation[ys, xs] / peak)

    # Highest weight first, then row-major
    order = np.lexsort((xs, ys, -weights))
    spacing = config.min_source_spacing

    sources: list[Cell] = []
    for idx in order:
        if len(sources) >= count:
            break
        x, y = int(xs[idx]), int(ys[idx])
        if any(max(abs(x - sx), abs(y - sy)) < spacing for sx, sy in sources):
            continue
        if rng.next_bool(config.source_acceptance):
            sources.append((x, y))
    return sources


def trace_river(
    elevation: FloatGrid,
    source: Cell,
    river_ids: NDArray[np.int32],
    max_steps: int,
    flow_gain: FloatGrid | None = None,
) -> _Trace:
    """Walk greedily downhill from a source.

    Args:
        elevation: Elevation grid.
        source: Starting cell.
        river_ids: Cells already claimed by earlier rivers.
        max_steps: Maximum number of points on the path.
        flow_gain: Optional per-cell flow added on entering a cell.

    Returns:
        The traced path with its terminus.
    """
    height, width = elevation.shape
    x, y = source
    points = [source]
    flow = [1.0]

    while True:
        if elevation[y, x] < SEA_LEVEL:
            return _Trace(points, flow, Terminus.SEA)
        if len(points) >= max_steps:
            return _Trace(points, flow, Terminus.STEP_LIMIT)
        if x == 0 or y == 0 or x == width - 1 or y == height - 1:
            return _Trace(points, flow, Terminus.EDGE)

        best = None
        best_elev = elevation[y, x]
        for d in range(8):
            nx = x + D8_DX[d]
            ny = y + D8_DY[d]
            if elevation[ny, nx] < best_elev:
                best_elev = elevation[ny, nx]
                best = (nx, ny)

        if best is None:
            return _Trace(points, flow, Terminus.LAKE)

        x, y = best
        gain = 1.0 if flow_gain is None else 1.0 + float(flow_gain[y, x])
        points.append(best)
        flow.append(flow[-1] + gain)

        existing = int(river_ids[y, x])
        if existing != NO_RIVER:
            return _Trace(points, flow, Terminus.MERGE, merges_into=existing)


def carve_path(
    carved: FloatGrid,
    points: list[Cell],
    depth: float,
    keep_last: bool,
) -> list[float]:
    """Lower elevation along a path so it never rises.

    Depth grows toward the mouth. When ``keep_last`` is set the final cell
    belongs to another river and is left untouched; the rest of the path is
    held at or above it. ``carved`` is updated in place.

    Returns:
        Elevation of every point after carving.
    """
    n = len(points)
    carve_count = n - 1 if keep_last else n
    levels: list[float] = []
    previous = np.inf
    for i in range(carve_count):
        x, y = points[i]
        level = min(float(carved[y, x]) - depth * (1.0 + i / n), previous)
        level = max(level, 0.0)
        levels.append(level)
        previous = level

    if keep_last:
        lx, ly = points[-1]
        floor = float(carved[ly, lx])
        levels = [max(level, floor) for level in levels]
        levels.append(floor)

    for i in range(carve_count):
        x, y = points[i]
        carved[y, x] = levels[i]
    return levels


def generate_rivers(
    elevation: FloatGrid,
    rng: SeededRNG,
    config: HydrologyConfig,
    climate: ClimateField | None = None,
) -> HydrologyResult:
    """Trace and carve rivers over a heightmap.

    The input grid is not modified.

    Args:
        elevation: Elevation grid after tectonics.
        rng: Random source for source selection.
        config: Hydrology configuration.
        climate: Optional climate field; weights sources and flow by
            precipitation.

    Returns:
        HydrologyResult with rivers, carved elevation and river id grid.
    """
    height, width = elevation.shape
    count = config.river_count
    if count is None:
        count = max(5, (width * height) // 5000)
    max_steps = config.max_steps if config.max_steps is not None else width + height

    precipitation = climate.precipitation if climate is not None else None
    flow_gain = None
    if precipitation is not None and config.precipitation_weight > 0:
        peak = float(precipitation.max())
        if peak > 0:
            flow_gain = config.precipitation_weight * precipitation / peak

    sources = select_river_sources(elevation, rng, config, count, precipitation)

    carved = elevation.astype(np.float64, copy=True)
    river_ids = np.full((height, width), NO_RIVER, dtype=np.int32)
    rivers: list[River] = []
    lakes: list[Cell] = []

    for source in sources:
        sx, sy = source
        if river_ids[sy, sx] != NO_RIVER:
            continue
        trace = trace_river(carved, source, river_ids, max_steps, flow_gain)
        if len(trace.points) < config.min_length:
            continue

        merged = trace.terminus == Terminus.MERGE
        levels = carve_path(carved, trace.points, config.carve_depth, keep_last=merged)

        river_id = len(rivers)
        claimed = trace.points[:-1] if merged else trace.points
        for x, y in claimed:
            river_ids[y, x] = river_id
        if trace.terminus in (Terminus.LAKE, Terminus.STEP_LIMIT):
            lakes.append(trace.points[-1])

        rivers.append(
            River(
                river_id=river_id,
                points=tuple(trace.points),
                flow=tuple(trace.flow),
                elevations=tuple(levels),
                terminus=trace.terminus,
                merges_into=trace.merges_into,
            )
        )

    logger.debug(
        "rivers_traced",
        sources=len(sources),
        rivers=len(rivers),
        lakes=len(lakes),
        merges=sum(1 for r in rivers if r.terminus == Terminus.MERGE),
    )
    return HydrologyResult(
        rivers=tuple(rivers),
        elevation=carved,
        river_ids=river_ids,
        lakes=tuple(lakes),
    )
