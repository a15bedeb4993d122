"""Resource deposits and ley lines.

Ley lines join high-stress plate boundary cells with rasterized straight
corridors. Deposits are drawn per cell from a biome table, with ores
favoured on convergent boundaries and magical components on ley lines.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
import structlog
from numpy.typing import NDArray

from ..config import ResourceConfig
from ..raster import line
from ..rng import SeededRNG
from ..types import BoolGrid, Cell
from .biomes import Biome, biome_from_code
from .tectonics import BoundaryKind, TectonicsResult

logger = structlog.get_logger()

RESOURCE_TABLE_VERSION = 1


class ResourceKind(str, Enum):
    """Types of resource deposit."""

    FOOD = "food"
    TIMBER = "timber"
    STONE = "stone"
    IRON = "iron"
    GOLD = "gold"
    GEMS = "gems"
    MAGICAL_COMPONENTS = "magical_components"
    LUXURY_GOODS = "luxury_goods"
    FISH = "fish"
    COPPER = "copper"
    TIN = "tin"
    COAL = "coal"
    HERBS = "herbs"


ORE_KINDS = frozenset(
    {
        ResourceKind.IRON,
        ResourceKind.GOLD,
        ResourceKind.GEMS,
        ResourceKind.COPPER,
        ResourceKind.TIN,
        ResourceKind.COAL,
    }
)

_R = ResourceKind
# Biome -> (deposit chance per cell, kind weights)
RESOURCE_TABLE: dict[Biome, tuple[float, dict[ResourceKind, float]]] = {
    Biome.DEEP_OCEAN: (0.01, {_R.FISH: 1.0}),
    Biome.OCEAN: (0.04, {_R.FISH: 1.0}),
    Biome.COAST: (0.12, {_R.FISH: 5.0, _R.FOOD: 4.0, _R.LUXURY_GOODS: 1.0}),
    Biome.SWAMP: (0.08, {_R.HERBS: 3.0, _R.FOOD: 6.0, _R.MAGICAL_COMPONENTS: 1.0}),
    Biome.ICE_CAP: (0.02, {_R.STONE: 1.0}),
    Biome.TUNDRA: (0.04, {_R.STONE: 8.0, _R.COAL: 1.0}),
    Biome.TAIGA: (0.08, {_R.TIMBER: 8.0, _R.HERBS: 1.5, _R.COAL: 0.5}),
    Biome.GRASSLAND: (0.1, {_R.FOOD: 8.5, _R.HERBS: 1.5}),
    Biome.SAVANNA: (0.07, {_R.FOOD: 8.5, _R.HERBS: 1.5}),
    Biome.DESERT: (0.04, {_R.STONE: 8.0, _R.GOLD: 1.0, _R.GEMS: 1.0}),
    Biome.FOREST: (0.1, {_R.TIMBER: 8.5, _R.HERBS: 1.5}),
    Biome.DENSE_FOREST: (0.1, {_R.TIMBER: 8.5, _R.HERBS: 1.5}),
    Biome.RAINFOREST: (0.1, {_R.TIMBER: 7.0, _R.HERBS: 2.0, _R.LUXURY_GOODS: 1.0}),
    Biome.MOUNTAIN: (
        0.15,
        {_R.IRON: 3.0, _R.STONE: 3.0, _R.COAL: 2.0, _R.COPPER: 1.5, _R.TIN: 0.5},
    ),
    Biome.SNOW: (0.05, {_R.STONE: 4.0, _R.GEMS: 1.0}),
}


@dataclass(frozen=True)
class ResourceDeposit:
    """A resource present on a cell."""

    kind: ResourceKind
    abundance: float


@dataclass(frozen=True)
class LeyLine:
    """A magical corridor traced between two high-stress cells."""

    start: Cell
    end: Cell
    path: tuple[Cell, ...]
    strength: float


@dataclass(frozen=True)
class ResourceResult:
    """Output of the resource stage."""

    deposits: dict[Cell, ResourceDeposit]
    ley_lines: tuple[LeyLine, ...]
    ley_mask: BoolGrid


def select_ley_anchors(
    tectonics: TectonicsResult,
    percentile: float,
    count: int,
) -> list[Cell]:
    """Pick spaced high-intensity boundary cells to anchor ley lines.

    Returns:
        Up to ``count`` cells, strongest first.
    """
    boundary = tectonics.boundary_mask
    if count <= 0 or not boundary.any():
        return []

    height, width = boundary.shape
    intensity = tectonics.intensity
    threshold = np.percentile(intensity[boundary], percentile)
    ys, xs = np.nonzero(boundary & (intensity >= threshold))
    order = np.lexsort((xs, ys, -intensity[ys, xs]))
    spacing = max(4, min(width, height) // 6)

    anchors: list[Cell] = []
    for idx in order:
        if len(anchors) >= count:
            break
        x, y = int(xs[idx]), int(ys[idx])
        if any(max(abs(x - ax), abs(y - ay)) < spacing for ax, ay in anchors):
            continue
        anchors.append((x, y))
    return anchors


def trace_ley_lines(
    tectonics: TectonicsResult,
    rng: SeededRNG,
    config: ResourceConfig,
) -> tuple[list[LeyLine], BoolGrid]:
    """Connect shuffled anchors pairwise in sequence.

    Returns:
        Tuple of (ley lines, mask of every cell on a ley line).
    """
    height, width = tectonics.plate_ids.shape
    count = config.ley_line_count
    if count is None:
        count = max(3, (width * height) // 20000)

    anchors = select_ley_anchors(tectonics, config.ley_stress_percentile, count + 1)
    rng.shuffle(anchors)

    mask = np.zeros((height, width), dtype=bool)
    lines: list[LeyLine] = []
    for start, end in zip(anchors, anchors[1:]):
        path = tuple(line(start[0], start[1], end[0], end[1]))
        for x, y in path:
            mask[y, x] = True
        strength = 0.5 * float(
            tectonics.intensity[start[1], start[0]] + tectonics.intensity[end[1], end[0]]
        )
        lines.append(LeyLine(start=start, end=end, path=path, strength=strength))
    return lines, mask


def _cell_weights(
    biome: Biome,
    convergent_intensity: float,
    on_ley: bool,
    config: ResourceConfig,
) -> dict[ResourceKind, float]:
    weights = dict(RESOURCE_TABLE[biome][1])
    if convergent_intensity > 0:
        boost = 1.0 + config.ore_bias * convergent_intensity
        # Collision zones expose precious ores regardless of biome
        weights.setdefault(ResourceKind.GOLD, 0.5)
        weights.setdefault(ResourceKind.GEMS, 0.5)
        for kind in weights:
            if kind in ORE_KINDS:
                weights[kind] *= boost
    if on_ley:
        weights[ResourceKind.MAGICAL_COMPONENTS] = (
            weights.get(ResourceKind.MAGICAL_COMPONENTS, 0.0) + config.ley_weight
        )
    return weights


def place_resources(
    biomes: NDArray[np.uint8],
    tectonics: TectonicsResult,
    rng: SeededRNG,
    config: ResourceConfig,
) -> ResourceResult:
    """Trace ley lines and place resource deposits.

    Args:
        biomes: Biome code grid.
        tectonics: Tectonics result (boundary kinds and intensity).
        rng: Random source.
        config: Resource configuration.

    Returns:
        ResourceResult with sparse deposits keyed by cell and ley lines.
    """
    ley_lines, ley_mask = trace_ley_lines(tectonics, rng, config)

    convergent = np.where(
        tectonics.boundary == BoundaryKind.CONVERGENT, tectonics.intensity, 0.0
    )

    height, width = biomes.shape
    deposits: dict[Cell, ResourceDeposit] = {}
    for y in range(height):
        for x in range(width):
            biome = biome_from_code(biomes[y, x])
            intensity = float(convergent[y, x])
            on_ley = bool(ley_mask[y, x])

            chance = RESOURCE_TABLE[biome][0] * (1.0 + config.tectonic_bias * intensity)
            if on_ley:
                chance = max(chance, 0.3)
            if not rng.next_bool(chance):
                continue

            weights = _cell_weights(biome, intensity, on_ley, config)
            kind = rng.weighted_pick(list(weights), list(weights.values()))
            abundance = min(1.0, rng.next_range(0.2, 1.0) * (1.0 + 0.5 * intensity))
            deposits[(x, y)] = ResourceDeposit(kind=kind, abundance=abundance)

    logger.debug(
        "resources_placed",
        deposits=len(deposits),
        ley_lines=len(ley_lines),
        ley_cells=int(ley_mask.sum()),
    )
    return ResourceResult(
        deposits=deposits,
        ley_lines=tuple(ley_lines),
        ley_mask=ley_mask,
    )
