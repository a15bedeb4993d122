"""Ecological baseline: per-region starting populations and capacity.

This is the hand-off product for the live simulation, which measures
ecological pressure against these starting values.
"""

from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray

from ..types import BoolGrid, Cell
from .biomes import biome_property_grid
from .fauna import FaunaMap
from .flora import FloraMap, flora_density_grid
from .resources import ResourceDeposit

logger = structlog.get_logger()


@dataclass(frozen=True)
class RegionBaseline:
    """Aggregated starting state for one square block of cells."""

    region_x: int
    region_y: int
    cell_count: int
    land_cells: int
    animal_population: int
    species_count: int
    carrying_capacity: float
    forest_cover: float
    flora_density: float
    resource_nodes: int
    magic_level: float


@dataclass(frozen=True)
class EcologicalBaseline:
    """Baselines for every region plus world totals."""

    region_size: int
    regions: tuple[RegionBaseline, ...]
    total_population: int
    total_species: int
    forest_cover: float

    def region_at(self, cell: Cell) -> RegionBaseline:
        """Baseline of the region containing a cell."""
        rx, ry = cell[0] // self.region_size, cell[1] // self.region_size
        for region in self.regions:
            if region.region_x == rx and region.region_y == ry:
                return region
        raise KeyError(cell)


def default_region_size(width: int, height: int) -> int:
    return max(10, min(width, height) // 10)


def compute_baseline(
    biomes: NDArray[np.uint8],
    fauna: FaunaMap,
    flora: FloraMap | None = None,
    resources: dict[Cell, ResourceDeposit] | None = None,
    ley_mask: BoolGrid | None = None,
    region_size: int | None = None,
    land_mask: BoolGrid | None = None,
) -> EcologicalBaseline:
    """Aggregate biome and life data into per-region baselines.

    Args:
        biomes: Biome code grid.
        fauna: Fauna presence map.
        flora: Optional flora map for plant density and capacity.
        resources: Optional deposits, counted as resource nodes.
        ley_mask: Optional ley line cells, giving the magic level.
        region_size: Region edge in cells (default scales with the map).
        land_mask: Optional land cells; derived from biomes when omitted.

    Returns:
        EcologicalBaseline with regions in row-major order.
    """
    height, width = biomes.shape
    if region_size is None:
        region_size = default_region_size(width, height)

    if land_mask is None:
        land_mask = biome_property_grid(biomes, "water") == 0.0
    forested = biome_property_grid(biomes, "forested") > 0.0
    capacity = biome_property_grid(biomes, "carrying_capacity")

    plants = (
        flora_density_grid(flora, (height, width))
        if flora is not None
        else np.zeros((height, width), dtype=np.float64)
    )
    has_plants = np.zeros((height, width), dtype=bool)
    for x, y in flora or {}:
        has_plants[y, x] = True
    # Bare ground supports half the biome capacity
    capacity = capacity * (0.5 + 0.5 * plants)

    region_population: dict[tuple[int, int], int] = {}
    region_species: dict[tuple[int, int], set] = {}
    for (x, y), entries in fauna.items():
        key = (x // region_size, y // region_size)
        region_population[key] = region_population.get(key, 0) + sum(
            e.population for e in entries
        )
        region_species.setdefault(key, set()).update(e.species for e in entries)

    nodes = np.zeros((height, width), dtype=np.int32)
    for x, y in resources or {}:
        nodes[y, x] += 1
    ley = ley_mask if ley_mask is not None else np.zeros((height, width), dtype=bool)

    regions: list[RegionBaseline] = []
    for ry in range(0, (height + region_size - 1) // region_size):
        for rx in range(0, (width + region_size - 1) // region_size):
            y0, x0 = ry * region_size, rx * region_size
            block = (slice(y0, y0 + region_size), slice(x0, x0 + region_size))
            cells = biomes[block].size
            land = int(land_mask[block].sum())

            plant_cells = int(has_plants[block].sum())
            regions.append(
                RegionBaseline(
                    region_x=rx,
                    region_y=ry,
                    cell_count=cells,
                    land_cells=land,
                    animal_population=region_population.get((rx, ry), 0),
                    species_count=len(region_species.get((rx, ry), ())),
                    carrying_capacity=float(capacity[block].sum()),
                    forest_cover=(
                        float((forested[block] & land_mask[block]).sum()) / land if land else 0.0
                    ),
                    flora_density=(
                        float(plants[block].sum()) / plant_cells if plant_cells else 0.0
                    ),
                    resource_nodes=int(nodes[block].sum()),
                    magic_level=float(ley[block].sum()) / cells,
                )
            )

    total_land = int(land_mask.sum())
    all_species = {entry.species for entries in fauna.values() for entry in entries}
    baseline = EcologicalBaseline(
        region_size=region_size,
        regions=tuple(regions),
        total_population=sum(r.animal_population for r in regions),
        total_species=len(all_species),
        forest_cover=float((forested & land_mask).sum()) / total_land if total_land else 0.0,
    )
    logger.debug(
        "baseline_computed",
        regions=len(regions),
        population=baseline.total_population,
        species=baseline.total_species,
    )
    return baseline

