"""Flora distribution: per-cell plant species presence and density.

Presence is drawn from per-biome weighted tables. A simplex noise field
modulates the chance of presence so vegetation clusters instead of
scattering uniformly. All per-cell draws come from ``cell_random_grid``,
so the result does not depend on the order cells are visited.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
import structlog
from numpy.typing import NDArray

from ..config import LifeConfig
from ..noise import SimplexNoise
from ..rng import SeededRNG, cell_random_grid, pick_weighted
from ..types import Cell, FloatGrid
from .biomes import Biome, biome_from_code

logger = structlog.get_logger()


class FloraSpecies(str, Enum):
    """Plant species that can be placed."""

    OAK = "oak"
    ELM = "elm"
    MAPLE = "maple"
    PINE = "pine"
    SPRUCE = "spruce"
    BIRCH = "birch"
    WILLOW = "willow"
    JUNGLE_TREE = "jungle_tree"
    BAMBOO = "bamboo"
    PALM = "palm"
    CACTUS = "cactus"
    TALL_GRASS = "tall_grass"
    SAVANNA_GRASS = "savanna_grass"
    FERN = "fern"
    MOSS = "moss"
    SHRUB = "shrub"
    SEAWEED = "seaweed"
    LICHEN = "lichen"
    ARCTIC_MOSS = "arctic_moss"
    SWAMP_REED = "swamp_reed"
    MAGIC_MUSHROOM = "magic_mushroom"


@dataclass(frozen=True)
class FloraPresence:
    """One plant species present on a cell."""

    species: FloraSpecies
    density: float
    growth_rate: float

    @property
    def resource_yield(self) -> float:
        return self.density * self.growth_rate


_F = FloraSpecies
BIOME_FLORA: dict[Biome, tuple[tuple[FloraSpecies, float], ...]] = {
    Biome.FOREST: ((_F.OAK, 30), (_F.ELM, 20), (_F.MAPLE, 20), (_F.BIRCH, 15), (_F.SHRUB, 15)),
    Biome.DENSE_FOREST: ((_F.OAK, 25), (_F.ELM, 20), (_F.FERN, 25), (_F.MOSS, 15), (_F.MAPLE, 15)),
    Biome.TAIGA: ((_F.PINE, 40), (_F.SPRUCE, 35), (_F.LICHEN, 15), (_F.MOSS, 10)),
    Biome.RAINFOREST: (
        (_F.JUNGLE_TREE, 35),
        (_F.BAMBOO, 20),
        (_F.FERN, 20),
        (_F.PALM, 15),
        (_F.MAGIC_MUSHROOM, 10),
    ),
    Biome.GRASSLAND: ((_F.TALL_GRASS, 50), (_F.SHRUB, 30), (_F.OAK, 20)),
    Biome.SAVANNA: ((_F.SAVANNA_GRASS, 50), (_F.SHRUB, 30), (_F.PALM, 20)),
    Biome.DESERT: ((_F.CACTUS, 70), (_F.SHRUB, 30)),
    Biome.SWAMP: ((_F.WILLOW, 30), (_F.SWAMP_REED, 35), (_F.MOSS, 20), (_F.MAGIC_MUSHROOM, 15)),
    Biome.TUNDRA: ((_F.LICHEN, 50), (_F.ARCTIC_MOSS, 40), (_F.SHRUB, 10)),
    Biome.COAST: ((_F.TALL_GRASS, 40), (_F.PALM, 30), (_F.SEAWEED, 30)),
    Biome.MOUNTAIN: ((_F.PINE, 40), (_F.LICHEN, 35), (_F.SHRUB, 25)),
}

BIOME_DENSITY: dict[Biome, float] = {
    Biome.DENSE_FOREST: 0.9,
    Biome.RAINFOREST: 0.95,
    Biome.FOREST: 0.7,
    Biome.TAIGA: 0.6,
    Biome.SWAMP: 0.65,
    Biome.GRASSLAND: 0.5,
    Biome.SAVANNA: 0.35,
    Biome.COAST: 0.3,
    Biome.MOUNTAIN: 0.2,
    Biome.DESERT: 0.05,
    Biome.TUNDRA: 0.1,
}

GROWTH_RATE: dict[Biome, float] = {
    Biome.RAINFOREST: 1.5,
    Biome.DENSE_FOREST: 1.5,
    Biome.FOREST: 1.2,
    Biome.SWAMP: 1.2,
    Biome.GRASSLAND: 1.0,
    Biome.SAVANNA: 1.0,
    Biome.COAST: 1.0,
    Biome.TAIGA: 0.6,
    Biome.MOUNTAIN: 0.6,
    Biome.DESERT: 0.2,
    Biome.TUNDRA: 0.2,
}

FloraMap = dict[Cell, tuple[FloraPresence, ...]]


def cluster_field(
    rng: SeededRNG, width: int, height: int, scale: float
) -> FloatGrid:
    """Smooth [0, 1] field used to cluster life into patches."""
    noise = SimplexNoise(rng)
    ys, xs = np.meshgrid(
        np.arange(height, dtype=np.float64) * scale,
        np.arange(width, dtype=np.float64) * scale,
        indexing="ij",
    )
    return (noise.sample(xs, ys) + 1.0) * 0.5


def _base_density_grid(biomes: NDArray[np.uint8]) -> FloatGrid:
    table = np.array(
        [BIOME_DENSITY.get(biome_from_code(code), 0.0) for code in range(len(Biome))]
    )
    return table[biomes]


def distribute_flora(
    biomes: NDArray[np.uint8],
    rng: SeededRNG,
    config: LifeConfig,
) -> FloraMap:
    """Place plant species on cells.

    Args:
        biomes: Biome code grid.
        rng: Random source; builds the clustering noise and keys the
            per-cell hashes.
        config: Life configuration.

    Returns:
        Sparse mapping of cell to the species present there.
    """
    height, width = biomes.shape
    cluster = cluster_field(rng, width, height, config.noise_scale)
    base = _base_density_grid(biomes)
    seed = rng.seed

    slots = config.max_species_per_cell
    presence = [cell_random_grid(seed, "flora", width, height, 3 * s) for s in range(slots)]
    choice = [cell_random_grid(seed, "flora", width, height, 3 * s + 1) for s in range(slots)]
    jitter = [cell_random_grid(seed, "flora", width, height, 3 * s + 2) for s in range(slots)]

    # Barren patches stay barren; lush patches may hold several species
    chance = np.clip(base * (0.4 + 1.2 * cluster), 0.0, 1.0)

    flora: FloraMap = {}
    ys, xs = np.nonzero(presence[0] < chance)
    for y, x in zip(ys.tolist(), xs.tolist()):
        biome = biome_from_code(biomes[y, x])
        table = BIOME_FLORA.get(biome)
        if not table:
            continue

        entries: list[FloraPresence] = []
        for s in range(slots):
            # Each extra slot is half as likely as the previous one
            if s > 0 and presence[s][y, x] >= chance[y, x] / (2**s):
                break
            options = [(sp, w) for sp, w in table if all(e.species != sp for e in entries)]
            if not options:
                break
            species = pick_weighted(
                [sp for sp, _ in options], [w for _, w in options], float(choice[s][y, x])
            )
            density = float(
                np.clip(
                    base[y, x] * (0.5 + cluster[y, x]) + (jitter[s][y, x] - 0.5) * 0.3,
                    0.01,
                    1.0,
                )
            )
            growth = GROWTH_RATE.get(biome, 0.5) * (1.0 - density * 0.2)
            entries.append(FloraPresence(species=species, density=density, growth_rate=growth))
        flora[(x, y)] = tuple(entries)

    logger.debug("flora_distributed", cells=len(flora))
    return flora


def flora_density_grid(flora: FloraMap, shape: tuple[int, int]) -> FloatGrid:
    """Highest plant density on each cell (0 where barren)."""
    grid = np.zeros(shape, dtype=np.float64)
    for (x, y), entries in flora.items():
        grid[y, x] = max(e.density for e in entries)
    return grid
