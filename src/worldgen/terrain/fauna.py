"""Fauna distribution: per-cell animal species presence and population.

Works like flora placement, with herbivore density following the local
plant cover and predators following the clustering noise alone.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
import structlog
from numpy.typing import NDArray

from ..config import LifeConfig
from ..rng import SeededRNG, cell_random_grid, pick_weighted
from ..types import Cell
from .biomes import Biome, biome_from_code
from .flora import FloraMap, cluster_field, flora_density_grid

logger = structlog.get_logger()


class FaunaSpecies(str, Enum):
    """Animal species that can be placed."""

    DEER = "deer"
    ELK = "elk"
    BISON = "bison"
    RABBIT = "rabbit"
    BOAR = "boar"
    MOUNTAIN_GOAT = "mountain_goat"
    ANTELOPE = "antelope"
    MAMMOTH = "mammoth"
    WOLF = "wolf"
    BEAR = "bear"
    LION = "lion"
    EAGLE = "eagle"
    GIANT_SPIDER = "giant_spider"
    CROCODILE = "crocodile"
    POLAR_BEAR = "polar_bear"
    FISH = "fish"
    WHALE = "whale"
    SHARK = "shark"


class Behavior(str, Enum):
    """Behavioural archetype of a population."""

    MIGRATORY = "migratory"
    TERRITORIAL = "territorial"
    PACK = "pack"
    SOLITARY = "solitary"


@dataclass(frozen=True)
class FaunaTemplate:
    """Static traits of a species within one biome."""

    species: FaunaSpecies
    weight: float
    behavior: Behavior
    threat_level: int
    is_predator: bool
    base_population: int


@dataclass(frozen=True)
class FaunaPresence:
    """One animal species present on a cell."""

    species: FaunaSpecies
    density: float
    population: int
    is_predator: bool
    threat_level: int
    behavior: Behavior


def _t(
    species: FaunaSpecies,
    weight: float,
    behavior: Behavior,
    threat: int,
    predator: bool,
    population: int,
) -> FaunaTemplate:
    return FaunaTemplate(species, weight, behavior, threat, predator, population)


_S = FaunaSpecies
_M, _T, _P, _L = Behavior.MIGRATORY, Behavior.TERRITORIAL, Behavior.PACK, Behavior.SOLITARY

BIOME_FAUNA: dict[Biome, tuple[FaunaTemplate, ...]] = {
    Biome.FOREST: (
        _t(_S.DEER, 30, _M, 0, False, 40),
        _t(_S.BOAR, 20, _T, 2, False, 20),
        _t(_S.RABBIT, 25, _L, 0, False, 80),
        _t(_S.WOLF, 15, _P, 5, True, 12),
        _t(_S.BEAR, 10, _L, 6, True, 4),
    ),
    Biome.DENSE_FOREST: (
        _t(_S.DEER, 20, _M, 0, False, 30),
        _t(_S.BOAR, 25, _T, 2, False, 25),
        _t(_S.GIANT_SPIDER, 15, _T, 7, True, 8),
        _t(_S.BEAR, 15, _L, 6, True, 5),
        _t(_S.EAGLE, 10, _L, 2, True, 6),
        _t(_S.WOLF, 15, _P, 5, True, 10),
    ),
    Biome.GRASSLAND: (
        _t(_S.BISON, 30, _M, 1, False, 60),
        _t(_S.RABBIT, 30, _L, 0, False, 100),
        _t(_S.ANTELOPE, 20, _M, 0, False, 50),
        _t(_S.WOLF, 15, _P, 5, True, 15),
        _t(_S.EAGLE, 5, _L, 2, True, 4),
    ),
    Biome.SAVANNA: (
        _t(_S.ANTELOPE, 35, _M, 0, False, 80),
        _t(_S.BISON, 20, _M, 1, False, 40),
        _t(_S.LION, 25, _P, 8, True, 8),
        _t(_S.EAGLE, 20, _L, 2, True, 6),
    ),
    Biome.RAINFOREST: (
        _t(_S.BOAR, 25, _T, 2, False, 20),
        _t(_S.GIANT_SPIDER, 25, _T, 7, True, 12),
        _t(_S.CROCODILE, 20, _T, 8, True, 6),
        _t(_S.EAGLE, 10, _L, 2, True, 5),
    ),
    Biome.MOUNTAIN: (
        _t(_S.MOUNTAIN_GOAT, 40, _T, 0, False, 20),
        _t(_S.EAGLE, 30, _L, 2, True, 4),
        _t(_S.BEAR, 20, _L, 6, True, 3),
        _t(_S.WOLF, 10, _P, 5, True, 8),
    ),
    Biome.TAIGA: (
        _t(_S.ELK, 30, _M, 1, False, 25),
        _t(_S.WOLF, 25, _P, 5, True, 12),
        _t(_S.BEAR, 20, _L, 6, True, 4),
        _t(_S.RABBIT, 25, _L, 0, False, 40),
    ),
    Biome.TUNDRA: (
        _t(_S.MAMMOTH, 25, _M, 3, False, 10),
        _t(_S.POLAR_BEAR, 25, _L, 8, True, 3),
        _t(_S.RABBIT, 30, _L, 0, False, 30),
        _t(_S.WOLF, 20, _P, 5, True, 10),
    ),
    Biome.SWAMP: (
        _t(_S.CROCODILE, 35, _T, 8, True, 8),
        _t(_S.BOAR, 25, _T, 2, False, 15),
        _t(_S.GIANT_SPIDER, 25, _T, 7, True, 10),
        _t(_S.FISH, 15, _L, 0, False, 200),
    ),
    Biome.COAST: (
        _t(_S.FISH, 50, _M, 0, False, 500),
        _t(_S.EAGLE, 20, _L, 2, True, 4),
        _t(_S.CROCODILE, 15, _T, 8, True, 4),
    ),
    Biome.OCEAN: (
        _t(_S.FISH, 50, _M, 0, False, 1000),
        _t(_S.WHALE, 20, _M, 1, False, 5),
        _t(_S.SHARK, 30, _T, 7, True, 8),
    ),
    Biome.DESERT: (
        _t(_S.RABBIT, 50, _L, 0, False, 10),
        _t(_S.EAGLE, 30, _L, 2, True, 2),
        _t(_S.GIANT_SPIDER, 20, _T, 7, True, 3),
    ),
}

# Chance that a cell of the biome hosts any animals, before clustering
BIOME_FAUNA_CHANCE: dict[Biome, float] = {
    Biome.FOREST: 0.2,
    Biome.DENSE_FOREST: 0.2,
    Biome.GRASSLAND: 0.2,
    Biome.SAVANNA: 0.15,
    Biome.RAINFOREST: 0.2,
    Biome.MOUNTAIN: 0.08,
    Biome.TAIGA: 0.12,
    Biome.TUNDRA: 0.06,
    Biome.SWAMP: 0.12,
    Biome.COAST: 0.1,
    Biome.OCEAN: 0.03,
    Biome.DESERT: 0.04,
}

FaunaMap = dict[Cell, tuple[FaunaPresence, ...]]


def distribute_fauna(
    biomes: NDArray[np.uint8],
    rng: SeededRNG,
    config: LifeConfig,
    flora: FloraMap | None = None,
) -> FaunaMap:
    """Place animal species on cells.

    Args:
        biomes: Biome code grid.
        rng: Random source; builds the clustering noise and keys the
            per-cell hashes.
        config: Life configuration.
        flora: Optional flora map; herbivores are denser where plants are.

    Returns:
        Sparse mapping of cell to the species present there.
    """
    height, width = biomes.shape
    cluster = cluster_field(rng, width, height, config.noise_scale)
    plants = (
        flora_density_grid(flora, (height, width))
        if flora is not None
        else np.zeros((height, width), dtype=np.float64)
    )
    seed = rng.seed

    table = np.array(
        [BIOME_FAUNA_CHANCE.get(biome_from_code(code), 0.0) for code in range(len(Biome))]
    )
    chance = np.clip(table[biomes] * (0.4 + 1.2 * cluster), 0.0, 1.0)

    slots = config.max_species_per_cell
    presence = [cell_random_grid(seed, "fauna", width, height, 3 * s) for s in range(slots)]
    choice = [cell_random_grid(seed, "fauna", width, height, 3 * s + 1) for s in range(slots)]
    spread = [cell_random_grid(seed, "fauna", width, height, 3 * s + 2) for s in range(slots)]

    fauna: FaunaMap = {}
    ys, xs = np.nonzero(presence[0] < chance)
    for y, x in zip(ys.tolist(), xs.tolist()):
        templates = BIOME_FAUNA.get(biome_from_code(biomes[y, x]))
        if not templates:
            continue

        entries: list[FaunaPresence] = []
        for s in range(slots):
            if s > 0 and presence[s][y, x] >= chance[y, x] / (2**s):
                break
            options = [t for t in templates if all(e.species != t.species for e in entries)]
            if not options:
                break
            template = pick_weighted(options, [t.weight for t in options], float(choice[s][y, x]))

            if template.is_predator:
                density = 0.5 + 0.5 * cluster[y, x]
            else:
                density = (0.3 + 0.7 * plants[y, x]) * (0.5 + cluster[y, x])
            density = float(np.clip(density * (0.5 + spread[s][y, x]), 0.01, 1.0))
            population = max(
                1, round(template.base_population * density * config.population_scale)
            )
            entries.append(
                FaunaPresence(
                    species=template.species,
                    density=density,
                    population=population,
                    is_predator=template.is_predator,
                    threat_level=template.threat_level,
                    behavior=template.behavior,
                )
            )
        fauna[(x, y)] = tuple(entries)

    logger.debug(
        "fauna_distributed",
        cells=len(fauna),
        population=sum(e.population for entries in fauna.values() for e in entries),
    )
    return fauna
