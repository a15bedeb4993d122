"""Special-site scoring plus dungeon and magical creature placement.

Cells are scored on ley line proximity, biome rarity and elevation
extremity. Candidates above the threshold are offered first to dungeons,
then to magical creatures; a cell never holds both.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from ..config import SiteConfig
from ..rng import SeededRNG
from ..types import BoolGrid, Cell, FloatGrid
from .biomes import Biome, biome_from_code

logger = structlog.get_logger()

_WATER = frozenset({Biome.DEEP_OCEAN, Biome.OCEAN, Biome.COAST})
_HARSH = frozenset({Biome.DESERT, Biome.TUNDRA, Biome.SWAMP, Biome.ICE_CAP})
_OPEN_LAND = frozenset({Biome.GRASSLAND, Biome.FOREST, Biome.DENSE_FOREST, Biome.SAVANNA})
_PEAKS = frozenset({Biome.MOUNTAIN, Biome.SNOW})


class DungeonKind(str, Enum):
    """Type of dungeon site."""

    CAVE = "cave"
    RUIN = "ruin"
    TEMPLE = "temple"
    TOMB = "tomb"
    UNDERWATER_RUIN = "underwater_ruin"
    VOLCANIC_LAIR = "volcanic_lair"


class CreatureKind(str, Enum):
    """Category of magical creature."""

    DRAGON = "dragon"
    FEY = "fey"
    ELEMENTAL = "elemental"
    UNDEAD = "undead"
    GIANT_BEAST = "giant_beast"


class Affinity(str, Enum):
    """Elemental affinity of a magical creature."""

    FIRE = "fire"
    WATER = "water"
    EARTH = "earth"
    AIR = "air"
    ARCANE = "arcane"


BASE_DANGER: dict[DungeonKind, int] = {
    DungeonKind.CAVE: 4,
    DungeonKind.RUIN: 3,
    DungeonKind.TEMPLE: 6,
    DungeonKind.TOMB: 5,
    DungeonKind.UNDERWATER_RUIN: 5,
    DungeonKind.VOLCANIC_LAIR: 8,
}


@dataclass(frozen=True)
class CandidateSite:
    """A cell that scored high enough to host a special site."""

    cell: Cell
    score: float
    biome: Biome
    elevation: float
    on_ley_line: bool


@dataclass(frozen=True)
class DungeonSite:
    """A placed dungeon."""

    cell: Cell
    kind: DungeonKind
    danger: int
    loot: int
    age: int


@dataclass(frozen=True)
class MagicalCreature:
    """A placed magical creature."""

    cell: Cell
    kind: CreatureKind
    threat_level: int
    affinity: Affinity | None


@dataclass(frozen=True)
class SitePlacement:
    """Dungeons and creatures keyed by cell."""

    dungeons: dict[Cell, DungeonSite]
    creatures: dict[Cell, MagicalCreature]

    def entities(self) -> list[DungeonSite | MagicalCreature]:
        """All placed entities, dungeons first, in placement order."""
        return [*self.dungeons.values(), *self.creatures.values()]


def site_score_grid(
    elevation: FloatGrid,
    biomes: NDArray[np.uint8],
    ley_mask: BoolGrid,
    config: SiteConfig,
) -> FloatGrid:
    """Composite site score for every cell."""
    if ley_mask.any():
        distance = ndimage.distance_transform_edt(~ley_mask)
        proximity = np.exp(-distance / config.ley_falloff)
    else:
        proximity = np.zeros(elevation.shape, dtype=np.float64)

    shares = np.bincount(biomes.ravel(), minlength=len(Biome)) / biomes.size
    rarity = 1.0 - shares[biomes]
    extremity = np.abs(2.0 * elevation - 1.0)

    return (
        config.ley_weight * proximity
        + config.rarity_weight * rarity
        + config.elevation_weight * extremity
    )


def score_sites(
    elevation: FloatGrid,
    biomes: NDArray[np.uint8],
    ley_mask: BoolGrid,
    config: SiteConfig,
) -> list[CandidateSite]:
    """Find cells whose composite score passes the threshold.

    Args:
        elevation: Elevation grid.
        biomes: Biome code grid.
        ley_mask: Cells on a ley line.
        config: Site configuration.

    Returns:
        Candidates ordered by score (highest first), then row-major.
    """
    scores = site_score_grid(elevation, biomes, ley_mask, config)
    ys, xs = np.nonzero(scores >= config.score_threshold)
    order = np.lexsort((xs, ys, -scores[ys, xs]))
    return [
        CandidateSite(
            cell=(int(xs[i]), int(ys[i])),
            score=float(scores[ys[i], xs[i]]),
            biome=biome_from_code(biomes[ys[i], xs[i]]),
            elevation=float(elevation[ys[i], xs[i]]),
            on_ley_line=bool(ley_mask[ys[i], xs[i]]),
        )
        for i in order
    ]


def dungeon_kind(site: CandidateSite) -> DungeonKind:
    """Dungeon type suited to a site's terrain."""
    if site.biome in _WATER:
        return DungeonKind.UNDERWATER_RUIN
    if site.biome in _PEAKS and site.elevation >= 0.9:
        return DungeonKind.VOLCANIC_LAIR
    if site.on_ley_line:
        return DungeonKind.TEMPLE
    if site.biome in _PEAKS:
        return DungeonKind.CAVE
    if site.biome in _HARSH:
        return DungeonKind.TOMB
    if site.biome in _OPEN_LAND:
        return DungeonKind.RUIN
    return DungeonKind.CAVE


def _make_dungeon(site: CandidateSite, rng: SeededRNG, max_age: int) -> DungeonSite:
    kind = dungeon_kind(site)
    danger = min(10, max(1, round(BASE_DANGER[kind] * rng.next_range(0.7, 1.3))))
    loot = min(
        10,
        max(1, round((danger * 0.7 + rng.next_range(1.0, 3.0)) * rng.next_range(0.8, 1.2))),
    )
    age = round(rng.next_range(max_age * 0.1, max_age))
    return DungeonSite(cell=site.cell, kind=kind, danger=danger, loot=loot, age=age)


def _elemental_affinity(site: CandidateSite, rng: SeededRNG) -> Affinity:
    if site.biome == Biome.DESERT:
        return Affinity.FIRE
    if site.biome in _WATER or site.biome == Biome.SWAMP:
        return Affinity.WATER
    if site.biome in _PEAKS:
        return Affinity.EARTH
    if site.elevation > 0.7:
        return Affinity.AIR
    return rng.pick(list(Affinity))


def _make_creature(site: CandidateSite, rng: SeededRNG) -> MagicalCreature:
    affinity: Affinity | None = None
    if site.biome in _PEAKS and site.elevation >= 0.85:
        kind = CreatureKind.DRAGON
        threat = 10
        affinity = rng.pick([Affinity.FIRE, Affinity.EARTH, Affinity.ARCANE])
    elif site.on_ley_line:
        kind = CreatureKind.ELEMENTAL
        affinity = _elemental_affinity(site, rng)
        threat = rng.next_int(4, 8)
    elif site.biome in (Biome.DENSE_FOREST, Biome.RAINFOREST):
        kind = CreatureKind.FEY
        threat = rng.next_int(2, 5)
    elif site.biome in _HARSH:
        kind = CreatureKind.UNDEAD
        threat = rng.next_int(3, 7)
    else:
        kind = CreatureKind.GIANT_BEAST
        threat = rng.next_int(4, 9)
    return MagicalCreature(cell=site.cell, kind=kind, threat_level=threat, affinity=affinity)


def place_sites(
    candidates: list[CandidateSite],
    rng: SeededRNG,
    config: SiteConfig,
) -> SitePlacement:
    """Accept candidates independently, dungeons first.

    Each candidate becomes a dungeon with the dungeon spawn probability.
    Creatures are then offered the same candidates with their own spawn
    probability, skipping any cell that already holds a dungeon.

    Args:
        candidates: Scored candidate sites.
        rng: Random source.
        config: Site configuration.

    Returns:
        SitePlacement with exclusive occupancy.
    """
    dungeons: dict[Cell, DungeonSite] = {}
    for site in candidates:
        if rng.next_bool(config.dungeon_spawn_probability):
            dungeons[site.cell] = _make_dungeon(site, rng, config.max_dungeon_age)

    creatures: dict[Cell, MagicalCreature] = {}
    for site in candidates:
        if site.cell in dungeons or site.cell in creatures:
            continue
        if rng.next_bool(config.creature_spawn_probability):
            creatures[site.cell] = _make_creature(site, rng)

    logger.debug(
        "sites_placed",
        candidates=len(candidates),
        dungeons=len(dungeons),
        creatures=len(creatures),
    )
    return SitePlacement(dungeons=dungeons, creatures=creatures)
