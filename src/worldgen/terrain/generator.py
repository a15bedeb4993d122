"""Main world generation orchestration.

Stages run in a fixed order over an immutable in-progress state. Each stage
receives a random source forked from the run's root source by stage name,
so stages never share a draw sequence.
"""

import hashlib
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

import numpy as np
import structlog
from numpy.typing import NDArray
from scipy import ndimage

from ..config import GenerationConfig, SettlementConfig, validate_generation
from ..exceptions import GenerationCancelled, StageError
from ..rng import SeededRNG
from ..types import BoolGrid, Cell, FloatGrid, freeze
from .biomes import SEA_LEVEL, Biome, biome_from_code, biome_property_grid, classify_grid
from .climate import ClimateField, generate_climate
from .ecology import EcologicalBaseline, compute_baseline
from .fauna import FaunaPresence, distribute_fauna
from .flora import FloraPresence, distribute_flora
from .heightmap import generate_heightmap
from .hydrology import HydrologyResult, River, generate_rivers
from .resources import LeyLine, ResourceDeposit, ResourceResult, place_resources
from .sites import (
    CandidateSite,
    DungeonSite,
    MagicalCreature,
    SitePlacement,
    place_sites,
    score_sites,
)
from .tectonics import Plate, TectonicsResult, simulate_tectonics

logger = structlog.get_logger()


@dataclass(frozen=True)
class SettlementSite:
    """A cell scored as a good place to found a settlement."""

    cell: Cell
    score: float
    fresh_water: bool
    resource_density: float
    habitability: float


@dataclass(frozen=True)
class World:
    """Immutable snapshot of a generated world.

    Every grid is read-only and every sparse overlay is a read-only mapping.
    """

    seed: int
    width: int
    height: int
    config: GenerationConfig
    heightmap: FloatGrid
    elevation: FloatGrid
    tectonics: TectonicsResult
    rivers: tuple[River, ...]
    river_ids: NDArray[np.int32]
    lakes: tuple[Cell, ...]
    climate: ClimateField
    biomes: NDArray[np.uint8]
    resources: Mapping[Cell, ResourceDeposit]
    ley_lines: tuple[LeyLine, ...]
    ley_mask: BoolGrid
    flora: Mapping[Cell, tuple[FloraPresence, ...]]
    fauna: Mapping[Cell, tuple[FaunaPresence, ...]]
    site_candidates: tuple[CandidateSite, ...]
    dungeons: Mapping[Cell, DungeonSite]
    creatures: Mapping[Cell, MagicalCreature]
    ecology: EcologicalBaseline
    settlements: tuple[SettlementSite, ...]

    @property
    def plates(self) -> tuple[Plate, ...]:
        return self.tectonics.plates

    @property
    def plate_ids(self) -> NDArray[np.int32]:
        return self.tectonics.plate_ids

    def biome_at(self, cell: Cell) -> Biome:
        x, y = cell
        return biome_from_code(self.biomes[y, x])

    def biome_histogram(self) -> dict[Biome, int]:
        """Cell count for every biome, including absent ones."""
        counts = np.bincount(self.biomes.ravel(), minlength=len(Biome))
        return {biome: int(counts[i]) for i, biome in enumerate(Biome)}

    def digest(self) -> str:
        """SHA-256 over elevation, plate partition, rivers and biomes.

        Two runs with the same seed, size and config give the same digest.
        """
        h = hashlib.sha256()
        h.update(f"{self.width}x{self.height}".encode())
        h.update(np.ascontiguousarray(self.elevation, dtype="<f8").tobytes())
        h.update(np.ascontiguousarray(self.plate_ids, dtype="<i4").tobytes())
        h.update(np.ascontiguousarray(self.biomes, dtype="u1").tobytes())
        for river in self.rivers:
            h.update(f"{river.river_id}:{river.terminus.value}:".encode())
            h.update(",".join(f"{x}/{y}" for x, y in river.points).encode())
            h.update(np.asarray(river.elevations, dtype="<f8").tobytes())
        return h.hexdigest()


@dataclass(frozen=True)
class _PipelineState:
    """Accumulated stage outputs. Each stage returns a new state."""

    width: int
    height: int
    config: GenerationConfig
    heightmap: FloatGrid | None = None
    tectonics: TectonicsResult | None = None
    hydrology: HydrologyResult | None = None
    climate: ClimateField | None = None
    biomes: NDArray[np.uint8] | None = None
    resources: ResourceResult | None = None
    flora: dict = field(default_factory=dict)
    fauna: dict = field(default_factory=dict)
    site_candidates: tuple[CandidateSite, ...] = ()
    sites: SitePlacement | None = None
    ecology: EcologicalBaseline | None = None
    settlements: tuple[SettlementSite, ...] = ()


def _heightmap_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    heightmap = generate_heightmap(state.width, state.height, rng, state.config.heightmap)
    return replace(state, heightmap=heightmap)


def _tectonics_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    cfg = state.config.tectonics
    tectonics = simulate_tectonics(state.heightmap, rng, cfg.plate_count, cfg)
    return replace(state, tectonics=tectonics)


def _hydrology_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    elevation = state.tectonics.elevation
    # Rivers do not exist yet, so sources are weighted by a river-free climate
    provisional = generate_climate(elevation, config=state.config.climate)
    hydrology = generate_rivers(elevation, rng, state.config.hydrology, climate=provisional)
    return replace(state, hydrology=hydrology)


def _climate_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    climate = generate_climate(
        state.hydrology.elevation,
        river_mask=state.hydrology.river_mask,
        config=state.config.climate,
    )
    return replace(state, climate=climate)


def _biome_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    biomes = classify_grid(
        state.hydrology.elevation,
        state.climate.temperature,
        state.climate.precipitation,
    )
    return replace(state, biomes=biomes)


def _resource_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    resources = place_resources(state.biomes, state.tectonics, rng, state.config.resources)
    return replace(state, resources=resources)


def _flora_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    return replace(state, flora=distribute_flora(state.biomes, rng, state.config.life))


def _fauna_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    fauna = distribute_fauna(state.biomes, rng, state.config.life, flora=state.flora)
    return replace(state, fauna=fauna)


def _site_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    candidates = score_sites(
        state.hydrology.elevation,
        state.biomes,
        state.resources.ley_mask,
        state.config.sites,
    )
    sites = place_sites(candidates, rng, state.config.sites)
    return replace(state, site_candidates=tuple(candidates), sites=sites)


def _ecology_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    ecology = compute_baseline(
        state.biomes,
        state.fauna,
        flora=state.flora,
        resources=state.resources.deposits,
        ley_mask=state.resources.ley_mask,
        region_size=state.config.ecology.region_size,
        land_mask=state.hydrology.elevation >= SEA_LEVEL,
    )
    return replace(state, ecology=ecology)


def _settlement_stage(state: _PipelineState, rng: SeededRNG) -> _PipelineState:
    settlements = score_settlements(
        state.hydrology.elevation,
        state.biomes,
        state.hydrology.river_mask,
        state.resources.deposits,
        state.config.settlements,
    )
    return replace(state, settlements=tuple(settlements))


Stage = Callable[[_PipelineState, SeededRNG], _PipelineState]

# Fixed dependency order; every stage runs exactly once per world
STAGES: tuple[tuple[str, Stage], ...] = (
    ("heightmap", _heightmap_stage),
    ("tectonics", _tectonics_stage),
    ("hydrology", _hydrology_stage),
    ("climate", _climate_stage),
    ("biomes", _biome_stage),
    ("resources", _resource_stage),
    ("flora", _flora_stage),
    ("fauna", _fauna_stage),
    ("sites", _site_stage),
    ("ecology", _ecology_stage),
    ("settlements", _settlement_stage),
)

STAGE_NAMES: tuple[str, ...] = tuple(name for name, _ in STAGES)


def score_settlements(
    elevation: FloatGrid,
    biomes: NDArray[np.uint8],
    river_mask: BoolGrid,
    deposits: Mapping[Cell, ResourceDeposit],
    config: SettlementConfig,
) -> list[SettlementSite]:
    """Rank land cells as settlement sites.

    Score combines biome habitability, a river point within
    ``river_radius`` cells and the share of deposit cells in the
    surrounding window.

    Args:
        elevation: Final elevation grid.
        biomes: Biome code grid.
        river_mask: River cells.
        deposits: Resource deposits keyed by cell.
        config: Settlement configuration.

    Returns:
        The best ``config.count`` sites, highest score first.
    """
    height, width = biomes.shape
    habitability = biome_property_grid(biomes, "habitability")

    if config.river_radius > 0 and river_mask.any():
        fresh_water = ndimage.binary_dilation(
            river_mask, structure=np.ones((3, 3), dtype=bool), iterations=config.river_radius
        )
    else:
        fresh_water = river_mask.copy()

    deposit_mask = np.zeros((height, width), dtype=np.float64)
    for x, y in deposits:
        deposit_mask[y, x] = 1.0
    window = 2 * config.resource_radius + 1
    density = ndimage.uniform_filter(deposit_mask, size=window, mode="constant")

    score = (
        config.habitability_weight * habitability
        + config.water_weight * fresh_water
        + config.resource_weight * density
    )
    eligible = (elevation >= SEA_LEVEL) & (habitability > 0) & ~river_mask
    ys, xs = np.nonzero(eligible)
    order = np.lexsort((xs, ys, -score[ys, xs]))[: config.count]

    return [
        SettlementSite(
            cell=(int(xs[i]), int(ys[i])),
            score=float(score[ys[i], xs[i]]),
            fresh_water=bool(fresh_water[ys[i], xs[i]]),
            resource_density=float(density[ys[i], xs[i]]),
            habitability=float(habitability[ys[i], xs[i]]),
        )
        for i in order
    ]


def _snapshot(seed: int, state: _PipelineState) -> World:
    tectonics = state.tectonics
    for grid in (
        tectonics.plate_ids,
        tectonics.boundary,
        tectonics.stress,
        tectonics.intensity,
        tectonics.elevation,
    ):
        freeze(grid)
    climate = state.climate
    for grid in (
        climate.temperature,
        climate.precipitation,
        climate.moisture,
        climate.water_distance,
    ):
        freeze(grid)

    return World(
        seed=seed,
        width=state.width,
        height=state.height,
        config=state.config,
        heightmap=freeze(state.heightmap),
        elevation=freeze(state.hydrology.elevation),
        tectonics=tectonics,
        rivers=state.hydrology.rivers,
        river_ids=freeze(state.hydrology.river_ids),
        lakes=state.hydrology.lakes,
        climate=climate,
        biomes=freeze(state.biomes),
        resources=MappingProxyType(state.resources.deposits),
        ley_lines=state.resources.ley_lines,
        ley_mask=freeze(state.resources.ley_mask),
        flora=MappingProxyType(state.flora),
        fauna=MappingProxyType(state.fauna),
        site_candidates=state.site_candidates,
        dungeons=MappingProxyType(state.sites.dungeons),
        creatures=MappingProxyType(state.sites.creatures),
        ecology=state.ecology,
        settlements=state.settlements,
    )


def generate_world(
    seed: int,
    width: int,
    height: int,
    config: GenerationConfig | None = None,
    rng: SeededRNG | None = None,
    cancel: Callable[[], bool] | None = None,
) -> World:
    """Generate a complete world from a seed.

    Configuration is validated before any random source is built or drawn
    from. Any stage failure aborts the run; no partial world is returned.

    Args:
        seed: Root seed of the run.
        width: Grid width in cells.
        height: Grid height in cells.
        config: Generation configuration (defaults when omitted).
        rng: Optional root random source. When given it replaces ``seed``;
            stages only fork it, so its own state never advances.
        cancel: Optional callback checked between stages; returning True
            abandons the run.

    Returns:
        The immutable World snapshot.

    Raises:
        ConfigValidationError: If dimensions or configuration are invalid.
        StageError: If a stage fails; names the stage.
        GenerationCancelled: If ``cancel`` requested a stop.
    """
    if config is None:
        config = GenerationConfig()
    validate_generation(width, height, config).raise_if_failed()
    # The snapshot keeps its own copy of the settings
    config = config.model_copy(deep=True)

    if rng is None:
        rng = SeededRNG(seed)

    logger.info("generation_started", seed=rng.seed, width=width, height=height)
    start = time.perf_counter()

    state = _PipelineState(width=width, height=height, config=config)
    completed: str | None = None
    for name, stage in STAGES:
        if cancel is not None and cancel():
            logger.warning("generation_cancelled", after_stage=completed)
            raise GenerationCancelled(completed)

        stage_start = time.perf_counter()
        try:
            state = stage(state, rng.fork(name))
        except Exception as e:
            logger.error("stage_failed", stage=name, error=str(e))
            raise StageError(name, e) from e
        logger.info(
            "stage_complete",
            stage=name,
            duration_ms=round((time.perf_counter() - stage_start) * 1000, 1),
        )
        completed = name

    world = _snapshot(rng.seed, state)
    logger.info(
        "generation_complete",
        duration_ms=round((time.perf_counter() - start) * 1000, 1),
        plates=len(world.plates),
        rivers=len(world.rivers),
        dungeons=len(world.dungeons),
        creatures=len(world.creatures),
    )
    return world
