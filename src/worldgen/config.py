"""Generation configuration models and validation."""

import math
import tomllib
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigValidationError


class WindDirection(str, Enum):
    """Side of the map the prevailing wind blows from."""

    WEST = "west"
    EAST = "east"
    NORTH = "north"
    SOUTH = "south"


class HeightmapConfig(BaseModel):
    """Fractal noise parameters for the base elevation field."""

    octaves: int = Field(default=6, description="Number of octaves for fBm")
    persistence: float = Field(default=0.5, description="Amplitude multiplier per octave")
    lacunarity: float = Field(default=2.0, description="Frequency multiplier per octave")
    scale: float = Field(default=0.02, description="Noise frequency per cell")
    edge_falloff: float = Field(
        default=0.12,
        description="Fraction of each dimension pushed toward ocean at the borders (0 disables)",
    )


class TectonicsConfig(BaseModel):
    """Plate simulation parameters."""

    plate_count: int = Field(default=8, description="Number of tectonic plates")
    oceanic_fraction: float = Field(
        default=0.4, description="Probability that a plate is oceanic"
    )
    transform_threshold: float = Field(
        default=0.15, description="Stress magnitude below which a boundary is transform"
    )
    continental_uplift: float = Field(
        default=0.45, description="Uplift where two continental plates converge"
    )
    coastal_uplift: float = Field(
        default=0.25, description="Uplift on the continental side of a subduction zone"
    )
    trench_depth: float = Field(
        default=0.3, description="Depression on the oceanic side of a subduction zone"
    )
    island_arc_uplift: float = Field(
        default=0.2, description="Uplift where two oceanic plates converge"
    )
    rift_depth: float = Field(default=0.25, description="Depression along divergent boundaries")
    spread_sigma: float = Field(
        default=1.0, description="Gaussian sigma spreading boundary deltas (0 disables)"
    )


class HydrologyConfig(BaseModel):
    """River tracing and carving parameters."""

    source_percentile: float = Field(
        default=85.0, description="Land elevation percentile above which rivers may start"
    )
    river_count: int | None = Field(
        default=None, description="Rivers to trace (default: max(5, area // 5000))"
    )
    source_acceptance: float = Field(
        default=0.7, description="Probability of accepting each source candidate"
    )
    min_source_spacing: int = Field(
        default=6, description="Minimum Chebyshev distance between river sources"
    )
    max_steps: int | None = Field(
        default=None, description="Maximum points per river (default: width + height)"
    )
    min_length: int = Field(default=3, description="Shorter rivers are discarded")
    carve_depth: float = Field(default=0.01, description="Base carving depth along a river")
    precipitation_weight: float = Field(
        default=0.0, description="Extra flow per step scaled by local precipitation"
    )


class ClimateConfig(BaseModel):
    """Temperature and precipitation model parameters."""

    prevailing_wind: WindDirection = Field(
        default=WindDirection.WEST, description="Side the prevailing wind blows from"
    )
    equator_temperature: float = Field(
        default=32.0, description="Sea-level temperature at the equator (C)"
    )
    pole_temperature: float = Field(
        default=-28.0, description="Sea-level temperature at the poles (C)"
    )
    lapse_rate: float = Field(
        default=45.0, description="Cooling (C) from sea level to the highest possible land"
    )
    coastal_moderation: float = Field(
        default=5.0, description="Maximum pull toward the mean temperature near water (C)"
    )
    moderation_distance: float = Field(
        default=8.0, description="Distance over which coastal moderation fades (cells)"
    )
    base_precipitation: float = Field(default=30.0, description="Baseline precipitation (cm/year)")
    ocean_moisture: float = Field(
        default=170.0, description="Precipitation added right next to water (cm/year)"
    )
    water_decay: float = Field(
        default=10.0, description="E-folding distance of water-driven precipitation (cells)"
    )
    equatorial_boost: float = Field(
        default=200.0, description="Extra precipitation at the equator (cm/year)"
    )
    orographic_boost: float = Field(
        default=60.0, description="Extra precipitation on windward slopes (cm/year)"
    )
    shadow_elevation: float = Field(
        default=0.7, description="Elevation at which terrain blocks moisture"
    )
    shadow_distance: int = Field(
        default=12, description="Upwind search distance for barriers (cells)"
    )
    shadow_step: float = Field(
        default=0.15, description="Precipitation reduction per upwind barrier"
    )
    shadow_cap: float = Field(default=0.8, description="Maximum rain-shadow reduction")
    moisture_reference: float = Field(
        default=250.0, description="Precipitation that maps to full moisture (cm/year)"
    )


class ResourceConfig(BaseModel):
    """Resource deposit and ley line parameters."""

    ley_line_count: int | None = Field(
        default=None, description="Ley lines to trace (default: max(3, area // 20000))"
    )
    ley_stress_percentile: float = Field(
        default=90.0, description="Boundary intensity percentile for ley anchors"
    )
    tectonic_bias: float = Field(
        default=1.5, description="Deposit chance multiplier per unit convergent intensity"
    )
    ore_bias: float = Field(default=3.0, description="Ore weight multiplier per unit intensity")
    ley_weight: float = Field(
        default=40.0, description="Weight of magical components on ley line cells"
    )


class LifeConfig(BaseModel):
    """Flora and fauna distribution parameters."""

    noise_scale: float = Field(default=0.08, description="Frequency of the clustering noise")
    max_species_per_cell: int = Field(default=2, description="Species slots per cell")
    population_scale: float = Field(
        default=0.1, description="Fraction of base population present per occupied cell"
    )


class SiteConfig(BaseModel):
    """Magical creature and dungeon placement parameters."""

    dungeon_spawn_probability: float = Field(
        default=0.05, description="Chance that a candidate site receives a dungeon"
    )
    creature_spawn_probability: float = Field(
        default=0.04, description="Chance that a candidate site receives a magical creature"
    )
    score_threshold: float = Field(default=0.55, description="Minimum composite site score")
    ley_falloff: float = Field(default=4.0, description="Ley proximity decay distance (cells)")
    ley_weight: float = Field(default=0.4, description="Weight of ley line proximity")
    rarity_weight: float = Field(default=0.35, description="Weight of biome rarity")
    elevation_weight: float = Field(default=0.25, description="Weight of elevation extremity")
    max_dungeon_age: int = Field(default=500, description="Oldest possible dungeon (years)")


class SettlementConfig(BaseModel):
    """Settlement candidate scoring parameters."""

    count: int = Field(default=10, description="Number of candidates to keep")
    river_radius: int = Field(default=3, description="Fresh water search radius (cells)")
    resource_radius: int = Field(default=4, description="Resource density window radius (cells)")
    habitability_weight: float = Field(default=0.45, description="Weight of biome habitability")
    water_weight: float = Field(default=0.35, description="Weight of fresh water access")
    resource_weight: float = Field(default=0.2, description="Weight of nearby resource density")


class EcologyConfig(BaseModel):
    """Ecological baseline aggregation parameters."""

    region_size: int | None = Field(
        default=None, description="Region edge in cells (default: max(10, min(w, h) // 10))"
    )


class GenerationConfig(BaseModel):
    """Complete world generation configuration."""

    heightmap: HeightmapConfig = Field(default_factory=HeightmapConfig)
    tectonics: TectonicsConfig = Field(default_factory=TectonicsConfig)
    hydrology: HydrologyConfig = Field(default_factory=HydrologyConfig)
    climate: ClimateConfig = Field(default_factory=ClimateConfig)
    resources: ResourceConfig = Field(default_factory=ResourceConfig)
    life: LifeConfig = Field(default_factory=LifeConfig)
    sites: SiteConfig = Field(default_factory=SiteConfig)
    settlements: SettlementConfig = Field(default_factory=SettlementConfig)
    ecology: EcologyConfig = Field(default_factory=EcologyConfig)


def _finite(value: float | None) -> bool:
    """Range checks skip missing and non-finite values; require_finite reports the latter."""
    return value is not None and math.isfinite(value)


class ValidationResult:
    """Collected configuration violations."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    @property
    def passed(self) -> bool:
        return not self.errors

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.errors.append(message)

    def require_finite(self, section: str, model: BaseModel) -> None:
        """Reject NaN and infinite values in every float field of a section."""
        for name, value in model:
            if isinstance(value, float) and not math.isfinite(value):
                self.add_error(f"{section}.{name} must be finite, got {value}")

    def require_positive(self, name: str, value: float | None) -> None:
        if _finite(value) and value <= 0:
            self.add_error(f"{name} must be positive, got {value}")

    def require_non_negative(self, name: str, value: float | None) -> None:
        if _finite(value) and value < 0:
            self.add_error(f"{name} must be non-negative, got {value}")

    def require_unit(self, name: str, value: float) -> None:
        if _finite(value) and not 0.0 <= value <= 1.0:
            self.add_error(f"{name} must be within [0, 1], got {value}")

    def require_percentile(self, name: str, value: float) -> None:
        if _finite(value) and not 0.0 <= value <= 100.0:
            self.add_error(f"{name} must be within [0, 100], got {value}")

    def raise_if_failed(self) -> None:
        """Raise one aggregate error listing every violation."""
        if self.errors:
            raise ConfigValidationError(self.errors)


def validate_generation(
    width: int, height: int, config: GenerationConfig
) -> ValidationResult:
    """Check dimensions and configuration before any stage runs.

    Every violation is collected rather than stopping at the first one.

    Args:
        width: Grid width in cells.
        height: Grid height in cells.
        config: Generation configuration.

    Returns:
        ValidationResult with all errors found.
    """
    result = ValidationResult()
    result.require_positive("width", width)
    result.require_positive("height", height)

    for section, model in config:
        result.require_finite(section, model)

    hm = config.heightmap
    result.require_positive("heightmap.octaves", hm.octaves)
    result.require_positive("heightmap.persistence", hm.persistence)
    result.require_positive("heightmap.lacunarity", hm.lacunarity)
    result.require_positive("heightmap.scale", hm.scale)
    if _finite(hm.edge_falloff) and not 0.0 <= hm.edge_falloff < 0.5:
        result.add_error(f"heightmap.edge_falloff must be within [0, 0.5), got {hm.edge_falloff}")

    tec = config.tectonics
    result.require_positive("tectonics.plate_count", tec.plate_count)
    if width > 0 and height > 0 and tec.plate_count > width * height:
        result.add_error(
            f"tectonics.plate_count ({tec.plate_count}) exceeds cell count ({width * height})"
        )
    result.require_unit("tectonics.oceanic_fraction", tec.oceanic_fraction)
    result.require_non_negative("tectonics.transform_threshold", tec.transform_threshold)
    result.require_non_negative("tectonics.spread_sigma", tec.spread_sigma)

    hyd = config.hydrology
    result.require_percentile("hydrology.source_percentile", hyd.source_percentile)
    result.require_unit("hydrology.source_acceptance", hyd.source_acceptance)
    result.require_non_negative("hydrology.river_count", hyd.river_count)
    result.require_positive("hydrology.max_steps", hyd.max_steps)
    result.require_positive("hydrology.min_length", hyd.min_length)
    result.require_non_negative("hydrology.min_source_spacing", hyd.min_source_spacing)
    result.require_non_negative("hydrology.carve_depth", hyd.carve_depth)

    cli = config.climate
    result.require_positive("climate.water_decay", cli.water_decay)
    result.require_positive("climate.moderation_distance", cli.moderation_distance)
    result.require_positive("climate.moisture_reference", cli.moisture_reference)
    result.require_non_negative("climate.shadow_distance", cli.shadow_distance)
    result.require_unit("climate.shadow_step", cli.shadow_step)
    result.require_unit("climate.shadow_cap", cli.shadow_cap)

    res = config.resources
    result.require_non_negative("resources.ley_line_count", res.ley_line_count)
    result.require_percentile("resources.ley_stress_percentile", res.ley_stress_percentile)

    life = config.life
    result.require_positive("life.noise_scale", life.noise_scale)
    result.require_positive("life.max_species_per_cell", life.max_species_per_cell)
    result.require_positive("life.population_scale", life.population_scale)

    sites = config.sites
    result.require_unit("sites.dungeon_spawn_probability", sites.dungeon_spawn_probability)
    result.require_unit("sites.creature_spawn_probability", sites.creature_spawn_probability)
    result.require_unit("sites.score_threshold", sites.score_threshold)
    result.require_positive("sites.ley_falloff", sites.ley_falloff)
    result.require_non_negative("sites.max_dungeon_age", sites.max_dungeon_age)

    settle = config.settlements
    result.require_non_negative("settlements.count", settle.count)
    result.require_non_negative("settlements.river_radius", settle.river_radius)
    result.require_non_negative("settlements.resource_radius", settle.resource_radius)

    result.require_positive("ecology.region_size", config.ecology.region_size)
    return result


def load_config(config_path: Path) -> GenerationConfig:
    """Load generation configuration from a TOML file.

    Args:
        config_path: Path to the TOML config file.

    Returns:
        Parsed GenerationConfig.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        tomllib.TOMLDecodeError: If TOML is malformed.
        ConfigValidationError: If values have the wrong type or shape.
    """
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    try:
        return GenerationConfig.model_validate(data)
    except ValidationError as e:
        messages = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigValidationError(messages) from e
