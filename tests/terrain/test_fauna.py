"""Tests for fauna distribution."""

import numpy as np

from worldgen.config import LifeConfig
from worldgen.rng import SeededRNG
from worldgen.terrain.biomes import Biome, biome_code, biome_from_code
from worldgen.terrain.fauna import BIOME_FAUNA, distribute_fauna
from worldgen.terrain.flora import FloraPresence, FloraSpecies


def _biomes(biome: Biome, size: int = 40) -> np.ndarray:
    return np.full((size, size), biome_code(biome), dtype=np.uint8)


class TestDistributeFauna:
    """Tests for per-cell animal placement."""

    def test_species_match_templates(self) -> None:
        """Species and traits come from the biome's templates."""
        biomes = _biomes(Biome.FOREST)
        fauna = distribute_fauna(biomes, SeededRNG(1), LifeConfig())
        assert fauna
        templates = {t.species: t for t in BIOME_FAUNA[Biome.FOREST]}
        for (x, y), entries in fauna.items():
            assert biome_from_code(biomes[y, x]) == Biome.FOREST
            for entry in entries:
                template = templates[entry.species]
                assert entry.is_predator == template.is_predator
                assert entry.threat_level == template.threat_level
                assert entry.behavior == template.behavior

    def test_population_positive(self) -> None:
        """Every present species has at least one animal."""
        fauna = distribute_fauna(_biomes(Biome.GRASSLAND), SeededRNG(2), LifeConfig())
        for entries in fauna.values():
            for entry in entries:
                assert entry.population >= 1
                assert 0.01 <= entry.density <= 1.0

    def test_no_fauna_without_table(self) -> None:
        """Biomes without templates hold no animals."""
        assert distribute_fauna(_biomes(Biome.ICE_CAP), SeededRNG(3), LifeConfig()) == {}

    def test_unique_species_per_cell(self) -> None:
        """No species appears twice on one cell."""
        config = LifeConfig(max_species_per_cell=4)
        fauna = distribute_fauna(_biomes(Biome.DENSE_FOREST), SeededRNG(4), config)
        for entries in fauna.values():
            assert len(entries) <= 4
            assert len({e.species for e in entries}) == len(entries)

    def test_herbivores_follow_plants(self) -> None:
        """Plant cover raises herbivore density and leaves predators alone."""
        biomes = _biomes(Biome.GRASSLAND)
        lush = {
            (x, y): (FloraPresence(FloraSpecies.TALL_GRASS, 1.0, 1.0),)
            for y in range(40)
            for x in range(40)
        }
        bare = distribute_fauna(biomes, SeededRNG(5), LifeConfig())
        green = distribute_fauna(biomes, SeededRNG(5), LifeConfig(), flora=lush)
        assert bare.keys() == green.keys()

        raised = 0
        for cell, entries in bare.items():
            for before, after in zip(entries, green[cell]):
                assert before.species == after.species
                if before.is_predator:
                    assert after.density == before.density
                else:
                    assert after.density >= before.density
                    raised += after.density > before.density
        assert raised > 0

    def test_population_scale(self) -> None:
        """Larger population scale never lowers populations."""
        biomes = _biomes(Biome.SAVANNA)
        small = distribute_fauna(biomes, SeededRNG(6), LifeConfig(population_scale=0.1))
        large = distribute_fauna(biomes, SeededRNG(6), LifeConfig(population_scale=1.0))
        assert sum(e.population for v in large.values() for e in v) > sum(
            e.population for v in small.values() for e in v
        )

    def test_deterministic(self) -> None:
        """Same seed, same fauna."""
        biomes = _biomes(Biome.TAIGA)
        assert distribute_fauna(biomes, SeededRNG(7), LifeConfig()) == distribute_fauna(
            biomes, SeededRNG(7), LifeConfig()
        )
