"""Tests for the biome classification table."""

import numpy as np
import pytest

from worldgen.terrain.biomes import (
    BIOME_CODES,
    BIOME_PROPERTIES,
    Biome,
    biome_code,
    biome_from_code,
    biome_property_grid,
    classify,
    classify_grid,
)


class TestClassify:
    """Tests for single-cell classification."""

    @pytest.mark.parametrize(
        "elevation,temperature,precipitation,expected",
        [
            (0.1, 25.0, 300.0, Biome.DEEP_OCEAN),
            (0.3, -30.0, 0.0, Biome.OCEAN),
            (0.95, 30.0, 100.0, Biome.SNOW),
            (0.8, -10.0, 100.0, Biome.SNOW),
            (0.8, 0.0, 100.0, Biome.MOUNTAIN),
            (0.43, 20.0, 200.0, Biome.SWAMP),
            (0.41, 20.0, 50.0, Biome.COAST),
            (0.6, -20.0, 10.0, Biome.ICE_CAP),
            (0.6, -5.0, 70.0, Biome.TAIGA),
            (0.6, 15.0, 70.0, Biome.FOREST),
            (0.6, 15.0, 40.0, Biome.GRASSLAND),
            (0.6, 30.0, 10.0, Biome.DESERT),
            (0.6, 23.0, 40.0, Biome.SAVANNA),
            (0.6, 23.0, 250.0, Biome.RAINFOREST),
            (0.6, 15.0, 150.0, Biome.DENSE_FOREST),
        ],
    )
    def test_table(
        self, elevation: float, temperature: float, precipitation: float, expected: Biome
    ) -> None:
        """Known inputs land in their table cell."""
        assert classify(elevation, temperature, precipitation) == expected

    def test_sea_level_overrides_climate(self) -> None:
        """Below sea level is ocean whatever the climate."""
        for temperature in (-40.0, 0.0, 40.0):
            for precipitation in (0.0, 500.0):
                assert classify(0.35, temperature, precipitation) == Biome.OCEAN

    def test_band_edges_upper_exclusive(self) -> None:
        """A value equal to a band edge belongs to the next band."""
        assert classify(0.6, 0.0, 10.0) == Biome.GRASSLAND
        assert classify(0.6, -0.001, 10.0) == Biome.TUNDRA

    def test_repeatable(self) -> None:
        """Repeated calls give the same category."""
        results = {classify(0.55, 12.5, 95.0) for _ in range(50)}
        assert len(results) == 1


class TestClassifyGrid:
    """Tests for the vectorized classifier."""

    def test_matches_scalar(self) -> None:
        """Every cell agrees with classify(), including band edges."""
        elevations = np.array([0.1, 0.2, 0.39, 0.4, 0.41, 0.42, 0.43, 0.6, 0.78, 0.9])
        temperatures = np.array([-20.0, -15.0, -5.0, 0.0, 5.0, 10.0, 20.0, 26.0, 35.0])
        precipitations = np.array([0.0, 25.0, 60.0, 119.0, 120.0, 150.0, 200.0, 400.0])
        e, t, p = np.meshgrid(elevations, temperatures, precipitations, indexing="ij")
        e, t, p = e.reshape(-1, 1), t.reshape(-1, 1), p.reshape(-1, 1)

        codes = classify_grid(e, t, p)
        assert codes.dtype == np.uint8
        for i in range(e.shape[0]):
            expected = classify(float(e[i, 0]), float(t[i, 0]), float(p[i, 0]))
            assert biome_from_code(codes[i, 0]) == expected

    def test_overrides_mixed_with_table(self) -> None:
        """Elevation overrides and climate-table cells combine in one uint8 grid."""
        elevation = np.array([[0.1, 0.3, 0.95, 0.55]])
        temperature = np.full((1, 4), 20.0)
        precipitation = np.full((1, 4), 150.0)

        codes = classify_grid(elevation, temperature, precipitation)
        assert codes.dtype == np.uint8
        assert [biome_from_code(c) for c in codes[0]] == [
            Biome.DEEP_OCEAN,
            Biome.OCEAN,
            Biome.SNOW,
            classify(0.55, 20.0, 150.0),
        ]

    def test_shape_preserved(self) -> None:
        """Output matches input shape."""
        grid = np.full((4, 6), 0.5)
        assert classify_grid(grid, grid * 20, grid * 100).shape == (4, 6)


class TestBiomeTables:
    """Tests for codes and static properties."""

    def test_codes_unique(self) -> None:
        """Every biome has its own code."""
        assert sorted(BIOME_CODES.values()) == list(range(len(Biome)))

    def test_code_round_trip(self) -> None:
        """Code lookup inverts biome_code."""
        for biome in Biome:
            assert biome_from_code(biome_code(biome)) == biome

    def test_properties_complete(self) -> None:
        """Every biome has properties."""
        assert set(BIOME_PROPERTIES) == set(Biome)

    def test_only_oceans_are_water(self) -> None:
        """Water flag marks the two ocean depths."""
        water = {b for b, props in BIOME_PROPERTIES.items() if props.water}
        assert water == {Biome.DEEP_OCEAN, Biome.OCEAN}

    def test_property_grid(self) -> None:
        """Per-cell property lookup."""
        biomes = np.array([[biome_code(Biome.GRASSLAND), biome_code(Biome.OCEAN)]], dtype=np.uint8)
        np.testing.assert_array_equal(biome_property_grid(biomes, "habitability"), [[1.0, 0.0]])
