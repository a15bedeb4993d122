"""Tests for the heightmap stage."""

import numpy as np

from worldgen.config import HeightmapConfig
from worldgen.rng import SeededRNG
from worldgen.terrain.heightmap import edge_fade, generate_heightmap, normalize


class TestGenerateHeightmap:
    """Tests for fBm elevation generation."""

    def test_output_shape(self) -> None:
        """Grid is indexed [y, x]."""
        result = generate_heightmap(40, 25, SeededRNG(1), HeightmapConfig())
        assert result.shape == (25, 40)

    def test_normalized_range(self) -> None:
        """Elevation spans exactly [0, 1]."""
        result = generate_heightmap(48, 48, SeededRNG(1), HeightmapConfig())
        assert result.min() == 0.0
        assert result.max() == 1.0

    def test_deterministic(self) -> None:
        """Same seed and config give identical grids."""
        a = generate_heightmap(32, 32, SeededRNG(7), HeightmapConfig())
        b = generate_heightmap(32, 32, SeededRNG(7), HeightmapConfig())
        np.testing.assert_array_equal(a, b)

    def test_different_seed(self) -> None:
        """Different seeds give different terrain."""
        a = generate_heightmap(32, 32, SeededRNG(7), HeightmapConfig())
        b = generate_heightmap(32, 32, SeededRNG(8), HeightmapConfig())
        assert not np.allclose(a, b)

    def test_edges_lower_than_interior(self) -> None:
        """Edge falloff pushes the border toward ocean."""
        result = generate_heightmap(64, 64, SeededRNG(3), HeightmapConfig(edge_falloff=0.2))
        border = np.concatenate([result[0], result[-1], result[:, 0], result[:, -1]])
        assert border.mean() < result[16:48, 16:48].mean()

    def test_single_cell(self) -> None:
        """A 1x1 grid is constant and therefore zero."""
        result = generate_heightmap(1, 1, SeededRNG(3), HeightmapConfig())
        assert result.shape == (1, 1)
        assert result[0, 0] == 0.0


class TestEdgeFade:
    """Tests for the border fade weights."""

    def test_disabled(self) -> None:
        """Zero falloff leaves every weight at 1."""
        np.testing.assert_array_equal(edge_fade(10, 8, 0.0), np.ones((8, 10)))

    def test_border_zero_center_one(self) -> None:
        """Borders fade to 0 and the center stays at 1."""
        fade = edge_fade(50, 50, 0.1)
        assert fade[0, 25] == 0.0
        assert fade[25, 0] == 0.0
        assert fade[25, 25] == 1.0


class TestNormalize:
    """Tests for min-max normalization."""

    def test_range(self) -> None:
        """Output spans [0, 1]."""
        result = normalize(np.array([[2.0, 4.0], [6.0, 10.0]]))
        np.testing.assert_allclose(result, [[0.0, 0.25], [0.5, 1.0]])

    def test_constant_field(self) -> None:
        """A flat field normalizes to zeros."""
        np.testing.assert_array_equal(normalize(np.full((3, 3), 0.7)), np.zeros((3, 3)))
