"""Tests for river source selection, tracing and carving."""

import numpy as np
import pytest

from worldgen.config import HydrologyConfig
from worldgen.rng import SeededRNG
from worldgen.terrain.biomes import SEA_LEVEL
from worldgen.terrain.hydrology import (
    NO_RIVER,
    Terminus,
    carve_path,
    generate_rivers,
    select_river_sources,
    trace_river,
)


def _no_rivers(shape: tuple[int, int]) -> np.ndarray:
    return np.full(shape, NO_RIVER, dtype=np.int32)


class TestTraceRiver:
    """Tests for greedy downhill tracing."""

    def test_reaches_edge(self, slope_elevation: np.ndarray) -> None:
        """On a tilted plane the river runs to the low border."""
        trace = trace_river(slope_elevation, (20, 16), _no_rivers((32, 32)), 100)
        assert trace.terminus == Terminus.EDGE
        x, y = trace.points[-1]
        assert x == 0 or y in (0, 31)

    def test_tie_break_scan_order(self, slope_elevation: np.ndarray) -> None:
        """Equally low neighbours resolve to the first in N, NE, E, SE, S, SW, W, NW order."""
        trace = trace_river(slope_elevation, (15, 15), _no_rivers((32, 32)), 2)
        assert trace.points == [(15, 15), (14, 16)]

    def test_flat_terrain_is_lake(self) -> None:
        """No strictly lower neighbour ends the river in a lake."""
        flat = np.full((10, 10), 0.6)
        trace = trace_river(flat, (5, 5), _no_rivers((10, 10)), 50)
        assert trace.terminus == Terminus.LAKE
        assert trace.points == [(5, 5)]

    def test_step_limit(self, slope_elevation: np.ndarray) -> None:
        """The path never exceeds the step bound."""
        trace = trace_river(slope_elevation, (30, 3), _no_rivers((32, 32)), 3)
        assert trace.terminus == Terminus.STEP_LIMIT
        assert len(trace.points) == 3

    def test_reaches_sea(self, slope_elevation: np.ndarray) -> None:
        """Entering water ends the river."""
        elevation = slope_elevation.copy()
        elevation[:, :10] = SEA_LEVEL - 0.1
        trace = trace_river(elevation, (20, 16), _no_rivers((32, 32)), 100)
        assert trace.terminus == Terminus.SEA
        x, y = trace.points[-1]
        assert elevation[y, x] < SEA_LEVEL

    def test_merge(self, slope_elevation: np.ndarray) -> None:
        """Entering a claimed cell merges into that river."""
        river_ids = _no_rivers((32, 32))
        river_ids[:, 12] = 4
        trace = trace_river(slope_elevation, (20, 16), river_ids, 100)
        assert trace.terminus == Terminus.MERGE
        assert trace.merges_into == 4
        assert trace.points[-1][0] == 12

    def test_flow_accumulates(self, slope_elevation: np.ndarray) -> None:
        """Flow grows by one per step without a gain field."""
        trace = trace_river(slope_elevation, (20, 16), _no_rivers((32, 32)), 5)
        assert trace.flow == [1.0, 2.0, 3.0, 4.0, 5.0]


class TestCarvePath:
    """Tests for carving a river bed."""

    def test_non_increasing(self) -> None:
        """Carved levels never rise, even over a bump."""
        grid = np.array([[0.8, 0.7, 0.75, 0.6, 0.5]])
        points = [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]
        levels = carve_path(grid, points, 0.01, keep_last=False)
        assert all(a >= b for a, b in zip(levels, levels[1:]))
        assert levels == [grid[0, x] for x in range(5)]

    def test_keep_last_untouched(self) -> None:
        """A merge endpoint keeps its height and the path stays above it."""
        grid = np.array([[0.8, 0.7, 0.65]])
        levels = carve_path(grid, [(0, 0), (1, 0), (2, 0)], 0.1, keep_last=True)
        assert grid[0, 2] == 0.65
        assert levels[-1] == 0.65
        assert all(level >= 0.65 for level in levels)
        assert all(a >= b for a, b in zip(levels, levels[1:]))

    def test_never_negative(self) -> None:
        """Deep carving clamps at zero."""
        grid = np.array([[0.05, 0.01]])
        levels = carve_path(grid, [(0, 0), (1, 0)], 0.5, keep_last=False)
        assert min(levels) == 0.0


class TestSelectRiverSources:
    """Tests for source selection."""

    def test_spacing(self, slope_elevation: np.ndarray) -> None:
        """Accepted sources keep the minimum Chebyshev distance."""
        config = HydrologyConfig(source_acceptance=1.0, min_source_spacing=5)
        sources = select_river_sources(slope_elevation, SeededRNG(1), config, 6)
        assert len(sources) == 6
        for i, (ax, ay) in enumerate(sources):
            for bx, by in sources[i + 1 :]:
                assert max(abs(ax - bx), abs(ay - by)) >= 5

    def test_highest_first(self, slope_elevation: np.ndarray) -> None:
        """With certain acceptance the first source is the highest cell."""
        config = HydrologyConfig(source_acceptance=1.0)
        sources = select_river_sources(slope_elevation, SeededRNG(1), config, 1)
        assert sources == [(31, 0)]

    def test_no_land(self) -> None:
        """An all-ocean grid has no sources."""
        sources = select_river_sources(np.zeros((8, 8)), SeededRNG(1), HydrologyConfig(), 3)
        assert sources == []

    def test_zero_acceptance(self, slope_elevation: np.ndarray) -> None:
        """Acceptance probability 0 rejects every candidate."""
        config = HydrologyConfig(source_acceptance=0.0)
        assert select_river_sources(slope_elevation, SeededRNG(1), config, 4) == []


class TestGenerateRivers:
    """Tests for the hydrology stage."""

    @pytest.fixture
    def bowl(self) -> np.ndarray:
        """Noisy 40x40 terrain: ocean at the rim, high ground in the middle."""
        ys, xs = np.mgrid[0:40, 0:40]
        radial = 1.0 - np.hypot(xs - 20, ys - 20) / 28.0
        bumps = 0.01 * np.sin(xs * 0.9) * np.cos(ys * 0.7)
        return np.clip(radial + bumps, 0.0, 1.0)

    def test_monotonic_and_bounded(self, bowl: np.ndarray) -> None:
        """Every river descends end to end and respects the step bound."""
        config = HydrologyConfig(river_count=8, max_steps=30, min_source_spacing=3)
        result = generate_rivers(bowl, SeededRNG(2), config)
        assert result.rivers
        for river in result.rivers:
            assert len(river) <= 30
            assert len(river) >= config.min_length
            assert all(a >= b for a, b in zip(river.elevations, river.elevations[1:]))

    def test_input_not_modified(self, bowl: np.ndarray) -> None:
        """Carving works on a copy."""
        original = bowl.copy()
        generate_rivers(bowl, SeededRNG(2), HydrologyConfig(river_count=5))
        np.testing.assert_array_equal(bowl, original)

    def test_river_ids_match_points(self, bowl: np.ndarray) -> None:
        """Claimed cells carry the id of the river that claimed them."""
        result = generate_rivers(bowl, SeededRNG(3), HydrologyConfig(river_count=6))
        for river in result.rivers:
            claimed = river.points[:-1] if river.terminus == Terminus.MERGE else river.points
            for x, y in claimed:
                assert result.river_ids[y, x] == river.river_id
            if river.terminus == Terminus.MERGE:
                mx, my = river.mouth
                assert result.river_ids[my, mx] == river.merges_into

    def test_carved_elevation_matches_rivers(self, bowl: np.ndarray) -> None:
        """Recorded river elevations are those of the carved grid."""
        result = generate_rivers(bowl, SeededRNG(3), HydrologyConfig(river_count=6))
        for river in result.rivers:
            for (x, y), level in zip(river.points, river.elevations):
                assert result.elevation[y, x] == pytest.approx(level)

    def test_lakes_recorded(self) -> None:
        """Rivers stopped by a basin or the step bound leave a lake."""
        elevation = np.full((12, 12), 0.9)
        elevation[5, 5] = 0.95
        elevation[6, 6] = 0.5
        config = HydrologyConfig(
            river_count=1, source_percentile=0.0, source_acceptance=1.0, min_length=2
        )
        result = generate_rivers(elevation, SeededRNG(1), config)
        assert len(result.rivers) == 1
        assert result.rivers[0].terminus == Terminus.LAKE
        assert result.lakes == ((6, 6),)

    def test_deterministic(self, bowl: np.ndarray) -> None:
        """Same inputs give the same rivers."""
        config = HydrologyConfig(river_count=6)
        a = generate_rivers(bowl, SeededRNG(4), config)
        b = generate_rivers(bowl, SeededRNG(4), config)
        assert a.rivers == b.rivers
