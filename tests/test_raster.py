"""Tests for Bresenham line rasterization."""

import pytest

from worldgen.raster import line


class TestLine:
    """Tests for line()."""

    def test_shallow_slope(self) -> None:
        """First-octant segment."""
        assert line(0, 0, 3, 2) == [(0, 0), (1, 1), (2, 1), (3, 2)]

    def test_single_point(self) -> None:
        """Zero-length segment yields its point."""
        assert line(5, 5, 5, 5) == [(5, 5)]

    def test_reverse_horizontal(self) -> None:
        """Walks right to left when x decreases."""
        assert line(3, 0, 0, 0) == [(3, 0), (2, 0), (1, 0), (0, 0)]

    def test_vertical(self) -> None:
        """Straight down."""
        assert line(2, 1, 2, 4) == [(2, 1), (2, 2), (2, 3), (2, 4)]

    def test_diagonal(self) -> None:
        """45 degree segment steps both axes each point."""
        assert line(0, 0, -3, -3) == [(0, 0), (-1, -1), (-2, -2), (-3, -3)]

    @pytest.mark.parametrize(
        "end",
        [(7, 2), (2, 7), (-2, 7), (-7, 2), (-7, -2), (-2, -7), (2, -7), (7, -2)],
    )
    def test_all_octants(self, end: tuple[int, int]) -> None:
        """Every octant gives a connected path between the endpoints."""
        points = line(0, 0, *end)
        assert points[0] == (0, 0)
        assert points[-1] == end
        assert len(points) == max(abs(end[0]), abs(end[1])) + 1
        for (ax, ay), (bx, by) in zip(points, points[1:]):
            assert max(abs(ax - bx), abs(ay - by)) == 1
