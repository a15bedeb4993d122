"""Grid rasterization helpers."""

from .types import Cell


def line(x0: int, y0: int, x1: int, y1: int) -> list[Cell]:
    """Rasterize a segment with Bresenham's algorithm.

    Works in all eight octants. Both endpoints are included, and a
    zero-length segment yields its single point.

    Returns:
        Cells from (x0, y0) to (x1, y1) in walk order.
    """
    points: list[Cell] = []
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy

    x, y = x0, y0
    while True:
        points.append((x, y))
        if x == x1 and y == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x += sx
        if e2 <= dx:
            err += dx
            y += sy
    return points
