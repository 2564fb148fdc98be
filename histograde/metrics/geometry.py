"""
Pure geometric helpers on pixel coordinate sets.

All functions take (x, y) integer pixel coordinates and have no side effects.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

Point = Tuple[int, int]

# 4-neighbour edge offsets in doubled coordinates: the edge between pixel
# (x, y) and (x+dx, y+dy) is keyed (2x+dx, 2y+dy), identical from both sides.
_EDGE_OFFSETS = ((0, 1), (1, 0), (0, -1), (-1, 0))


def edge_perimeter(pixels: Iterable[Point]) -> int:
    """
    Number of pixel edges on the region boundary.

    Each pixel contributes its 4 edges to a running set; an edge already in
    the set is shared with another member pixel and is removed instead.
    What remains is the boundary.
    """
    edges = set()
    for x, y in pixels:
        for dx, dy in _EDGE_OFFSETS:
            key = (2 * x + dx, 2 * y + dy)
            if key in edges:
                edges.remove(key)
            else:
                edges.add(key)
    return len(edges)


def cross_product(o: Point, a: Point, b: Point) -> int:
    """z-component of (a - o) x (b - o); > 0 for a left (counter-clockwise) turn."""
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


@dataclass(frozen=True)
class ConvexHull:
    """Ordered hull vertices; empty when fewer than 3 non-collinear points."""
    vertices: Tuple[Point, ...] = ()

    @property
    def is_degenerate(self) -> bool:
        return len(self.vertices) < 3

    @property
    def area(self) -> float:
        return 0.0 if self.is_degenerate else polygon_area(self.vertices)


def convex_hull(pixels: Iterable[Point]) -> ConvexHull:
    """
    Monotone-chain convex hull.

    Points are sorted by (x, y); lower and upper chains pop any point making
    a non-left turn (cross <= 0), then the chains are joined without their
    duplicated endpoints. Collinear input yields a degenerate hull.
    """
    points = sorted(set((int(x), int(y)) for x, y in pixels))
    if len(points) < 3:
        return ConvexHull()

    lower: List[Point] = []
    for p in points:
        while len(lower) >= 2 and cross_product(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper: List[Point] = []
    for p in reversed(points):
        while len(upper) >= 2 and cross_product(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    vertices = lower[:-1] + upper[:-1]
    if len(vertices) < 3:
        return ConvexHull()
    return ConvexHull(vertices=tuple(vertices))


def polygon_area(vertices: Sequence[Point]) -> float:
    """Shoelace formula, absolute value."""
    n = len(vertices)
    if n < 3:
        return 0.0

    total = 0
    for i in range(n):
        x1, y1 = vertices[i]
        x2, y2 = vertices[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return abs(total) / 2.0


def shape_complexity(area: int, hull: ConvexHull) -> float:
    """
    1 - area / hull_area, clamped to [0, 1].

    0 for convex/filled shapes (the pixel count can exceed the hull of the
    pixel centres, hence the clamp), towards 1 for concave shapes.
    Degenerate hulls report 0.
    """
    hull_area = hull.area
    if hull_area <= 0:
        return 0.0
    return min(max(1.0 - area / hull_area, 0.0), 1.0)
