"""
Morphometric measurements of regions and channels.
"""

from .geometry import ConvexHull, convex_hull, edge_perimeter, polygon_area, shape_complexity
from .morphometry import (
    MorphometricAnalyzer,
    RegionMorphometry,
    TextureStats,
    circularity,
    elongation,
    texture_statistics,
)

__all__ = [
    'ConvexHull',
    'convex_hull',
    'edge_perimeter',
    'polygon_area',
    'shape_complexity',
    'MorphometricAnalyzer',
    'RegionMorphometry',
    'TextureStats',
    'circularity',
    'elongation',
    'texture_statistics',
]
