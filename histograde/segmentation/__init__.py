"""
Region detection (threshold + flood fill connected components).
"""

from .regions import Region, RegionDetector, SegmentationResult, otsu_threshold

__all__ = [
    'Region',
    'RegionDetector',
    'SegmentationResult',
    'otsu_threshold',
]
