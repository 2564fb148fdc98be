"""
Utilities for histograde.
"""

from .image_utils import load_image, synthetic_he_tile, uniform_image

__all__ = [
    'load_image',
    'synthetic_he_tile',
    'uniform_image',
]
