"""
Channel preprocessing: stain separation and enhancement.

Usage:
    >>> from histograde.preprocessing import ColorDeconvolver, ImageEnhancer
    >>> channels = ColorDeconvolver().deconvolve(buffer)
    >>> h = ImageEnhancer().enhance(channels["hematoxylin"])
"""

from .enhancement import (
    ImageEnhancer,
    equalize_histogram,
    mean_filter,
    median_filter,
    stretch_contrast,
)
from .stain_separation import (
    ColorDeconvolver,
    rgb_to_od,
    validate_stain_matrix,
)

__all__ = [
    # Stain separation
    'ColorDeconvolver',
    'rgb_to_od',
    'validate_stain_matrix',
    # Enhancement
    'ImageEnhancer',
    'median_filter',
    'mean_filter',
    'stretch_contrast',
    'equalize_histogram',
]
