"""
Channel enhancement: denoising then contrast stretching.

Denoise uses a fixed-radius neighbourhood (median or mean) with
clamp-to-boundary edges (scipy.ndimage mode="nearest"), so border pixels
never read outside the image. Contrast is either a linear min-max rescale
or a 256-bin histogram equalization.
"""

import logging

import numpy as np
from scipy import ndimage

from ..constants import (
    CONTRAST_METHODS,
    DEFAULT_CONTRAST,
    DEFAULT_DENOISE,
    DEFAULT_DENOISE_RADIUS,
    DENOISE_METHODS,
)
from ..errors import ConfigurationError
from ..image import ChannelImage

logger = logging.getLogger(__name__)


def median_filter(pixels: np.ndarray, radius: int = DEFAULT_DENOISE_RADIUS) -> np.ndarray:
    """Median over a (2r+1)^2 window, edges replicated."""
    size = 2 * radius + 1
    return ndimage.median_filter(pixels, size=size, mode="nearest")


def mean_filter(pixels: np.ndarray, radius: int = DEFAULT_DENOISE_RADIUS) -> np.ndarray:
    """Box mean over a (2r+1)^2 window, edges replicated, rounded to uint8."""
    size = 2 * radius + 1
    smoothed = ndimage.uniform_filter(pixels.astype(np.float64), size=size, mode="nearest")
    return np.clip(np.round(smoothed), 0, 255).astype(np.uint8)


def stretch_contrast(pixels: np.ndarray) -> np.ndarray:
    """
    Linear min-max rescale: new = (v - min) / (max - min) * 255.

    No-op (copy) when the channel is flat.
    """
    vmin = int(pixels.min())
    vmax = int(pixels.max())
    if vmax == vmin:
        return pixels.copy()

    scaled = (pixels.astype(np.float64) - vmin) / (vmax - vmin) * 255.0
    return np.clip(np.round(scaled), 0, 255).astype(np.uint8)


def equalize_histogram(pixels: np.ndarray) -> np.ndarray:
    """
    Histogram equalization through the cumulative distribution.

    new = round((cdf[v] - cdf_min) / (n_pixels - cdf_min) * 255), where
    cdf_min is the first non-zero CDF value. A single-valued channel is
    returned unchanged.
    """
    histogram = np.bincount(pixels.ravel(), minlength=256)
    cdf = np.cumsum(histogram)
    n_pixels = pixels.size
    cdf_min = int(cdf[np.flatnonzero(cdf)[0]])

    if n_pixels == cdf_min:
        return pixels.copy()

    lut = np.round((cdf - cdf_min) / (n_pixels - cdf_min) * 255.0)
    lut = np.clip(lut, 0, 255).astype(np.uint8)
    return lut[pixels]


class ImageEnhancer:
    """
    Denoise + contrast enhancement of one channel.

    Args:
        denoise: "median", "mean" or "none"
        radius: neighbourhood radius of the denoise filter
        contrast: "minmax", "equalize" or "none"
    """

    def __init__(
        self,
        denoise: str = DEFAULT_DENOISE,
        radius: int = DEFAULT_DENOISE_RADIUS,
        contrast: str = DEFAULT_CONTRAST,
    ):
        if denoise not in DENOISE_METHODS:
            raise ConfigurationError(f"Unknown denoise method '{denoise}'. Valid: {DENOISE_METHODS}")
        if contrast not in CONTRAST_METHODS:
            raise ConfigurationError(f"Unknown contrast method '{contrast}'. Valid: {CONTRAST_METHODS}")
        if not isinstance(radius, int) or radius < 1:
            raise ConfigurationError(f"Denoise radius must be a positive integer, got {radius}")

        self.denoise = denoise
        self.radius = radius
        self.contrast = contrast

    def denoise_channel(self, channel: ChannelImage) -> ChannelImage:
        if self.denoise == "median":
            return channel.with_pixels(median_filter(channel.pixels, self.radius))
        if self.denoise == "mean":
            return channel.with_pixels(mean_filter(channel.pixels, self.radius))
        return channel.with_pixels(channel.pixels.copy())

    def enhance_contrast(self, channel: ChannelImage) -> ChannelImage:
        if self.contrast == "minmax":
            return channel.with_pixels(stretch_contrast(channel.pixels))
        if self.contrast == "equalize":
            return channel.with_pixels(equalize_histogram(channel.pixels))
        return channel.with_pixels(channel.pixels.copy())

    def enhance(self, channel: ChannelImage) -> ChannelImage:
        """Denoise then stretch; output has the input's dimensions."""
        enhanced = self.enhance_contrast(self.denoise_channel(channel))
        logger.debug(
            f"Enhanced '{channel.name}' ({self.denoise}/r={self.radius}, {self.contrast})"
        )
        return enhanced
