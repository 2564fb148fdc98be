#!/usr/bin/env python3
"""
Stain Separation - Ruifrok color deconvolution

Separates an RGBA pixel buffer into per-stain intensity channels
(Hematoxylin, Eosin, Residual by default).

Method:
1. Normalize R, G, B to [0, 1]
2. Optical density OD = -log10(I / I0) (Beer-Lambert law), with each channel
   clamped to 10^-OD_MAX so a black pixel reads OD_MAX instead of +inf
3. Project the OD 3-vector onto each stain vector (dot product)
4. Rescale x255 and clamp to [0, 255]

The map is pixel-independent, so the image can be split into row bands and
processed concurrently; the result does not depend on the band layout.

Reference:
- Ruifrok AC, Johnston DA. "Quantification of histochemical staining by color deconvolution."
  Analytical and Quantitative Cytology and Histology, 2001.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional, Sequence

import numpy as np

from ..constants import (
    CHANNEL_MAX,
    CHANNEL_MIN,
    DEFAULT_STAIN_MATRIX,
    DEFAULT_STAIN_NAMES,
    OD_MAX,
)
from ..errors import ConfigurationError
from ..image import ChannelImage, PixelBuffer

logger = logging.getLogger(__name__)


# =========================================================================
# STAIN MATRIX VALIDATION
# =========================================================================

def validate_stain_matrix(stain_matrix) -> np.ndarray:
    """
    Check a stain matrix and return it as a float64 array.

    Args:
        stain_matrix: N rows (one per stain) of 3 floats (R, G, B)

    Returns:
        (N, 3) float64 array

    Raises:
        ConfigurationError: wrong shape, non-finite values or all-zero row
    """
    try:
        matrix = np.asarray(stain_matrix, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Stain matrix is not numeric: {e}") from e

    if matrix.ndim != 2 or matrix.shape[1] != 3 or matrix.shape[0] < 1:
        raise ConfigurationError(
            f"Stain matrix must have one row of 3 values (R, G, B) per stain, "
            f"got shape {matrix.shape}"
        )
    if not np.all(np.isfinite(matrix)):
        raise ConfigurationError("Stain matrix contains non-finite values")
    if np.any(np.all(matrix == 0, axis=1)):
        raise ConfigurationError("Stain matrix contains an all-zero stain vector")

    return matrix


# =========================================================================
# OPTICAL DENSITY
# =========================================================================

def rgb_to_od(image_rgb: np.ndarray, od_max: float = OD_MAX) -> np.ndarray:
    """
    Convert RGB to Optical Density (OD)

    Beer-Lambert law: OD = -log10(I / I0)
    where I = transmitted light, I0 = incident light (white = 255)

    Args:
        image_rgb: RGB image in range [0, 255]
        od_max: OD reported for fully absorbing pixels

    Returns:
        Optical density (H, W, 3) in [0, od_max]
    """
    image_float = image_rgb.astype(np.float64) / 255.0

    # Clip to avoid log(0): documented clamp, OD never exceeds od_max
    image_float = np.clip(image_float, 10.0 ** (-od_max), 1.0)

    return -np.log10(image_float)


# =========================================================================
# COLOR DECONVOLVER
# =========================================================================

class ColorDeconvolver:
    """
    Ruifrok deconvolution with a configurable stain matrix.

    Usage:
        deconvolver = ColorDeconvolver()
        channels = deconvolver.deconvolve(buffer)
        h = channels["hematoxylin"]
    """

    def __init__(
        self,
        stain_matrix=DEFAULT_STAIN_MATRIX,
        stain_names: Optional[Sequence[str]] = None,
        od_max: float = OD_MAX,
        n_workers: int = 1,
    ):
        """
        Args:
            stain_matrix: N x 3 stain OD vectors (pre-normalized rows)
            stain_names: one name per row (defaults to hematoxylin/eosin/residual)
            od_max: OD cap for zero-intensity channels
            n_workers: threads used for row-band tiling (1 = no threading)
        """
        self.stain_matrix = validate_stain_matrix(stain_matrix)
        n_stains = self.stain_matrix.shape[0]

        if stain_names is None:
            if n_stains > len(DEFAULT_STAIN_NAMES):
                stain_names = list(DEFAULT_STAIN_NAMES) + [
                    f"stain_{i}" for i in range(len(DEFAULT_STAIN_NAMES), n_stains)
                ]
            else:
                stain_names = DEFAULT_STAIN_NAMES[:n_stains]

        stain_names = tuple(stain_names)
        if len(stain_names) != n_stains:
            raise ConfigurationError(
                f"{len(stain_names)} stain names for {n_stains} stain vectors"
            )
        if len(set(stain_names)) != n_stains:
            raise ConfigurationError(f"Duplicate stain names: {stain_names}")

        if not np.isfinite(od_max) or od_max <= 0:
            raise ConfigurationError(f"od_max must be a positive finite number, got {od_max}")
        if n_workers < 1:
            raise ConfigurationError(f"n_workers must be >= 1, got {n_workers}")

        self.stain_names = stain_names
        self.od_max = float(od_max)
        self.n_workers = int(n_workers)

    def optical_density(self, buffer: PixelBuffer) -> np.ndarray:
        """Raw OD (H, W, 3) of a buffer, alpha ignored."""
        return rgb_to_od(buffer.rgb(), self.od_max)

    def _project(self, image_rgb: np.ndarray) -> np.ndarray:
        """(H, W, 3) RGB -> (H, W, N) uint8 stain intensities."""
        od = rgb_to_od(image_rgb, self.od_max)
        intensities = np.tensordot(od, self.stain_matrix.T, axes=1) * 255.0
        # Documented clamp: projections outside [0, 255] saturate
        intensities = np.clip(np.round(intensities), CHANNEL_MIN, CHANNEL_MAX)
        return intensities.astype(np.uint8)

    def deconvolve(self, buffer: PixelBuffer) -> Dict[str, ChannelImage]:
        """
        Separate a buffer into one ChannelImage per stain row.

        Returns:
            Ordered dict stain name -> ChannelImage (H, W) uint8
        """
        rgb = buffer.rgb()

        if self.n_workers > 1 and buffer.height > 1:
            bands = np.array_split(np.arange(buffer.height), min(self.n_workers, buffer.height))
            with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
                parts = list(executor.map(
                    lambda rows: self._project(rgb[rows[0]:rows[-1] + 1]), bands
                ))
            stacked = np.concatenate(parts, axis=0)
        else:
            stacked = self._project(rgb)

        logger.debug(
            f"Deconvolved {buffer.width}x{buffer.height} buffer into "
            f"{len(self.stain_names)} channels"
        )

        return {
            name: ChannelImage(name=name, pixels=np.ascontiguousarray(stacked[:, :, i]))
            for i, name in enumerate(self.stain_names)
        }
