"""
Acquisition-side helpers: decoded images -> PixelBuffer.

The grading core performs no file decoding; these helpers live outside it
and are used by the CLI and the tests.
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from ..errors import InvalidInputError
from ..image import PixelBuffer

# Synthetic H&E colors (RGB)
BACKGROUND_RGB = (235, 175, 205)  # eosin-pink stroma
NUCLEUS_RGB = (70, 40, 130)       # hematoxylin-purple nuclei
LUMEN_RGB = (250, 250, 250)       # empty space


def load_image(path: Union[str, Path]) -> PixelBuffer:
    """
    Decode an image file (PNG, JPEG, TIFF...) with OpenCV.

    Grayscale, BGR and BGRA files are converted to RGBA.

    Raises:
        InvalidInputError: missing or undecodable file
    """
    path = Path(path)
    if not path.exists():
        raise InvalidInputError(f"Image not found: {path}")

    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise InvalidInputError(f"Could not decode image: {path}")

    if image.dtype != np.uint8:
        image = cv2.normalize(image, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)

    if image.ndim == 2:
        rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    elif image.shape[2] == 3:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    elif image.shape[2] == 4:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    else:
        raise InvalidInputError(f"Unsupported channel count {image.shape[2]} in {path}")

    return PixelBuffer.from_array(rgba)


def uniform_image(width: int, height: int, rgb: Tuple[int, int, int]) -> np.ndarray:
    """(H, W, 3) uint8 image of a single color."""
    image = np.empty((height, width, 3), dtype=np.uint8)
    image[:, :] = rgb
    return image


def synthetic_he_tile(
    size: int = 256,
    n_nuclei: int = 60,
    radius_range: Tuple[int, int] = (4, 9),
    n_lumens: int = 3,
    seed: Optional[int] = 0,
) -> np.ndarray:
    """
    Synthetic H&E-like RGB tile: pink background, a few white lumens and
    purple nuclei (filled circles/ellipses of varying darkness).

    Returns:
        (size, size, 3) uint8 RGB image
    """
    rng = np.random.default_rng(seed)
    image = uniform_image(size, size, BACKGROUND_RGB)

    for _ in range(n_lumens):
        center = tuple(int(v) for v in rng.integers(size // 8, size - size // 8, 2))
        cv2.circle(image, center, int(rng.integers(size // 16, size // 8)), LUMEN_RGB, -1)

    lo, hi = radius_range
    for _ in range(n_nuclei):
        center = tuple(int(v) for v in rng.integers(hi, size - hi, 2))
        shade = float(rng.uniform(0.7, 1.2))
        color = tuple(int(np.clip(c * shade, 0, 255)) for c in NUCLEUS_RGB)
        if rng.random() < 0.2:
            axes = (int(rng.integers(lo, hi + 1)), max(int(rng.integers(lo, hi + 1)) // 2, 2))
            angle = float(rng.uniform(0, 180))
            cv2.ellipse(image, center, axes, angle, 0, 360, color, -1)
        else:
            cv2.circle(image, center, int(rng.integers(lo, hi + 1)), color, -1)

    return image
