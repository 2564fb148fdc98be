"""
Image containers shared by every pipeline stage.

PixelBuffer is the input boundary (decoded RGBA bitmap owned by the caller),
ChannelImage is the single-intensity image produced by deconvolution and
consumed by enhancement and segmentation.
"""

from dataclasses import dataclass

import numpy as np

from .errors import InvalidInputError


@dataclass(frozen=True)
class PixelBuffer:
    """Decoded RGBA bitmap: width x height pixels, 4 bytes per pixel."""
    width: int
    height: int
    data: bytes

    def __post_init__(self):
        if self.data is None:
            raise InvalidInputError("Pixel buffer is missing")
        if not isinstance(self.width, (int, np.integer)) or not isinstance(self.height, (int, np.integer)):
            raise InvalidInputError(
                f"Width/height must be integers, got {type(self.width).__name__}/"
                f"{type(self.height).__name__}"
            )
        if self.width <= 0 or self.height <= 0:
            raise InvalidInputError(f"Invalid dimensions: {self.width}x{self.height}")

        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise InvalidInputError(
                f"Buffer size {len(self.data)} does not match "
                f"{self.width}x{self.height} RGBA ({expected} bytes)"
            )

    @classmethod
    def from_array(cls, image: np.ndarray) -> "PixelBuffer":
        """
        Build a buffer from an (H, W, 4) uint8 array.

        RGB (H, W, 3) arrays get an opaque alpha channel.
        """
        if not isinstance(image, np.ndarray):
            raise InvalidInputError(f"Expected numpy array, got {type(image).__name__}")
        if image.ndim != 3 or image.shape[2] not in (3, 4):
            raise InvalidInputError(
                f"Expected (H, W, 3) or (H, W, 4) array, got shape {image.shape}"
            )
        if image.dtype != np.uint8:
            raise InvalidInputError(f"Expected uint8 array, got {image.dtype}")

        if image.shape[2] == 3:
            alpha = np.full(image.shape[:2] + (1,), 255, dtype=np.uint8)
            image = np.concatenate([image, alpha], axis=2)

        height, width = image.shape[:2]
        return cls(width=int(width), height=int(height), data=np.ascontiguousarray(image).tobytes())

    def to_array(self) -> np.ndarray:
        """Read-only (H, W, 4) uint8 view of the buffer."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)

    def rgb(self) -> np.ndarray:
        """(H, W, 3) uint8 view without the alpha channel."""
        return self.to_array()[:, :, :3]


@dataclass
class ChannelImage:
    """One intensity byte (0-255) per pixel."""
    name: str
    pixels: np.ndarray  # (H, W) uint8

    def __post_init__(self):
        if not isinstance(self.pixels, np.ndarray) or self.pixels.ndim != 2:
            raise InvalidInputError(f"Channel '{self.name}' must be a 2D array")
        if self.pixels.dtype != np.uint8:
            raise InvalidInputError(
                f"Channel '{self.name}' must be uint8, got {self.pixels.dtype}"
            )

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def with_pixels(self, pixels: np.ndarray) -> "ChannelImage":
        """New channel with the same name and different data."""
        return ChannelImage(name=self.name, pixels=pixels)
