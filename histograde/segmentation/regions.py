"""
Region detection on a single intensity channel.

1. Threshold: explicit byte value, or Otsu's method on the 256-bin histogram
2. Connected components by iterative flood fill (explicit stack, no
   recursion) over pixels strictly above the threshold
3. Visited state kept in a flat boolean grid addressed by y * width + x
4. Resource bounds: a region stops growing at max_region_px (kept, flagged
   truncated) and scanning stops at the first kept-size region beyond
   max_regions (flagged)

The set of regions and their membership depends only on the channel and the
threshold, not on discovery order, as long as no cap is hit. Callers must not
rely on the order of the returned list.
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple, Union

import numpy as np

from ..constants import (
    DEFAULT_CONNECTIVITY,
    DEFAULT_MAX_REGION_PX,
    DEFAULT_MAX_REGIONS,
    DEFAULT_MIN_REGION_PX,
    DEFAULT_SEGMENTATION_THRESHOLD,
    OTSU,
    VALID_CONNECTIVITY,
)
from ..errors import ConfigurationError, ResultFlag
from ..image import ChannelImage
from ..metrics.geometry import edge_perimeter

logger = logging.getLogger(__name__)

_NEIGHBOURS_4 = ((1, 0), (-1, 0), (0, 1), (0, -1))
_NEIGHBOURS_8 = _NEIGHBOURS_4 + ((1, 1), (1, -1), (-1, 1), (-1, -1))


@dataclass
class Region:
    """A connected component of above-threshold pixels."""
    pixels: np.ndarray                  # (N, 2) int, columns (x, y)
    area: int
    perimeter: int
    centroid: Tuple[float, float]       # (x, y) mean of coordinates
    bbox: Tuple[int, int, int, int]     # (min_x, min_y, max_x, max_y)
    mean_intensity: float               # channel mean over members, 0-255
    truncated: bool = False
    flags: FrozenSet[ResultFlag] = field(default_factory=frozenset)

    def coordinates(self) -> List[Tuple[int, int]]:
        return [(int(x), int(y)) for x, y in self.pixels]


@dataclass
class SegmentationResult:
    """Regions found in one channel plus how they were found."""
    regions: List[Region]
    threshold: int
    used_otsu: bool
    region_limit_reached: bool = False

    @property
    def truncated_count(self) -> int:
        return sum(1 for r in self.regions if r.truncated)

    @property
    def flags(self) -> FrozenSet[ResultFlag]:
        flags = set()
        if self.truncated_count:
            flags.add(ResultFlag.RESOURCE_LIMIT_EXCEEDED)
        if self.region_limit_reached:
            flags.add(ResultFlag.REGION_LIMIT_REACHED)
        return frozenset(flags)


# =========================================================================
# OTSU THRESHOLD
# =========================================================================

def otsu_threshold(pixels: np.ndarray) -> int:
    """
    Otsu's threshold on a uint8 image.

    Background is intensities <= t, foreground > t. For every t the
    between-class variance w0 * w1 * (mean0 - mean1)^2 is computed from
    running sums (O(W*H + 256)); the best t is returned. When several
    thresholds tie (empty bins between two modes), the middle of the tied
    range is used so the threshold sits between the modes.

    A single-valued image returns that value.
    """
    histogram = np.bincount(np.asarray(pixels, dtype=np.uint8).ravel(), minlength=256).astype(np.float64)
    total = histogram.sum()
    if total == 0:
        return 0

    levels = np.arange(256, dtype=np.float64)
    w0 = np.cumsum(histogram)
    sum0 = np.cumsum(histogram * levels)
    w1 = total - w0
    sum_total = sum0[-1]

    valid = (w0 > 0) & (w1 > 0)
    if not np.any(valid):
        return int(np.flatnonzero(histogram)[0])

    variance = np.zeros(256, dtype=np.float64)
    mean0 = np.divide(sum0, w0, out=np.zeros(256), where=w0 > 0)
    mean1 = np.divide(sum_total - sum0, w1, out=np.zeros(256), where=w1 > 0)
    variance[valid] = w0[valid] * w1[valid] * (mean0[valid] - mean1[valid]) ** 2

    best = variance.max()
    tied = np.flatnonzero(valid & (variance >= best * (1.0 - 1e-12)))
    return int((tied[0] + tied[-1]) // 2)


# =========================================================================
# REGION DETECTOR
# =========================================================================

class RegionDetector:
    """
    Threshold + flood-fill connected components.

    Usage:
        detector = RegionDetector(threshold=120, min_region_px=50, connectivity=4)
        regions = detector.detect(channel)
    """

    def __init__(
        self,
        threshold: Union[int, str] = DEFAULT_SEGMENTATION_THRESHOLD,
        min_region_px: int = DEFAULT_MIN_REGION_PX,
        max_region_px: int = DEFAULT_MAX_REGION_PX,
        max_regions: int = DEFAULT_MAX_REGIONS,
        connectivity: int = DEFAULT_CONNECTIVITY,
    ):
        """
        Args:
            threshold: byte value (pixels strictly above are foreground) or "otsu"
            min_region_px: smaller components are discarded
            max_region_px: per-region growth cap
            max_regions: per-image region count cap
            connectivity: 4 or 8
        """
        if threshold != OTSU:
            if isinstance(threshold, bool) or not isinstance(threshold, (int, np.integer)):
                raise ConfigurationError(
                    f"Threshold must be an integer in [0, 255] or '{OTSU}', got {threshold!r}"
                )
            if not 0 <= threshold <= 255:
                raise ConfigurationError(f"Threshold must be in [0, 255], got {threshold}")
        if connectivity not in VALID_CONNECTIVITY:
            raise ConfigurationError(f"Connectivity must be 4 or 8, got {connectivity}")
        if min_region_px < 1:
            raise ConfigurationError(f"min_region_px must be >= 1, got {min_region_px}")
        if max_region_px < min_region_px:
            raise ConfigurationError(
                f"max_region_px ({max_region_px}) must be >= min_region_px ({min_region_px})"
            )
        if max_regions < 1:
            raise ConfigurationError(f"max_regions must be >= 1, got {max_regions}")

        self.threshold = threshold
        self.min_region_px = int(min_region_px)
        self.max_region_px = int(max_region_px)
        self.max_regions = int(max_regions)
        self.connectivity = int(connectivity)

    def resolve_threshold(self, channel: ChannelImage) -> int:
        if self.threshold == OTSU:
            return otsu_threshold(channel.pixels)
        return int(self.threshold)

    def detect(self, channel: ChannelImage) -> List[Region]:
        """Regions of a channel (see segment() for thresholds and flags)."""
        return self.segment(channel).regions

    def segment(self, channel: ChannelImage, threshold: Optional[int] = None) -> SegmentationResult:
        """
        Segment a channel into connected regions.

        Args:
            channel: input channel
            threshold: overrides the configured threshold for this call

        Returns:
            SegmentationResult with regions, threshold used and cap flags
        """
        used_otsu = threshold is None and self.threshold == OTSU
        if threshold is None:
            threshold = self.resolve_threshold(channel)

        width, height = channel.width, channel.height
        flat = channel.pixels.ravel()
        foreground = (flat > threshold).tolist()
        visited = bytearray(width * height)
        offsets = _NEIGHBOURS_8 if self.connectivity == 8 else _NEIGHBOURS_4

        regions: List[Region] = []
        region_limit_reached = False

        for seed in np.flatnonzero(flat > threshold).tolist():
            if visited[seed]:
                continue

            members, truncated = self._grow(seed, foreground, visited, width, height, offsets)
            if len(members) < self.min_region_px:
                continue
            if len(regions) >= self.max_regions:
                # Only a component that would have been kept counts as lost
                region_limit_reached = True
                break

            regions.append(self._build_region(members, flat, width, truncated))

        result = SegmentationResult(
            regions=regions,
            threshold=int(threshold),
            used_otsu=used_otsu,
            region_limit_reached=region_limit_reached,
        )

        if result.truncated_count:
            logger.warning(
                f"{result.truncated_count} region(s) in '{channel.name}' truncated at "
                f"{self.max_region_px} px"
            )
        if region_limit_reached:
            logger.warning(f"Region count cap ({self.max_regions}) reached on '{channel.name}'")
        logger.debug(
            f"Segmented '{channel.name}' at threshold {threshold}"
            f"{' (otsu)' if used_otsu else ''}: {len(regions)} regions"
        )

        return result

    def _grow(self, seed, foreground, visited, width, height, offsets):
        """Flood fill from seed; returns (member indices, truncated)."""
        stack = [seed]
        visited[seed] = 1
        members = []
        truncated = False

        while stack:
            if len(members) >= self.max_region_px:
                truncated = True
                break

            idx = stack.pop()
            members.append(idx)
            y, x = divmod(idx, width)

            for dx, dy in offsets:
                nx = x + dx
                ny = y + dy
                if 0 <= nx < width and 0 <= ny < height:
                    n = ny * width + nx
                    if foreground[n] and not visited[n]:
                        visited[n] = 1
                        stack.append(n)

        if truncated:
            # Pending pixels are released so they can seed later regions
            for idx in stack:
                visited[idx] = 0

        return members, truncated

    def _build_region(self, members, flat, width, truncated) -> Region:
        indices = np.asarray(members, dtype=np.int64)
        ys, xs = np.divmod(indices, width)
        pixels = np.stack([xs, ys], axis=1)

        return Region(
            pixels=pixels,
            area=len(members),
            perimeter=edge_perimeter(pixels.tolist()),
            centroid=(float(xs.mean()), float(ys.mean())),
            bbox=(int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max())),
            mean_intensity=float(flat[indices].mean()),
            truncated=truncated,
            flags=frozenset({ResultFlag.RESOURCE_LIMIT_EXCEEDED}) if truncated else frozenset(),
        )
