"""
Ordered threshold-band tables.

A band table maps a score in [0, 1] to a label. Bands are configuration
data: (lower_bound, label) pairs, scanned from the highest bound down; the
lowest band is the catch-all, so lookup never fails.

Two comparison modes:
- exclusive (score > bound): qualitative interpretation strings
- inclusive (score >= bound): grade labels
"""

import math
from typing import List, Sequence, Tuple

from ..errors import ConfigurationError

Band = Tuple[float, str]


def validate_bands(bands: Sequence[Band], what: str = "band table") -> Tuple[Band, ...]:
    """
    Check and normalize a band table.

    Returns:
        Bands sorted by descending lower bound

    Raises:
        ConfigurationError: empty table, malformed pair, non-finite bound,
            duplicate bound or empty label
    """
    if bands is None or len(bands) == 0:
        raise ConfigurationError(f"Empty {what}")

    normalized: List[Band] = []
    for band in bands:
        try:
            bound, label = band
            bound = float(bound)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed entry {band!r} in {what}: {e}") from e
        if not math.isfinite(bound):
            raise ConfigurationError(f"Non-finite bound {bound} in {what}")
        if not isinstance(label, str) or not label:
            raise ConfigurationError(f"Band label must be a non-empty string, got {label!r}")
        normalized.append((bound, label))

    bounds = [b for b, _ in normalized]
    if len(set(bounds)) != len(bounds):
        raise ConfigurationError(f"Duplicate lower bounds in {what}: {sorted(bounds)}")

    return tuple(sorted(normalized, key=lambda b: b[0], reverse=True))


class BandTable:
    """
    Score -> label lookup.

    Usage:
        table = BandTable([(0.8, "high"), (0.6, "moderate"), (0.0, "minimal")])
        table.label(0.7)   # "moderate"
        table.rank(0.7)    # 1 (0 = lowest band)
    """

    def __init__(self, bands: Sequence[Band], inclusive: bool = False, what: str = "band table"):
        self.bands = validate_bands(bands, what)
        self.inclusive = inclusive

    def _meets(self, score: float, bound: float) -> bool:
        return score >= bound if self.inclusive else score > bound

    def index(self, score: float) -> int:
        """Position in the descending table of the band matched by score."""
        for i, (bound, _) in enumerate(self.bands):
            if self._meets(score, bound):
                return i
        return len(self.bands) - 1

    def label(self, score: float) -> str:
        return self.bands[self.index(score)][1]

    def rank(self, score: float) -> int:
        """0 for the lowest band, len - 1 for the highest."""
        return len(self.bands) - 1 - self.index(score)

    @property
    def labels(self) -> List[str]:
        """Labels from lowest to highest band."""
        return [label for _, label in reversed(self.bands)]

    def __len__(self) -> int:
        return len(self.bands)

    def __repr__(self) -> str:
        mode = ">=" if self.inclusive else ">"
        return f"BandTable({mode}, {list(self.bands)})"
