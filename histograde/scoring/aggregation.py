"""
Weighted aggregation of scorer results and grade classification.

WeightedAggregator:
    overall_score      = sum(score_i * weight_i)
    overall_confidence = min(sum(confidence_i * weight_i) + CONFIDENCE_BONUS,
                             CONFIDENCE_CEILING)
    Weights are validated once, at construction: they must sum to
    1.0 +/- tolerance (ConfigurationError otherwise, never renormalized).
    Results flagged INSUFFICIENT_SAMPLES are aggregated with their
    low-confidence default (fail-soft).

GradeClassifier:
    Inclusive (score >= bound) band table scanned from the highest bound;
    the lowest band is the catch-all. Monotonic by construction.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Sequence

from ..constants import (
    CONFIDENCE_BONUS,
    CONFIDENCE_CEILING,
    DEFAULT_GRADE_BANDS,
    DEFAULT_WEIGHTS,
    WEIGHT_TOLERANCE,
)
from ..errors import ConfigurationError, ResultFlag
from .bands import Band, BandTable
from .feature_scoring import AlgorithmResult, clamp01

logger = logging.getLogger(__name__)


def validate_weights(weights: Mapping[str, float], tolerance: float = WEIGHT_TOLERANCE) -> Dict[str, float]:
    """
    Check a name -> weight map.

    Raises:
        ConfigurationError: empty map, negative or non-finite weight, or a
            sum outside 1.0 +/- tolerance
    """
    if not weights:
        raise ConfigurationError("No scorer weights configured")
    if not math.isfinite(tolerance) or tolerance < 0:
        raise ConfigurationError(f"Weight tolerance must be >= 0, got {tolerance}")

    checked = {}
    for name, weight in weights.items():
        try:
            weight = float(weight)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Weight of '{name}' is not numeric: {weight!r}") from e
        if not math.isfinite(weight) or weight < 0:
            raise ConfigurationError(f"Weight of '{name}' must be finite and >= 0, got {weight}")
        checked[name] = weight

    total = sum(checked.values())
    if abs(total - 1.0) > tolerance:
        raise ConfigurationError(
            f"Weights must sum to 1.0 +/- {tolerance}, got {total:.6f} ({checked})"
        )
    return checked


class GradeClassifier:
    """
    Overall score -> grade label.

    Usage:
        classifier = GradeClassifier([(0.66, "G3"), (0.31, "G2"), (0.0, "G1")])
        classifier.classify(0.5)  # "G2"
        classifier.rank(0.5)      # 1
    """

    def __init__(self, bands: Sequence[Band] = DEFAULT_GRADE_BANDS):
        self.table = BandTable(bands, inclusive=True, what="grade band table")

    def classify(self, score: float) -> str:
        return self.table.label(score)

    def rank(self, score: float) -> int:
        """0 = lowest grade."""
        return self.table.rank(score)

    @property
    def grades(self) -> List[str]:
        """Grade labels from lowest to highest."""
        return self.table.labels


@dataclass
class AggregateResult:
    """Output boundary of one analysis request."""
    overall_score: float
    overall_confidence: float
    results: List[AlgorithmResult]
    grade: str = ""
    grade_rank: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    extra_flags: FrozenSet[ResultFlag] = field(default_factory=frozenset)

    @property
    def flags(self) -> FrozenSet[ResultFlag]:
        """Union of the contributing results' flags and pipeline-level flags."""
        flags = set(self.extra_flags)
        for result in self.results:
            flags.update(result.flags)
        return frozenset(flags)

    def result(self, name: str) -> AlgorithmResult:
        for r in self.results:
            if r.name == name:
                return r
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "overall_confidence": self.overall_confidence,
            "grade": self.grade,
            "grade_rank": self.grade_rank,
            "flags": sorted(f.value for f in self.flags),
            "algorithms": [r.to_dict() for r in self.results],
            "metadata": dict(self.metadata),
        }


class WeightedAggregator:
    """
    Combine AlgorithmResults with configured weights.

    Usage:
        aggregator = WeightedAggregator({"a": 0.6, "b": 0.4})
        aggregate = aggregator.aggregate([result_a, result_b])
    """

    def __init__(
        self,
        weights: Mapping[str, float] = DEFAULT_WEIGHTS,
        tolerance: float = WEIGHT_TOLERANCE,
        confidence_bonus: float = CONFIDENCE_BONUS,
        confidence_ceiling: float = CONFIDENCE_CEILING,
    ):
        self.weights = validate_weights(weights, tolerance)
        self.tolerance = tolerance

        if not 0.0 <= confidence_ceiling < 1.0:
            raise ConfigurationError(f"Confidence ceiling must be in [0, 1), got {confidence_ceiling}")
        if not 0.0 <= confidence_bonus <= 1.0:
            raise ConfigurationError(f"Confidence bonus must be in [0, 1], got {confidence_bonus}")
        self.confidence_bonus = confidence_bonus
        self.confidence_ceiling = confidence_ceiling

    @property
    def names(self) -> List[str]:
        return list(self.weights)

    def aggregate(self, results: Sequence[AlgorithmResult], classifier: GradeClassifier = None) -> AggregateResult:
        """
        Weighted score and bounded confidence.

        Args:
            results: exactly one result per configured weight, any order
            classifier: optional, fills grade and grade_rank

        Raises:
            ConfigurationError: results and configured weights name different scorers
        """
        names = [r.name for r in results]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate algorithm results: {names}")
        unknown = sorted(set(names) - set(self.weights))
        missing = sorted(set(self.weights) - set(names))
        if unknown or missing:
            raise ConfigurationError(
                f"Results do not match configured weights (unknown: {unknown}, missing: {missing})"
            )

        weighted = [r.with_weight(self.weights[r.name]) for r in results]

        overall_score = clamp01(sum(r.score * r.weight for r in weighted))
        weighted_confidence = sum(r.confidence * r.weight for r in weighted)
        overall_confidence = clamp01(min(weighted_confidence + self.confidence_bonus, self.confidence_ceiling))

        degraded = [r.name for r in weighted if r.insufficient_samples]
        if degraded:
            logger.warning(f"Aggregating with insufficient-sample defaults for: {degraded}")

        aggregate = AggregateResult(
            overall_score=overall_score,
            overall_confidence=overall_confidence,
            results=weighted,
        )
        if classifier is not None:
            aggregate.grade = classifier.classify(overall_score)
            aggregate.grade_rank = classifier.rank(overall_score)

        return aggregate
