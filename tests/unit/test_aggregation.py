"""
Unit tests for histograde.scoring.aggregation.

- Weight validation at construction
- Weighted score / bounded confidence
- Fail-soft aggregation of insufficient-sample defaults
- GradeClassifier totality and monotonicity
"""

import json

import numpy as np
import pytest

from histograde.constants import DEFAULT_GRADE_BANDS, DEFAULT_WEIGHTS
from histograde.errors import ConfigurationError, ResultFlag
from histograde.scoring.aggregation import GradeClassifier, WeightedAggregator, validate_weights
from histograde.scoring.feature_scoring import AlgorithmResult


def _results(score, confidence=0.5, weights=DEFAULT_WEIGHTS):
    return [AlgorithmResult(name, score=score, confidence=confidence) for name in weights]


# ============================================================================
# TESTS: WEIGHTS
# ============================================================================

class TestWeightValidation:
    """Weights are checked once, at construction."""

    def test_default_weights_sum_to_one(self):
        assert sum(DEFAULT_WEIGHTS.values()) == pytest.approx(1.0)
        WeightedAggregator(DEFAULT_WEIGHTS)

    def test_sum_mismatch(self):
        with pytest.raises(ConfigurationError):
            WeightedAggregator({"a": 0.5, "b": 0.4})

    def test_within_tolerance(self):
        WeightedAggregator({"a": 0.5, "b": 0.5005})

    def test_custom_tolerance(self):
        with pytest.raises(ConfigurationError):
            WeightedAggregator({"a": 0.5, "b": 0.5005}, tolerance=1e-6)

    @pytest.mark.parametrize("weights", [
        {},
        {"a": -0.5, "b": 1.5},
        {"a": float("inf")},
        {"a": "heavy"},
    ])
    def test_invalid(self, weights):
        with pytest.raises(ConfigurationError):
            validate_weights(weights)

    def test_no_renormalization(self):
        """A wrong sum is an error, never silently rescaled."""
        with pytest.raises(ConfigurationError):
            WeightedAggregator({"a": 2.0, "b": 2.0})


# ============================================================================
# TESTS: AGGREGATION
# ============================================================================

class TestWeightedAggregator:

    def test_all_ones(self):
        aggregate = WeightedAggregator().aggregate(_results(1.0))
        assert aggregate.overall_score == pytest.approx(1.0)

    def test_all_zeros(self):
        aggregate = WeightedAggregator().aggregate(_results(0.0))
        assert aggregate.overall_score == 0.0

    def test_weighted_sum(self):
        aggregator = WeightedAggregator({"a": 0.75, "b": 0.25})
        aggregate = aggregator.aggregate([
            AlgorithmResult("b", score=1.0, confidence=0.5),
            AlgorithmResult("a", score=0.2, confidence=0.5),
        ])
        assert aggregate.overall_score == pytest.approx(0.75 * 0.2 + 0.25 * 1.0)

    def test_weights_attached(self):
        aggregate = WeightedAggregator().aggregate(_results(0.5))
        for result in aggregate.results:
            assert result.weight == DEFAULT_WEIGHTS[result.name]

    def test_confidence_bonus(self):
        aggregate = WeightedAggregator().aggregate(_results(0.5, confidence=0.5))
        assert aggregate.overall_confidence == pytest.approx(0.6)

    def test_confidence_ceiling(self):
        aggregate = WeightedAggregator().aggregate(_results(0.5, confidence=1.0))
        assert aggregate.overall_confidence == pytest.approx(0.95)
        assert aggregate.overall_confidence < 1.0

    def test_zero_confidence_gets_bonus(self):
        aggregate = WeightedAggregator().aggregate(_results(0.5, confidence=0.0))
        assert aggregate.overall_confidence == pytest.approx(0.1)

    def test_missing_result(self):
        with pytest.raises(ConfigurationError):
            WeightedAggregator().aggregate(_results(0.5)[:-1])

    def test_unknown_result(self):
        results = _results(0.5) + [AlgorithmResult("extra", 0.5, 0.5)]
        with pytest.raises(ConfigurationError):
            WeightedAggregator().aggregate(results)

    def test_duplicate_result(self):
        results = _results(0.5)
        with pytest.raises(ConfigurationError):
            WeightedAggregator().aggregate(results + results[:1])

    def test_fail_soft_with_insufficient_samples(self):
        results = _results(0.8, confidence=0.8)
        results[0] = AlgorithmResult(
            results[0].name, score=0.1, confidence=0.2,
            flags={ResultFlag.INSUFFICIENT_SAMPLES},
        )
        aggregate = WeightedAggregator().aggregate(results)
        assert 0.0 < aggregate.overall_score < 0.8
        assert ResultFlag.INSUFFICIENT_SAMPLES in aggregate.flags

    def test_inputs_not_modified(self):
        results = _results(0.5)
        WeightedAggregator().aggregate(results)
        assert all(r.weight == 0.0 for r in results)

    def test_grade_filled_with_classifier(self):
        aggregate = WeightedAggregator().aggregate(_results(1.0), GradeClassifier())
        assert aggregate.grade == "Poorly differentiated"
        assert aggregate.grade_rank == len(DEFAULT_GRADE_BANDS) - 1

    def test_to_dict_is_json(self):
        aggregate = WeightedAggregator().aggregate(_results(0.5), GradeClassifier())
        aggregate.extra_flags = frozenset({ResultFlag.REGION_LIMIT_REACHED})
        data = json.loads(json.dumps(aggregate.to_dict()))
        assert data["grade"] == aggregate.grade
        assert data["flags"] == ["region_limit_reached"]
        assert len(data["algorithms"]) == len(DEFAULT_WEIGHTS)

    def test_lookup_by_name(self):
        aggregate = WeightedAggregator().aggregate(_results(0.5))
        assert aggregate.result("cell_density").name == "cell_density"
        with pytest.raises(KeyError):
            aggregate.result("missing")


# ============================================================================
# TESTS: GRADE CLASSIFIER
# ============================================================================

class TestGradeClassifier:

    def test_default_bands_inclusive(self):
        classifier = GradeClassifier()
        assert classifier.classify(0.8) == "Poorly differentiated"
        assert classifier.classify(0.79) == "Moderately differentiated"
        assert classifier.classify(0.4) == "Well differentiated"
        assert classifier.classify(0.0) == "Benign or reactive"

    def test_catch_all(self):
        classifier = GradeClassifier([(0.5, "high"), (0.2, "low")])
        assert classifier.classify(0.1) == "low"
        assert classifier.classify(-5.0) == "low"

    def test_unsorted_bands(self):
        classifier = GradeClassifier([(0.0, "G1"), (0.66, "G3"), (0.31, "G2")])
        assert classifier.classify(0.5) == "G2"
        assert classifier.grades == ["G1", "G2", "G3"]

    def test_monotonic(self):
        classifier = GradeClassifier([(0.66, "G3"), (0.31, "G2"), (0.0, "G1")])
        scores = np.linspace(-0.1, 1.1, 241)
        ranks = [classifier.rank(s) for s in scores]
        assert all(b >= a for a, b in zip(ranks, ranks[1:]))
        assert ranks[0] == 0
        assert ranks[-1] == 2

    def test_monotonic_random_pairs(self):
        classifier = GradeClassifier()
        rng = np.random.default_rng(0)
        for a, b in rng.random((200, 2)):
            hi, lo = max(a, b), min(a, b)
            assert classifier.rank(hi) >= classifier.rank(lo)

    def test_empty_table(self):
        with pytest.raises(ConfigurationError):
            GradeClassifier([])
