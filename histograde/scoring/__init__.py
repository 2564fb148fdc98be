"""
Feature scoring, weighted aggregation and grade classification.

Key exports:
- FeatureScorer and the scorer catalog (SCORER_REGISTRY, create_scorer)
- WeightedAggregator: weighted overall score and bounded confidence
- GradeClassifier: overall score -> grade label
"""

from .aggregation import AggregateResult, GradeClassifier, WeightedAggregator, validate_weights
from .bands import BandTable, validate_bands
from .feature_scoring import (
    SCORER_REGISTRY,
    AlgorithmResult,
    AnalysisContext,
    FeatureScorer,
    create_scorer,
)

__all__ = [
    'AlgorithmResult',
    'AnalysisContext',
    'FeatureScorer',
    'SCORER_REGISTRY',
    'create_scorer',
    'WeightedAggregator',
    'GradeClassifier',
    'AggregateResult',
    'validate_weights',
    'BandTable',
    'validate_bands',
]
