"""
histograde - H&E tissue grading pipeline.

Stain separation, enhancement, nucleus segmentation, morphometry and
weighted feature scoring, combined into one configurable grade.

Usage:
    >>> from histograde import GradingPipeline, PixelBuffer, get_profile
    >>> pipeline = GradingPipeline(get_profile("lung"))
    >>> result = pipeline.analyze_array(image_rgb)
    >>> result.grade, result.overall_score
"""

from .config import PipelineConfig
from .errors import ConfigurationError, HistogradeError, InvalidInputError, ResultFlag
from .image import ChannelImage, PixelBuffer
from .pipeline import GradingPipeline
from .profiles import PROFILES, get_profile, get_profile_choices
from .scoring.aggregation import AggregateResult, GradeClassifier, WeightedAggregator
from .scoring.feature_scoring import AlgorithmResult

__version__ = "0.1.0"

__all__ = [
    'GradingPipeline',
    'PipelineConfig',
    'PROFILES',
    'get_profile',
    'get_profile_choices',
    # Data types
    'PixelBuffer',
    'ChannelImage',
    'AlgorithmResult',
    'AggregateResult',
    'WeightedAggregator',
    'GradeClassifier',
    # Errors
    'HistogradeError',
    'InvalidInputError',
    'ConfigurationError',
    'ResultFlag',
]
