"""
Error taxonomy for the grading pipeline.

Fatal categories are exceptions and abort the request before any partial
result is produced. Recoverable categories are never raised: they are
reported as ResultFlag values on the objects they affect, so downstream
consumers can decide how to react.
"""

from enum import Enum


class HistogradeError(Exception):
    """Base class for all fatal histograde errors."""


class InvalidInputError(HistogradeError, ValueError):
    """Missing or undersized pixel buffer, or dimensions not matching the data."""


class ConfigurationError(HistogradeError, ValueError):
    """Malformed stain matrix, weights not summing to 1, empty band table, ..."""


class ResultFlag(str, Enum):
    """Recoverable conditions, attached to results instead of raised."""

    # A scorer received fewer regions/nuclei than its configured minimum
    INSUFFICIENT_SAMPLES = "insufficient_samples"
    # A region hit the per-region pixel cap and was truncated
    RESOURCE_LIMIT_EXCEEDED = "resource_limit_exceeded"
    # Segmentation stopped after the per-image region count cap
    REGION_LIMIT_REACHED = "region_limit_reached"
