#!/usr/bin/env python3
"""
Feature Scorers - one scorer per analysis category

Every scorer maps the measurements of one analysis request (channels,
regions, per-nucleus morphometry) to an AlgorithmResult:
- score and confidence, both clamped to [0, 1]
- named feature values
- a qualitative interpretation from an ordered band table

Contract shared by all scorers:
- Deterministic for identical input
- Below min_samples the scorer does not raise: it returns its documented
  (default_score, default_confidence) with the INSUFFICIENT_SAMPLES flag

Catalog:
    cell_density           Dense windows of the nuclear channel
    nuclear_morphometry    Hull complexity, pleomorphism, N/C ratio
    architectural_pattern  Luminal spaces and edge regularity
    mitotic_activity       Elongated hyperchromatic nuclei
    spatial_distribution   Nearest-neighbour clustering, quadrant balance
    chromatin_pattern      GLCM texture inside nuclei
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from ..constants import (
    CYTOPLASM_STAIN,
    DEFAULT_INTERPRETATION_BANDS,
    HYPERCHROMATIC_INTENSITY,
    MITOTIC_CRITERIA,
    MITOTIC_MAX_AREA,
    MITOTIC_MIN_AREA,
    NUCLEAR_STAIN,
)
from ..errors import ConfigurationError, ResultFlag
from ..image import ChannelImage
from ..metrics.morphometry import MorphometricAnalyzer, RegionMorphometry, texture_statistics
from ..segmentation.regions import Region
from .bands import Band, BandTable

logger = logging.getLogger(__name__)


def clamp01(value: float) -> float:
    """Documented clamp to [0, 1]; NaN reads as 0."""
    if math.isnan(value):
        return 0.0
    return float(min(max(value, 0.0), 1.0))


@dataclass
class AlgorithmResult:
    """Outcome of one scorer."""
    name: str
    score: float
    confidence: float
    weight: float = 0.0
    features: Dict[str, Any] = field(default_factory=dict)
    interpretation: str = ""
    sample_count: int = 0
    flags: FrozenSet[ResultFlag] = field(default_factory=frozenset)

    def __post_init__(self):
        self.score = clamp01(self.score)
        self.confidence = clamp01(self.confidence)
        self.flags = frozenset(self.flags)

    @property
    def insufficient_samples(self) -> bool:
        return ResultFlag.INSUFFICIENT_SAMPLES in self.flags

    def with_weight(self, weight: float) -> "AlgorithmResult":
        return replace(self, weight=float(weight))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "weight": self.weight,
            "score": self.score,
            "confidence": self.confidence,
            "interpretation": self.interpretation,
            "sample_count": self.sample_count,
            "features": dict(self.features),
            "flags": sorted(f.value for f in self.flags),
        }


@dataclass
class AnalysisContext:
    """Everything the scorers of one request read. Never mutated by scorers."""
    channels: Dict[str, ChannelImage]
    regions: List[Region]
    nuclei: List[RegionMorphometry]
    nuclear_stain: str = NUCLEAR_STAIN
    cytoplasm_stain: str = CYTOPLASM_STAIN
    analyzer: MorphometricAnalyzer = field(default_factory=MorphometricAnalyzer)

    def channel(self, name: str) -> ChannelImage:
        if name not in self.channels:
            raise ConfigurationError(
                f"Channel '{name}' not available. Available: {list(self.channels)}"
            )
        return self.channels[name]

    @property
    def nuclear(self) -> np.ndarray:
        return self.channel(self.nuclear_stain).pixels

    @property
    def cytoplasm(self) -> np.ndarray:
        return self.channel(self.cytoplasm_stain).pixels


# =========================================================================
# BASE SCORER
# =========================================================================

class FeatureScorer:
    """
    Base class: sample collection, insufficient-samples fallback,
    interpretation lookup.

    Subclasses set the class attributes and implement collect() and
    measure(). collect() returns the samples the minimum applies to;
    measure() turns them into (score, confidence, features).
    """

    name = ""
    min_samples = 1
    default_score = 0.1
    default_confidence = 0.2
    interpretation_bands: Sequence[Band] = DEFAULT_INTERPRETATION_BANDS

    def __init__(
        self,
        min_samples: Optional[int] = None,
        default_score: Optional[float] = None,
        default_confidence: Optional[float] = None,
        interpretation_bands: Optional[Sequence[Band]] = None,
    ):
        if min_samples is not None:
            self.min_samples = min_samples
        if default_score is not None:
            self.default_score = default_score
        if default_confidence is not None:
            self.default_confidence = default_confidence

        if isinstance(self.min_samples, bool) or not isinstance(self.min_samples, int) or self.min_samples < 1:
            raise ConfigurationError(f"{self.name}: min_samples must be an integer >= 1, got {self.min_samples}")
        for label, value in (("default_score", self.default_score), ("default_confidence", self.default_confidence)):
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{self.name}: {label} must be in [0, 1], got {value}")

        self.bands = BandTable(
            interpretation_bands if interpretation_bands is not None else self.interpretation_bands,
            inclusive=False,
            what=f"{self.name} interpretation bands",
        )

    def collect(self, context: AnalysisContext) -> Sequence:
        raise NotImplementedError

    def measure(self, context: AnalysisContext, samples: Sequence) -> Tuple[float, float, Dict[str, Any]]:
        raise NotImplementedError

    def interpret(self, score: float) -> str:
        return self.bands.label(score)

    def score(self, context: AnalysisContext) -> AlgorithmResult:
        """Run the scorer; never raises for too few samples."""
        samples = self.collect(context)
        count = len(samples)

        if count < self.min_samples:
            logger.warning(
                f"{self.name}: {count} samples < minimum {self.min_samples}, "
                f"using default score {self.default_score}"
            )
            return AlgorithmResult(
                name=self.name,
                score=self.default_score,
                confidence=self.default_confidence,
                features={"samples": count, "min_samples": self.min_samples},
                interpretation=self.interpret(self.default_score),
                sample_count=count,
                flags=frozenset({ResultFlag.INSUFFICIENT_SAMPLES}),
            )

        score, confidence, features = self.measure(context, samples)
        score = clamp01(score)
        logger.debug(f"{self.name}: score={score:.3f} confidence={confidence:.3f} ({count} samples)")

        return AlgorithmResult(
            name=self.name,
            score=score,
            confidence=confidence,
            features=features,
            interpretation=self.interpret(score),
            sample_count=count,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(min_samples={self.min_samples})"


def architectural_organization(context: AnalysisContext) -> Dict[str, float]:
    """
    Organization of the tissue architecture.

    organization = (space_ratio + (1 - edge_variance)) / 2, capped at 1,
    where space_ratio comes from the cytoplasm channel and edge statistics
    from the nuclear channel.
    """
    analyzer = context.analyzer
    samples = analyzer.sample_pixels(context.cytoplasm)
    space_ratio = analyzer.space_ratio(samples)
    edge_mean, edge_variance = analyzer.edge_gradient_stats(context.nuclear)

    return {
        "organization": min((space_ratio + (1.0 - edge_variance)) / 2.0, 1.0),
        "space_ratio": space_ratio,
        "edge_mean": edge_mean,
        "edge_variance": edge_variance,
    }


# =========================================================================
# CATALOG
# =========================================================================

class CellDensityScorer(FeatureScorer):
    """Multi-scale density: dense windows, their texture, architecture, distribution."""

    name = "cell_density"
    min_samples = 15
    default_score = 0.2
    default_confidence = 0.3

    def collect(self, context):
        return context.analyzer.window_density(context.nuclear)

    def measure(self, context, samples):
        densities = [s.density for s in samples]
        density = min(float(np.mean(densities)), 1.0)
        texture = texture_statistics(densities)
        architecture = architectural_organization(context)
        organization = architecture["organization"]
        distribution = 1.0 - min(context.analyzer.distribution_variance(context.nuclear), 1.0)

        score = (
            density * 0.3 +
            texture.texture_score * 0.25 +
            organization * 0.25 +
            distribution * 0.2
        )
        confidence = min((texture.texture_score + organization) / 2.0 + 0.1, 0.95)

        features = {
            "windows_analyzed": len(samples),
            "density_score": density,
            "texture_score": texture.texture_score,
            "texture_homogeneity": texture.homogeneity,
            "texture_contrast": texture.std,
            "organization_score": organization,
            "distribution_score": distribution,
            "mean_nuclear_intensity": float(np.mean([s.nuclear_intensity for s in samples])),
        }
        return score, confidence, features


class NuclearMorphometryScorer(FeatureScorer):
    """Hull complexity, pleomorphism, N/C ratio and size variation."""

    name = "nuclear_morphometry"
    min_samples = 20
    default_score = 0.1
    default_confidence = 0.2

    def collect(self, context):
        return context.nuclei

    def measure(self, context, samples):
        analyzer = context.analyzer
        complexity, analysed = analyzer.mean_shape_complexity(samples)
        pleomorphism = analyzer.pleomorphism(samples)
        nc = analyzer.nc_ratio(samples, context.cytoplasm)

        score = (
            complexity * 0.3 +
            pleomorphism.pleomorphism_index * 0.3 +
            nc.mean_ratio * 0.2 +
            min(pleomorphism.size_variation_cv, 1.0) * 0.2
        )

        hull_confidence = 0.8 if analysed > 10 else 0.5
        pleomorphism_confidence = 0.8 if pleomorphism.pleomorphism_index > 0.1 else 0.4
        confidence = min((hull_confidence + pleomorphism_confidence) / 2.0 + 0.1, 0.95)

        features = {
            "nuclei_analyzed": len(samples),
            "hulls_analyzed": analysed,
            "shape_complexity": complexity,
            "pleomorphism_index": pleomorphism.pleomorphism_index,
            "size_variation_cv": pleomorphism.size_variation_cv,
            "intensity_variation_cv": pleomorphism.intensity_variation_cv,
            "mean_area": pleomorphism.mean_area,
            "nc_ratio": nc.mean_ratio,
            "nc_ratio_variance": nc.ratio_variance,
            "nc_ratios_calculated": nc.ratios_calculated,
            "mean_circularity": float(np.mean([n.circularity for n in samples])),
        }
        return score, confidence, features


class ArchitecturalPatternScorer(FeatureScorer):
    """Loss of organization (few luminal spaces, irregular edges) scores high."""

    name = "architectural_pattern"
    min_samples = 100
    default_score = 0.2
    default_confidence = 0.3

    def collect(self, context):
        return context.analyzer.sample_pixels(context.cytoplasm)

    def measure(self, context, samples):
        architecture = architectural_organization(context)
        organization = architecture["organization"]

        score = 1.0 - organization
        confidence = min(0.5 + 0.4 * min(len(samples) / 10000.0, 1.0), 0.9)

        features = dict(architecture)
        features["pixels_sampled"] = int(len(samples))
        return score, confidence, features


def is_mitotic_candidate(nucleus: RegionMorphometry) -> bool:
    """Area in (MITOTIC_MIN_AREA, MITOTIC_MAX_AREA) and one of MITOTIC_CRITERIA met."""
    if not MITOTIC_MIN_AREA < nucleus.area < MITOTIC_MAX_AREA:
        return False

    for min_elongation, min_intensity, max_circularity in MITOTIC_CRITERIA:
        if nucleus.elongation <= min_elongation or nucleus.mean_intensity < min_intensity:
            continue
        if max_circularity is not None and nucleus.circularity >= max_circularity:
            continue
        return True
    return False


class MitoticActivityScorer(FeatureScorer):
    """Elongated hyperchromatic nuclei as mitotic figure candidates."""

    name = "mitotic_activity"
    min_samples = 10
    default_score = 0.1
    default_confidence = 0.2

    def collect(self, context):
        return context.nuclei

    def measure(self, context, samples):
        candidates = [n for n in samples if is_mitotic_candidate(n)]
        count = len(candidates)
        hyperchromatic = sum(1 for n in samples if n.mean_intensity >= HYPERCHROMATIC_INTENSITY)
        hyperchromatic_fraction = hyperchromatic / len(samples)

        count_score = min(count / 10.0, 1.0)
        ratio_score = min(5.0 * count / len(samples), 1.0)

        score = count_score * 0.4 + ratio_score * 0.3 + hyperchromatic_fraction * 0.3
        confidence = min((count_score + ratio_score) / 2.0 + 0.15, 0.9)

        features = {
            "nuclei_analyzed": len(samples),
            "mitotic_candidates": count,
            "mitotic_ratio": count / len(samples),
            "hyperchromatic_fraction": hyperchromatic_fraction,
            "count_score": count_score,
            "ratio_score": ratio_score,
        }
        return score, confidence, features


class SpatialDistributionScorer(FeatureScorer):
    """Irregular nucleus spacing and unbalanced quadrants score high."""

    name = "spatial_distribution"
    min_samples = 10
    default_score = 0.2
    default_confidence = 0.3

    def collect(self, context):
        return context.nuclei

    def measure(self, context, samples):
        analyzer = context.analyzer
        nn_cv = analyzer.nearest_neighbour_cv(samples)
        clustering = min(nn_cv, 1.0)
        quadrant_variance = analyzer.distribution_variance(context.nuclear)

        score = clustering * 0.6 + min(quadrant_variance * 20.0, 1.0) * 0.4
        confidence = min(0.5 + len(samples) / 200.0, 0.9)

        features = {
            "nuclei_analyzed": len(samples),
            "nearest_neighbour_cv": nn_cv,
            "clustering_score": clustering,
            "quadrant_variance": quadrant_variance,
        }
        return score, confidence, features


class ChromatinPatternScorer(FeatureScorer):
    """GLCM texture of the nuclear channel inside each nucleus bounding box."""

    name = "chromatin_pattern"
    min_samples = 5
    default_score = 0.15
    default_confidence = 0.25

    def collect(self, context):
        nuclear = context.nuclear
        textures = []
        for nucleus in context.nuclei:
            min_x, min_y, max_x, max_y = nucleus.bbox
            texture = context.analyzer.glcm_texture(nuclear[min_y:max_y + 1, min_x:max_x + 1])
            if texture is not None:
                textures.append(texture)
        return textures

    def measure(self, context, samples):
        contrast = float(np.mean([t.contrast for t in samples]))
        homogeneity = float(np.mean([t.homogeneity for t in samples]))
        energy = float(np.mean([t.energy for t in samples]))
        correlation = float(np.mean([t.correlation for t in samples]))

        score = (1.0 - homogeneity) * 0.5 + min(contrast / 100.0, 1.0) * 0.5
        confidence = min(0.4 + len(samples) / 100.0, 0.9)

        features = {
            "nuclei_analyzed": len(samples),
            "glcm_contrast": contrast,
            "glcm_homogeneity": homogeneity,
            "glcm_energy": energy,
            "glcm_correlation": correlation,
        }
        return score, confidence, features


# =========================================================================
# REGISTRY
# =========================================================================

# Keyword arguments create_scorer accepts per scorer
SCORER_OVERRIDE_KEYS = ("min_samples", "default_score", "default_confidence", "interpretation_bands")

SCORER_REGISTRY = {
    cls.name: cls
    for cls in (
        CellDensityScorer,
        NuclearMorphometryScorer,
        ArchitecturalPatternScorer,
        MitoticActivityScorer,
        SpatialDistributionScorer,
        ChromatinPatternScorer,
    )
}


def create_scorer(name: str, **overrides) -> FeatureScorer:
    """
    Instantiate a registered scorer.

    Args:
        name: registry key (e.g. "cell_density")
        **overrides: min_samples, default_score, default_confidence,
            interpretation_bands

    Raises:
        ConfigurationError: unknown name
    """
    if name not in SCORER_REGISTRY:
        raise ConfigurationError(
            f"Unknown scorer '{name}'. Available: {sorted(SCORER_REGISTRY)}"
        )
    return SCORER_REGISTRY[name](**overrides)
