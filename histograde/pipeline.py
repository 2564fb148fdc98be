#!/usr/bin/env python3
"""
Grading Pipeline - one analysis request, end to end

    PixelBuffer
      -> ColorDeconvolver      {hematoxylin, eosin, residual} channels
      -> ImageEnhancer         denoise + contrast, per channel
      -> RegionDetector        nuclei on the nuclear channel
      -> MorphometricAnalyzer  per-nucleus measurements
      -> FeatureScorer x N     AlgorithmResult per configured scorer
      -> WeightedAggregator    overall score / confidence
      -> GradeClassifier       grade label

All components are built (and validated) once from a PipelineConfig; every
analyze() call works on request-scoped data only, so one pipeline can serve
concurrent requests.

Usage:
    from histograde.pipeline import GradingPipeline
    from histograde.profiles import get_profile

    pipeline = GradingPipeline(get_profile("lung"))
    result = pipeline.analyze(buffer)
    print(result.grade, result.overall_score)
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

import numpy as np

from .config import PipelineConfig
from .errors import InvalidInputError
from .image import ChannelImage, PixelBuffer
from .metrics.morphometry import MorphometricAnalyzer
from .preprocessing.enhancement import ImageEnhancer
from .preprocessing.stain_separation import ColorDeconvolver
from .scoring.aggregation import AggregateResult, GradeClassifier, WeightedAggregator
from .scoring.feature_scoring import AnalysisContext, create_scorer
from .segmentation.regions import RegionDetector

logger = logging.getLogger(__name__)


class GradingPipeline:
    """
    Stateless H&E grading pipeline.

    Raises (at construction):
        ConfigurationError: invalid configuration
    Raises (per request):
        InvalidInputError: missing or malformed pixel buffer
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config if config is not None else PipelineConfig()
        cfg = self.config

        self.deconvolver = ColorDeconvolver(
            stain_matrix=cfg.stain_matrix,
            stain_names=cfg.stain_names,
            n_workers=cfg.n_workers,
        )
        self.enhancer = ImageEnhancer(
            denoise=cfg.denoise,
            radius=cfg.denoise_radius,
            contrast=cfg.contrast,
        )
        self.detector = RegionDetector(
            threshold=cfg.segmentation_threshold,
            min_region_px=cfg.min_region_px,
            max_region_px=cfg.max_region_px,
            max_regions=cfg.max_regions,
            connectivity=cfg.connectivity,
        )
        self.analyzer = MorphometricAnalyzer()
        self.scorers = [
            create_scorer(name, **cfg.scorer_kwargs(name))
            for name in cfg.weights
        ]
        self.aggregator = WeightedAggregator(cfg.weights, tolerance=cfg.weight_tolerance)
        self.classifier = GradeClassifier(cfg.grade_bands)

        logger.debug(f"Pipeline ready: scorers={[s.name for s in self.scorers]}")

    def enhance_channels(self, channels: Dict[str, ChannelImage]) -> Dict[str, ChannelImage]:
        """Enhance every channel, concurrently when n_workers > 1."""
        names = list(channels)
        if self.config.n_workers > 1 and len(names) > 1:
            with ThreadPoolExecutor(max_workers=self.config.n_workers) as executor:
                enhanced = list(executor.map(self.enhancer.enhance, (channels[n] for n in names)))
        else:
            enhanced = [self.enhancer.enhance(channels[n]) for n in names]
        return dict(zip(names, enhanced))

    def analyze(self, buffer: PixelBuffer) -> AggregateResult:
        """
        Grade one RGBA buffer.

        Returns:
            AggregateResult with per-scorer results, overall score and
            confidence, grade label and the recoverable flags raised on the way
        """
        if buffer is None:
            raise InvalidInputError("Pixel buffer is missing")
        if not isinstance(buffer, PixelBuffer):
            raise InvalidInputError(f"Expected PixelBuffer, got {type(buffer).__name__}")

        cfg = self.config
        t_start = time.perf_counter()

        # 1. Stain separation
        channels = self.deconvolver.deconvolve(buffer)

        # 2. Enhancement
        channels = self.enhance_channels(channels)

        # 3. Segmentation of the nuclear channel
        segmentation = self.detector.segment(channels[cfg.nuclear_stain])

        # 4. Morphometry
        nuclei = self.analyzer.measure_all(segmentation.regions)

        # 5. Scoring
        context = AnalysisContext(
            channels=channels,
            regions=segmentation.regions,
            nuclei=nuclei,
            nuclear_stain=cfg.nuclear_stain,
            cytoplasm_stain=cfg.cytoplasm_stain,
            analyzer=self.analyzer,
        )
        results = [scorer.score(context) for scorer in self.scorers]

        # 6. Aggregation + grade
        aggregate = self.aggregator.aggregate(results, self.classifier)
        aggregate.extra_flags = segmentation.flags

        elapsed_ms = (time.perf_counter() - t_start) * 1000
        aggregate.metadata = {
            "width": buffer.width,
            "height": buffer.height,
            "threshold": segmentation.threshold,
            "used_otsu": segmentation.used_otsu,
            "regions_detected": len(segmentation.regions),
            "regions_truncated": segmentation.truncated_count,
            "region_limit_reached": segmentation.region_limit_reached,
            "processing_time_ms": round(elapsed_ms, 1),
        }

        logger.info(
            f"Analyzed {buffer.width}x{buffer.height}: {len(nuclei)} nuclei, "
            f"score={aggregate.overall_score:.3f}, confidence={aggregate.overall_confidence:.3f}, "
            f"grade='{aggregate.grade}' ({elapsed_ms:.0f} ms)"
        )

        return aggregate

    def analyze_array(self, image: np.ndarray) -> AggregateResult:
        """Grade an (H, W, 3) RGB or (H, W, 4) RGBA uint8 array."""
        return self.analyze(PixelBuffer.from_array(image))
