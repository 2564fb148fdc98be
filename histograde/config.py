"""
Pipeline configuration.

PipelineConfig is validated at construction: every ConfigurationError is
raised before any image is processed.

Usage:
    from histograde.config import PipelineConfig

    config = PipelineConfig(segmentation_threshold="otsu", connectivity=4)
    config = PipelineConfig.from_json("lung.json")
    data = config.to_dict()
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .constants import (
    CONTRAST_METHODS,
    CYTOPLASM_STAIN,
    DEFAULT_CONNECTIVITY,
    DEFAULT_CONTRAST,
    DEFAULT_DENOISE,
    DEFAULT_DENOISE_RADIUS,
    DEFAULT_GRADE_BANDS,
    DEFAULT_INTERPRETATION_BANDS,
    DEFAULT_MAX_REGION_PX,
    DEFAULT_MAX_REGIONS,
    DEFAULT_MIN_REGION_PX,
    DEFAULT_SEGMENTATION_THRESHOLD,
    DEFAULT_STAIN_MATRIX,
    DEFAULT_STAIN_NAMES,
    DEFAULT_WEIGHTS,
    DENOISE_METHODS,
    NUCLEAR_STAIN,
    OTSU,
    VALID_CONNECTIVITY,
    WEIGHT_TOLERANCE,
)
from .errors import ConfigurationError
from .preprocessing.stain_separation import validate_stain_matrix
from .scoring.bands import validate_bands
from .scoring.aggregation import validate_weights
from .scoring.feature_scoring import SCORER_OVERRIDE_KEYS, SCORER_REGISTRY, create_scorer


@dataclass
class PipelineConfig:
    """All swappable inputs of the grading pipeline."""

    # Deconvolution
    stain_matrix: Tuple[Tuple[float, float, float], ...] = DEFAULT_STAIN_MATRIX
    stain_names: Tuple[str, ...] = DEFAULT_STAIN_NAMES
    nuclear_stain: str = NUCLEAR_STAIN
    cytoplasm_stain: str = CYTOPLASM_STAIN

    # Segmentation
    segmentation_threshold: Union[int, str] = DEFAULT_SEGMENTATION_THRESHOLD  # 0-255 or "otsu"
    min_region_px: int = DEFAULT_MIN_REGION_PX
    max_region_px: int = DEFAULT_MAX_REGION_PX
    max_regions: int = DEFAULT_MAX_REGIONS
    connectivity: int = DEFAULT_CONNECTIVITY

    # Enhancement
    denoise: str = DEFAULT_DENOISE
    denoise_radius: int = DEFAULT_DENOISE_RADIUS
    contrast: str = DEFAULT_CONTRAST

    # Scoring
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    grade_bands: Tuple[Tuple[float, str], ...] = DEFAULT_GRADE_BANDS
    interpretation_bands: Tuple[Tuple[float, str], ...] = DEFAULT_INTERPRETATION_BANDS
    scorer_overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict)  # name -> create_scorer kwargs
    weight_tolerance: float = WEIGHT_TOLERANCE

    # Execution
    n_workers: int = 1

    def __post_init__(self):
        matrix = validate_stain_matrix(self.stain_matrix)
        self.stain_matrix = tuple(tuple(float(v) for v in row) for row in matrix)

        self.stain_names = tuple(self.stain_names)
        if len(self.stain_names) != len(self.stain_matrix):
            raise ConfigurationError(
                f"{len(self.stain_names)} stain names for {len(self.stain_matrix)} stain vectors"
            )
        if len(set(self.stain_names)) != len(self.stain_names):
            raise ConfigurationError(f"Duplicate stain names: {self.stain_names}")
        for role, stain in (("nuclear_stain", self.nuclear_stain), ("cytoplasm_stain", self.cytoplasm_stain)):
            if stain not in self.stain_names:
                raise ConfigurationError(f"{role} '{stain}' is not one of {self.stain_names}")

        threshold = self.segmentation_threshold
        if threshold != OTSU:
            if isinstance(threshold, bool) or not isinstance(threshold, int) or not 0 <= threshold <= 255:
                raise ConfigurationError(
                    f"segmentation_threshold must be an integer in [0, 255] or '{OTSU}', got {threshold!r}"
                )
        if self.connectivity not in VALID_CONNECTIVITY:
            raise ConfigurationError(f"connectivity must be 4 or 8, got {self.connectivity}")
        if self.min_region_px < 1 or self.max_region_px < self.min_region_px:
            raise ConfigurationError(
                f"Invalid region bounds: min={self.min_region_px}, max={self.max_region_px}"
            )
        if self.max_regions < 1:
            raise ConfigurationError(f"max_regions must be >= 1, got {self.max_regions}")

        if self.denoise not in DENOISE_METHODS:
            raise ConfigurationError(f"Unknown denoise method '{self.denoise}'. Valid: {DENOISE_METHODS}")
        if self.contrast not in CONTRAST_METHODS:
            raise ConfigurationError(f"Unknown contrast method '{self.contrast}'. Valid: {CONTRAST_METHODS}")
        if not isinstance(self.denoise_radius, int) or self.denoise_radius < 1:
            raise ConfigurationError(f"denoise_radius must be a positive integer, got {self.denoise_radius}")

        self.weights = validate_weights(self.weights, self.weight_tolerance)
        unknown = sorted(set(self.weights) - set(SCORER_REGISTRY))
        if unknown:
            raise ConfigurationError(
                f"Weights name unknown scorers {unknown}. Available: {sorted(SCORER_REGISTRY)}"
            )

        self.grade_bands = validate_bands(self.grade_bands, "grade band table")
        self.interpretation_bands = validate_bands(self.interpretation_bands, "interpretation band table")
        self.scorer_overrides = self._validate_scorer_overrides(self.scorer_overrides)

        if not isinstance(self.n_workers, int) or self.n_workers < 1:
            raise ConfigurationError(f"n_workers must be a positive integer, got {self.n_workers}")

    def _validate_scorer_overrides(self, scorer_overrides) -> Dict[str, Dict[str, Any]]:
        """Known scorer names and keys only; values checked by building each scorer."""
        if not isinstance(scorer_overrides, Mapping):
            raise ConfigurationError(f"scorer_overrides must be a mapping, got {type(scorer_overrides).__name__}")

        checked = {}
        for name, overrides in scorer_overrides.items():
            if name not in SCORER_REGISTRY:
                raise ConfigurationError(
                    f"scorer_overrides names unknown scorer '{name}'. Available: {sorted(SCORER_REGISTRY)}"
                )
            if not isinstance(overrides, Mapping):
                raise ConfigurationError(f"scorer_overrides['{name}'] must be a mapping, got {overrides!r}")
            unknown = sorted(set(overrides) - set(SCORER_OVERRIDE_KEYS))
            if unknown:
                raise ConfigurationError(
                    f"Unknown keys {unknown} in scorer_overrides['{name}']. Valid: {list(SCORER_OVERRIDE_KEYS)}"
                )

            overrides = dict(overrides)
            if "interpretation_bands" in overrides:
                overrides["interpretation_bands"] = validate_bands(
                    overrides["interpretation_bands"], f"{name} interpretation band table"
                )
            checked[name] = overrides

        for name, overrides in checked.items():
            create_scorer(name, **{"interpretation_bands": self.interpretation_bands, **overrides})
        return checked

    def scorer_kwargs(self, name: str) -> Dict[str, Any]:
        """create_scorer keyword arguments for one scorer."""
        kwargs = {"interpretation_bands": self.interpretation_bands}
        kwargs.update(self.scorer_overrides.get(name, {}))
        return kwargs

    # =====================================================================
    # SERIALIZATION
    # =====================================================================

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dict (tuples become lists)."""
        data = asdict(self)
        data["stain_matrix"] = [list(row) for row in self.stain_matrix]
        data["stain_names"] = list(self.stain_names)
        data["grade_bands"] = [list(b) for b in self.grade_bands]
        data["interpretation_bands"] = [list(b) for b in self.interpretation_bands]
        data["scorer_overrides"] = {
            name: {
                key: [list(b) for b in value] if key == "interpretation_bands" else value
                for key, value in overrides.items()
            }
            for name, overrides in self.scorer_overrides.items()
        }
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base: Optional["PipelineConfig"] = None) -> "PipelineConfig":
        """
        Build a config from external data.

        Args:
            data: field name -> value; unknown keys are rejected
            base: values not in data are taken from base (defaults if None)
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")

        values = base.to_dict() if base is not None else {}
        values.update(data)

        for key in ("stain_matrix", "grade_bands", "interpretation_bands"):
            if key in values and values[key] is not None:
                try:
                    values[key] = tuple(tuple(item) for item in values[key])
                except TypeError as e:
                    raise ConfigurationError(f"'{key}' must be a list of lists: {e}") from e
        if "stain_names" in values:
            values["stain_names"] = tuple(values["stain_names"])

        return cls(**values)

    @classmethod
    def from_json(cls, path: Union[str, Path], base: Optional["PipelineConfig"] = None) -> "PipelineConfig":
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a JSON object")
        return cls.from_dict(data, base=base)

    def with_overrides(self, **overrides) -> "PipelineConfig":
        """Validated copy with some fields replaced."""
        return PipelineConfig.from_dict(overrides, base=self)
