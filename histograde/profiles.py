"""
Named tissue profiles.

One parameterized pipeline, instantiated per tissue type: a profile is only
data (scorer weights, grade bands, segmentation overrides) on top of the
defaults of histograde.constants.

Usage:
    from histograde.profiles import get_profile, get_profile_choices

    config = get_profile("lung")
    config = get_profile("prostate", segmentation_threshold="otsu")
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .config import PipelineConfig
from .constants import DEFAULT_GRADE_BANDS, DEFAULT_WEIGHTS
from .errors import ConfigurationError


@dataclass
class TissueProfile:
    """Configuration of one tissue type."""
    name: str                                  # Registry key (ex: "lung")
    display_name: str                          # Shown in reports / CLI help
    weights: Dict[str, float]                  # Scorer name -> weight, sum 1.0
    grade_bands: Tuple[Tuple[float, str], ...]  # (inclusive lower bound, label)
    overrides: Dict[str, Any] = field(default_factory=dict)  # Other PipelineConfig fields

    def to_config(self, **overrides) -> PipelineConfig:
        values = {"weights": dict(self.weights), "grade_bands": self.grade_bands}
        values.update(self.overrides)
        values.update(overrides)
        return PipelineConfig.from_dict(values)


# =============================================================================
# GRADE BANDS
# =============================================================================

LUNG_GRADE_BANDS = (
    (0.66, "Grade 3 (poorly differentiated)"),
    (0.31, "Grade 2 (moderately differentiated)"),
    (0.0, "Grade 1 (well differentiated)"),
)

BREAST_GRADE_BANDS = (
    (0.66, "Nottingham grade 3"),
    (0.33, "Nottingham grade 2"),
    (0.0, "Nottingham grade 1"),
)

PROSTATE_GRADE_BANDS = (
    (0.85, "Grade group 5"),
    (0.8, "Grade group 4"),
    (0.75, "Grade group 3"),
    (0.6, "Grade group 2"),
    (0.0, "Grade group 1"),
)

COLON_GRADE_BANDS = (
    (0.6, "High grade"),
    (0.0, "Low grade"),
)

KIDNEY_GRADE_BANDS = (
    (0.8, "ISUP grade 4"),
    (0.6, "ISUP grade 3"),
    (0.4, "ISUP grade 2"),
    (0.0, "ISUP grade 1"),
)


# =============================================================================
# PROFILES
# =============================================================================

PROFILES = {
    "generic": TissueProfile(
        name="generic",
        display_name="Generic H&E",
        weights=dict(DEFAULT_WEIGHTS),
        grade_bands=DEFAULT_GRADE_BANDS,
    ),
    "lung": TissueProfile(
        name="lung",
        display_name="Lung adenocarcinoma",
        weights=dict(DEFAULT_WEIGHTS),
        grade_bands=LUNG_GRADE_BANDS,
    ),
    "breast": TissueProfile(
        name="breast",
        display_name="Breast carcinoma",
        weights={
            "nuclear_morphometry": 0.327,
            "mitotic_activity": 0.254,
            "architectural_pattern": 0.189,
            "chromatin_pattern": 0.146,
            "cell_density": 0.084,
        },
        grade_bands=BREAST_GRADE_BANDS,
    ),
    "prostate": TissueProfile(
        name="prostate",
        display_name="Prostate adenocarcinoma",
        weights={
            "architectural_pattern": 0.327,
            "nuclear_morphometry": 0.254,
            "spatial_distribution": 0.189,
            "cell_density": 0.146,
            "chromatin_pattern": 0.084,
        },
        grade_bands=PROSTATE_GRADE_BANDS,
    ),
    "colon": TissueProfile(
        name="colon",
        display_name="Colorectal adenocarcinoma",
        weights={
            "architectural_pattern": 0.327,
            "cell_density": 0.254,
            "nuclear_morphometry": 0.189,
            "spatial_distribution": 0.146,
            "mitotic_activity": 0.084,
        },
        grade_bands=COLON_GRADE_BANDS,
    ),
    "kidney": TissueProfile(
        name="kidney",
        display_name="Renal cell carcinoma",
        weights={
            "nuclear_morphometry": 0.327,
            "chromatin_pattern": 0.254,
            "cell_density": 0.189,
            "architectural_pattern": 0.146,
            "mitotic_activity": 0.084,
        },
        grade_bands=KIDNEY_GRADE_BANDS,
        overrides={"segmentation_threshold": "otsu"},
    ),
}

DEFAULT_PROFILE = "generic"


def get_profile(name: str = DEFAULT_PROFILE, **overrides) -> PipelineConfig:
    """
    Validated PipelineConfig of a named profile.

    Raises:
        ConfigurationError: unknown profile or invalid override
    """
    key = name.lower()
    if key not in PROFILES:
        raise ConfigurationError(f"Unknown profile '{name}'. Available: {get_profile_choices()}")
    return PROFILES[key].to_config(**overrides)


def get_profile_choices() -> List[str]:
    return sorted(PROFILES)
