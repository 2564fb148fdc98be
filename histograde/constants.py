"""
Global constants for histograde.

This file is the SINGLE SOURCE OF TRUTH for the numeric defaults of the
grading pipeline: stain vectors, optical density cap, segmentation bounds,
scoring weights and band tables.

Principle: a constant defined HERE is used EVERYWHERE, never redefined.
Profiles (histograde.profiles) override these values as data, not code.
"""

# =============================================================================
# COLOR DECONVOLUTION
# =============================================================================

# Reference H&E(+residual) optical density vectors, one row per stain (R, G, B).
# Ruifrok & Johnston 2001, rounded as used across the per-organ analyzers.
DEFAULT_STAIN_MATRIX = (
    (0.65, 0.70, 0.29),  # Hematoxylin
    (0.07, 0.99, 0.11),  # Eosin
    (0.27, 0.57, 0.78),  # Residual
)
DEFAULT_STAIN_NAMES = ("hematoxylin", "eosin", "residual")

NUCLEAR_STAIN = "hematoxylin"
CYTOPLASM_STAIN = "eosin"

# OD = -log10(I / I0). Channels are clamped to 10^-OD_MAX before the log,
# so a fully absorbing pixel reads OD_MAX instead of +inf.
OD_MAX = 2.0

CHANNEL_MIN = 0
CHANNEL_MAX = 255

# =============================================================================
# ENHANCEMENT
# =============================================================================

DENOISE_METHODS = ("median", "mean", "none")
CONTRAST_METHODS = ("minmax", "equalize", "none")

DEFAULT_DENOISE = "median"
DEFAULT_DENOISE_RADIUS = 1  # 3x3 neighbourhood
DEFAULT_CONTRAST = "minmax"

# =============================================================================
# SEGMENTATION
# =============================================================================

OTSU = "otsu"

DEFAULT_SEGMENTATION_THRESHOLD = 120
DEFAULT_MIN_REGION_PX = 20
DEFAULT_MAX_REGION_PX = 500       # per-region growth cap
DEFAULT_MAX_REGIONS = 5000        # per-image region count cap
DEFAULT_CONNECTIVITY = 8
VALID_CONNECTIVITY = (4, 8)

# =============================================================================
# MORPHOMETRY
# =============================================================================

# Texture score = TEXTURE_CONTRAST_WEIGHT * std + TEXTURE_HOMOGENEITY_WEIGHT * homogeneity
TEXTURE_CONTRAST_WEIGHT = 0.5
TEXTURE_HOMOGENEITY_WEIGHT = 0.5
EMPTY_TEXTURE_SCORE = 0.1

# Window density sampling (multi-scale analysis)
DENSITY_WINDOW_SIZE = 50
DENSE_PIXEL_THRESHOLD = 150
DENSE_WINDOW_THRESHOLD = 0.3

# Cytoplasm estimation around a nucleus (N/C ratio)
CYTOPLASM_SEARCH_RADIUS = 15
CYTOPLASM_THRESHOLD = 100
DEFAULT_NC_RATIO = 0.1

# Architectural analysis
SPACE_THRESHOLD = 80
SPACE_SAMPLING_STEP = 10
EDGE_GRADIENT_THRESHOLD = 30

# GLCM texture
GLCM_LEVELS = 32
GLCM_DISTANCES = (1,)
GLCM_ANGLES = (0.0, 0.7853981633974483, 1.5707963267948966, 2.356194490292318)

# =============================================================================
# SCORING & AGGREGATION
# =============================================================================

# Interpretation bands: (exclusive lower bound, label), highest first.
# The last entry is the catch-all.
DEFAULT_INTERPRETATION_BANDS = (
    (0.8, "high"),
    (0.6, "moderate"),
    (0.4, "low"),
    (0.0, "minimal"),
)

# Grade bands: (inclusive lower bound, label). Order does not matter,
# the classifier sorts them; the lowest band is the catch-all.
DEFAULT_GRADE_BANDS = (
    (0.8, "Poorly differentiated"),
    (0.6, "Moderately differentiated"),
    (0.4, "Well differentiated"),
    (0.0, "Benign or reactive"),
)

DEFAULT_WEIGHTS = {
    "nuclear_morphometry": 0.327,
    "cell_density": 0.254,
    "architectural_pattern": 0.189,
    "chromatin_pattern": 0.146,
    "mitotic_activity": 0.084,
}

WEIGHT_TOLERANCE = 1e-3

# Overall confidence = min(weighted mean confidence + bonus, ceiling)
CONFIDENCE_BONUS = 0.1
CONFIDENCE_CEILING = 0.95

# =============================================================================
# MITOTIC FIGURES (nuclear channel, high value = dense chromatin)
# =============================================================================

MITOTIC_MIN_AREA = 30   # exclusive
MITOTIC_MAX_AREA = 500  # exclusive

# (minimum elongation (exclusive), minimum mean intensity, maximum circularity)
MITOTIC_CRITERIA = (
    (1.8, 155, None),  # elongated and dark
    (1.5, 185, 0.5),   # very dark and irregular
    (2.2, 135, None),  # highly elongated
)

HYPERCHROMATIC_INTENSITY = 185
