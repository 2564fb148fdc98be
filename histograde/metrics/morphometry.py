#!/usr/bin/env python3
"""
Morphometric measurements for segmented regions (nuclei) and channels.

Per region:
- Area, perimeter (boundary edge count), centroid, bounding box
- Convex hull (monotone chain) and shape complexity 1 - area / hull_area
- Circularity 4*pi*area / perimeter^2
- Elongation (major / minor axis from second central moments)
- Mean channel intensity (chromatin density proxy on the H channel)

Population / channel level:
- Texture statistics of a scalar sample list (mean, variance, std,
  homogeneity = 1 / (1 + variance))
- Nuclear pleomorphism (coefficient of variation of size and intensity)
- N/C ratio from the cytoplasm channel around each nucleus
- GLCM texture (contrast, homogeneity, energy, correlation)
- Window cell density, quadrant distribution, edge gradient statistics

Every function here is pure: identical input gives identical output and
nothing shared is mutated.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree
from skimage.feature import graycomatrix, graycoprops
from skimage.measure import regionprops

from ..constants import (
    CYTOPLASM_SEARCH_RADIUS,
    CYTOPLASM_THRESHOLD,
    DEFAULT_NC_RATIO,
    DENSE_PIXEL_THRESHOLD,
    DENSE_WINDOW_THRESHOLD,
    DENSITY_WINDOW_SIZE,
    EDGE_GRADIENT_THRESHOLD,
    EMPTY_TEXTURE_SCORE,
    GLCM_ANGLES,
    GLCM_DISTANCES,
    GLCM_LEVELS,
    SPACE_SAMPLING_STEP,
    SPACE_THRESHOLD,
    TEXTURE_CONTRAST_WEIGHT,
    TEXTURE_HOMOGENEITY_WEIGHT,
)
from ..segmentation.regions import Region
from .geometry import ConvexHull, convex_hull, shape_complexity

# Variance of a unit pixel along one axis; keeps single-row regions finite
_PIXEL_VARIANCE = 1.0 / 12.0


@dataclass
class RegionMorphometry:
    """Measurements for one region."""
    area: int
    perimeter: int
    centroid: Tuple[float, float]
    bbox: Tuple[int, int, int, int]
    hull: ConvexHull
    hull_area: float
    shape_complexity: float   # 0 = convex, -> 1 = highly concave
    circularity: float        # 1 = disk
    elongation: float         # >= 1
    mean_intensity: float     # 0-255
    truncated: bool = False


@dataclass
class TextureStats:
    """Statistics of a scalar sample list."""
    mean: float
    variance: float
    std: float            # contrast proxy
    homogeneity: float    # 1 / (1 + variance)
    texture_score: float  # fixed linear combination, clamped to [0, 1]


@dataclass
class PleomorphismStats:
    """Nuclear size/intensity variation within a population."""
    pleomorphism_index: float
    size_variation_cv: float
    intensity_variation_cv: float
    mean_area: float
    mean_intensity: float


@dataclass
class NCRatioStats:
    mean_ratio: float
    ratio_variance: float
    ratios_calculated: int


@dataclass
class GLCMTexture:
    contrast: float
    homogeneity: float
    energy: float
    correlation: float


@dataclass
class WindowSample:
    """A dense window of the nuclear channel."""
    x: int
    y: int
    density: float            # fraction of dense pixels
    nuclear_intensity: float  # mean intensity / 255


# =========================================================================
# PER-REGION MEASUREMENTS
# =========================================================================

def elongation(pixels: np.ndarray) -> float:
    """
    Major/minor axis ratio of the second-moment ellipse.

    Eigenvalues come from skimage regionprops' inertia tensor on the
    region's bounding-box mask, each padded by the variance of a unit pixel.
    """
    coords = np.asarray(pixels, dtype=np.int64)
    if len(coords) < 2:
        return 1.0

    xs = coords[:, 0] - coords[:, 0].min()
    ys = coords[:, 1] - coords[:, 1].min()
    mask = np.zeros((ys.max() + 1, xs.max() + 1), dtype=np.uint8)
    mask[ys, xs] = 1

    props = regionprops(mask)[0]
    major, minor = props.inertia_tensor_eigvals
    return float(np.sqrt((major + _PIXEL_VARIANCE) / (minor + _PIXEL_VARIANCE)))


def circularity(area: int, perimeter: int) -> float:
    """4*pi*area / perimeter^2, clamped to [0, 1]."""
    if perimeter <= 0:
        return 0.0
    return float(min(4.0 * np.pi * area / perimeter ** 2, 1.0))


def texture_statistics(samples: Sequence[float]) -> TextureStats:
    """
    Texture statistics of a sample list.

    texture_score = TEXTURE_CONTRAST_WEIGHT * std + TEXTURE_HOMOGENEITY_WEIGHT * homogeneity
    (0.5 / 0.5), clamped to [0, 1]. An empty list returns zeros and the
    EMPTY_TEXTURE_SCORE default.
    """
    values = np.asarray(samples, dtype=np.float64)
    if values.size == 0:
        return TextureStats(0.0, 0.0, 0.0, 0.0, EMPTY_TEXTURE_SCORE)

    mean = float(values.mean())
    variance = float(values.var())
    std = float(np.sqrt(variance))
    homogeneity = 1.0 / (1.0 + variance)
    score = TEXTURE_CONTRAST_WEIGHT * std + TEXTURE_HOMOGENEITY_WEIGHT * homogeneity

    return TextureStats(
        mean=mean,
        variance=variance,
        std=std,
        homogeneity=homogeneity,
        texture_score=float(min(max(score, 0.0), 1.0)),
    )


def _coefficient_of_variation(values: np.ndarray) -> float:
    mean = values.mean()
    return float(values.std() / mean) if mean > 0 else 0.0


class MorphometricAnalyzer:
    """
    Shape and texture measurements for regions and channels.

    Usage:
        analyzer = MorphometricAnalyzer()
        nuclei = analyzer.measure_all(regions)
        stats = analyzer.pleomorphism(nuclei)
    """

    def __init__(
        self,
        cytoplasm_search_radius: int = CYTOPLASM_SEARCH_RADIUS,
        cytoplasm_threshold: int = CYTOPLASM_THRESHOLD,
        window_size: int = DENSITY_WINDOW_SIZE,
        glcm_levels: int = GLCM_LEVELS,
    ):
        self.cytoplasm_search_radius = cytoplasm_search_radius
        self.cytoplasm_threshold = cytoplasm_threshold
        self.window_size = window_size
        self.glcm_levels = glcm_levels

    def measure(self, region: Region) -> RegionMorphometry:
        """All per-region measurements."""
        hull = convex_hull(region.coordinates())
        return RegionMorphometry(
            area=region.area,
            perimeter=region.perimeter,
            centroid=region.centroid,
            bbox=region.bbox,
            hull=hull,
            hull_area=hull.area,
            shape_complexity=shape_complexity(region.area, hull),
            circularity=circularity(region.area, region.perimeter),
            elongation=elongation(region.pixels),
            mean_intensity=region.mean_intensity,
            truncated=region.truncated,
        )

    def measure_all(self, regions: Sequence[Region]) -> List[RegionMorphometry]:
        return [self.measure(r) for r in regions]

    # =====================================================================
    # POPULATION MEASUREMENTS
    # =====================================================================

    def pleomorphism(self, nuclei: Sequence[RegionMorphometry]) -> PleomorphismStats:
        """
        Size and intensity variation.

        pleomorphism_index = (CV(area) + CV(intensity)) / 2, capped at 1.
        """
        if len(nuclei) == 0:
            return PleomorphismStats(0.0, 0.0, 0.0, 0.0, 0.0)

        areas = np.array([n.area for n in nuclei], dtype=np.float64)
        intensities = np.array([n.mean_intensity for n in nuclei], dtype=np.float64) / 255.0

        size_cv = _coefficient_of_variation(areas)
        intensity_cv = _coefficient_of_variation(intensities)

        return PleomorphismStats(
            pleomorphism_index=min((size_cv + intensity_cv) / 2.0, 1.0),
            size_variation_cv=size_cv,
            intensity_variation_cv=intensity_cv,
            mean_area=float(areas.mean()),
            mean_intensity=float(intensities.mean()),
        )

    def mean_shape_complexity(self, nuclei: Sequence[RegionMorphometry], min_area: int = 6) -> Tuple[float, int]:
        """Mean complexity over nuclei larger than min_area - 1 pixels; (mean, count)."""
        values = [n.shape_complexity for n in nuclei if n.area >= min_area]
        if not values:
            return 0.0, 0
        return float(min(np.mean(values), 1.0)), len(values)

    def nc_ratio(self, nuclei: Sequence[RegionMorphometry], cytoplasm: np.ndarray) -> NCRatioStats:
        """
        Nuclear / cytoplasm area ratio.

        Cytoplasm area of a nucleus = number of cytoplasm-channel pixels above
        cytoplasm_threshold within search_radius of its centroid.
        """
        height, width = cytoplasm.shape
        r = self.cytoplasm_search_radius
        ratios = []

        for nucleus in nuclei:
            if nucleus.area <= 10:
                continue
            cx = int(round(nucleus.centroid[0]))
            cy = int(round(nucleus.centroid[1]))
            window = cytoplasm[max(cy - r, 0):min(cy + r + 1, height), max(cx - r, 0):min(cx + r + 1, width)]
            cytoplasm_area = int(np.count_nonzero(window > self.cytoplasm_threshold))
            if cytoplasm_area > 0:
                ratios.append(nucleus.area / cytoplasm_area)

        if not ratios:
            return NCRatioStats(DEFAULT_NC_RATIO, 0.0, 0)

        values = np.asarray(ratios)
        return NCRatioStats(
            mean_ratio=float(min(values.mean(), 1.0)),
            ratio_variance=float(values.var()),
            ratios_calculated=len(ratios),
        )

    def nearest_neighbour_cv(self, nuclei: Sequence[RegionMorphometry]) -> float:
        """Coefficient of variation of centroid nearest-neighbour distances."""
        if len(nuclei) < 2:
            return 0.0
        centers = np.array([n.centroid for n in nuclei], dtype=np.float64)
        distances, _ = cKDTree(centers).query(centers, k=2)
        nn = distances[:, 1]
        return float(nn.std() / (nn.mean() + 1e-6))

    # =====================================================================
    # CHANNEL MEASUREMENTS
    # =====================================================================

    def glcm_texture(self, pixels: np.ndarray) -> Optional[GLCMTexture]:
        """
        Grey-level co-occurrence texture of a uint8 patch.

        Patch is quantized to glcm_levels grey levels; properties are
        averaged over distances/angles. None for patches under 2x2.
        """
        if pixels.ndim != 2 or min(pixels.shape) < 2:
            return None

        quantized = (pixels.astype(np.uint16) * self.glcm_levels // 256).astype(np.uint8)
        glcm = graycomatrix(
            quantized,
            distances=list(GLCM_DISTANCES),
            angles=list(GLCM_ANGLES),
            levels=self.glcm_levels,
            symmetric=True,
            normed=True,
        )

        def prop(name):
            return float(np.nan_to_num(graycoprops(glcm, name).mean()))

        return GLCMTexture(
            contrast=prop("contrast"),
            homogeneity=prop("homogeneity"),
            energy=prop("energy"),
            correlation=prop("correlation"),
        )

    def window_density(self, pixels: np.ndarray) -> List[WindowSample]:
        """
        Dense windows of a nuclear channel.

        Non-overlapping window_size windows; density is the fraction of
        pixels above DENSE_PIXEL_THRESHOLD; windows denser than
        DENSE_WINDOW_THRESHOLD are returned.
        """
        height, width = pixels.shape
        size = self.window_size
        samples = []

        for y in range(0, height - size + 1, size):
            for x in range(0, width - size + 1, size):
                window = pixels[y:y + size, x:x + size]
                density = float(np.count_nonzero(window > DENSE_PIXEL_THRESHOLD)) / window.size
                if density > DENSE_WINDOW_THRESHOLD:
                    samples.append(WindowSample(
                        x=x,
                        y=y,
                        density=density,
                        nuclear_intensity=float(window.mean()) / 255.0,
                    ))
        return samples

    def quadrant_intensities(self, pixels: np.ndarray) -> List[float]:
        """Mean intensity / 255 of TL, TR, BL, BR quadrants."""
        height, width = pixels.shape
        mid_y, mid_x = height // 2, width // 2
        quadrants = [
            pixels[:mid_y, :mid_x],
            pixels[:mid_y, mid_x:],
            pixels[mid_y:, :mid_x],
            pixels[mid_y:, mid_x:],
        ]
        return [float(q.mean()) / 255.0 if q.size else 0.0 for q in quadrants]

    def distribution_variance(self, pixels: np.ndarray) -> float:
        return float(np.var(self.quadrant_intensities(pixels)))

    def sample_pixels(self, pixels: np.ndarray, step: int = SPACE_SAMPLING_STEP) -> np.ndarray:
        """Every step-th pixel in raster order."""
        return pixels.ravel()[::step]

    def space_ratio(self, samples: np.ndarray) -> float:
        """
        Fraction of samples below SPACE_THRESHOLD (luminal/alveolar spaces
        on the cytoplasm channel).
        """
        if samples.size == 0:
            return 0.0
        return float(np.count_nonzero(samples < SPACE_THRESHOLD)) / samples.size

    def edge_gradient_stats(self, pixels: np.ndarray) -> Tuple[float, float]:
        """
        Mean and variance (normalized by 255 and 255^2) of horizontal central
        differences above EDGE_GRADIENT_THRESHOLD. (0, 0) without edges.
        """
        values = pixels.astype(np.int16)
        gradient = np.abs(values[:, 2:] - values[:, :-2])
        edges = gradient[gradient > EDGE_GRADIENT_THRESHOLD].astype(np.float64)
        if edges.size == 0:
            return 0.0, 0.0
        return float(edges.mean() / 255.0), float(edges.var() / (255.0 * 255.0))
