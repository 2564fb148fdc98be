"""
Unit tests for histograde.metrics (geometry + morphometry).

- Edge-cancelling perimeter
- Monotone-chain convex hull, shoelace area, shape complexity
- Circularity / elongation
- Texture statistics, pleomorphism, N/C ratio, GLCM, channel statistics
"""

import cv2
import numpy as np
import pytest

from histograde.constants import EMPTY_TEXTURE_SCORE
from histograde.image import ChannelImage
from histograde.metrics.geometry import (
    ConvexHull,
    convex_hull,
    edge_perimeter,
    polygon_area,
    shape_complexity,
)
from histograde.metrics.morphometry import (
    MorphometricAnalyzer,
    circularity,
    elongation,
    texture_statistics,
)
from histograde.segmentation.regions import RegionDetector


# ============================================================================
# FIXTURES
# ============================================================================

def _single_region(pixels):
    regions = RegionDetector(threshold=100, min_region_px=1, max_region_px=100000).detect(
        ChannelImage("hematoxylin", pixels)
    )
    assert len(regions) == 1
    return regions[0]


@pytest.fixture
def analyzer():
    return MorphometricAnalyzer()


@pytest.fixture
def square_region():
    """Filled 20x20 square, area 400."""
    pixels = np.zeros((64, 64), dtype=np.uint8)
    pixels[10:30, 10:30] = 200
    return _single_region(pixels)


@pytest.fixture
def cross_region():
    """Thin plus sign: two 4x52 bars sharing a 4x4 center, area 400."""
    pixels = np.zeros((64, 64), dtype=np.uint8)
    pixels[24:28, 0:52] = 200
    pixels[0:52, 24:28] = 200
    return _single_region(pixels)


@pytest.fixture
def disk_region():
    pixels = np.zeros((64, 64), dtype=np.uint8)
    cv2.circle(pixels, (32, 32), 12, 200, -1)
    return _single_region(pixels)


@pytest.fixture
def bar_region():
    pixels = np.zeros((64, 64), dtype=np.uint8)
    pixels[30:34, 2:62] = 200
    return _single_region(pixels)


# ============================================================================
# TESTS: GEOMETRY
# ============================================================================

class TestPerimeter:
    """Shared edges cancel."""

    def test_single_pixel(self):
        assert edge_perimeter([(5, 5)]) == 4

    def test_two_by_two(self):
        assert edge_perimeter([(0, 0), (1, 0), (0, 1), (1, 1)]) == 8

    def test_square(self, square_region):
        assert square_region.perimeter == 80

    def test_hole_counts_inner_boundary(self):
        ring = [(x, y) for x in range(3) for y in range(3) if (x, y) != (1, 1)]
        assert edge_perimeter(ring) == 12 + 4


class TestConvexHull:
    """Monotone chain."""

    def test_rectangle_corners(self):
        points = [(x, y) for x in range(20) for y in range(10)]
        hull = convex_hull(points)
        assert set(hull.vertices) == {(0, 0), (19, 0), (19, 9), (0, 9)}
        assert hull.area == pytest.approx(19 * 9)

    def test_rectangle_area_within_perimeter_of_extent(self):
        points = [(x, y) for x in range(20) for y in range(10)]
        hull = convex_hull(points)
        assert abs(hull.area - 200) <= edge_perimeter(points)

    def test_collinear_is_degenerate(self):
        hull = convex_hull([(x, 3) for x in range(10)])
        assert hull.is_degenerate
        assert hull.area == 0.0

    def test_too_few_points(self):
        assert convex_hull([(0, 0), (1, 1)]).is_degenerate
        assert convex_hull([(2, 2)] * 5).is_degenerate

    def test_vertices_counter_clockwise(self):
        hull = convex_hull([(0, 0), (4, 0), (4, 4), (0, 4), (2, 2)])
        signed = sum(
            x1 * y2 - x2 * y1
            for (x1, y1), (x2, y2) in zip(hull.vertices, hull.vertices[1:] + hull.vertices[:1])
        )
        assert signed > 0

    def test_shoelace(self):
        assert polygon_area([(0, 0), (4, 0), (4, 3)]) == pytest.approx(6.0)
        assert polygon_area([(0, 0), (1, 1)]) == 0.0


class TestShapeComplexity:
    """1 - area / hull_area, clamped."""

    def test_filled_rectangle_is_zero(self, analyzer, square_region):
        measurement = analyzer.measure(square_region)
        assert measurement.shape_complexity == pytest.approx(0.0, abs=1e-9)

    def test_concave_higher_than_convex(self, analyzer, square_region, cross_region):
        assert cross_region.area == square_region.area == 400
        convex = analyzer.measure(square_region).shape_complexity
        concave = analyzer.measure(cross_region).shape_complexity
        assert concave > convex
        assert concave == pytest.approx(1 - 400 / 1449)

    def test_degenerate_hull_is_zero(self):
        assert shape_complexity(10, ConvexHull()) == 0.0

    def test_range(self):
        hull = convex_hull([(0, 0), (100, 0), (100, 100), (0, 100)])
        assert shape_complexity(1, hull) <= 1.0
        assert shape_complexity(10 ** 6, hull) == 0.0


# ============================================================================
# TESTS: SHAPE DESCRIPTORS
# ============================================================================

class TestShapeDescriptors:

    def test_circularity_square(self, analyzer, square_region):
        assert analyzer.measure(square_region).circularity == pytest.approx(4 * np.pi * 400 / 80 ** 2)

    def test_disk_rounder_than_bar(self, analyzer, disk_region, bar_region):
        assert analyzer.measure(disk_region).circularity > analyzer.measure(bar_region).circularity

    def test_circularity_bounds(self):
        assert circularity(10, 0) == 0.0
        assert circularity(1000, 4) == 1.0

    def test_square_elongation_is_one(self, square_region):
        assert elongation(square_region.pixels) == pytest.approx(1.0)

    def test_bar_elongated(self, bar_region):
        assert elongation(bar_region.pixels) > 3.0

    def test_single_pixel_elongation(self):
        assert elongation(np.array([[3, 4]])) == 1.0

    def test_single_row_is_finite(self):
        assert np.isfinite(elongation(np.array([[x, 0] for x in range(10)])))

    def test_elongation_matches_moments(self, bar_region):
        """60x4 bar: variances (3599/12, 15/12), padded by 1/12 -> sqrt(3600/16)."""
        assert elongation(bar_region.pixels) == pytest.approx(15.0)
        # single row of 10: sqrt((99/12 + 1/12) / (1/12))
        assert elongation(np.array([[x, 7] for x in range(10)])) == pytest.approx(10.0)

    def test_elongation_offset_invariant(self, square_region):
        shifted = square_region.pixels + np.array([100, 50])
        assert elongation(shifted) == pytest.approx(elongation(square_region.pixels))

    def test_measure_copies_region_fields(self, analyzer, square_region):
        m = analyzer.measure(square_region)
        assert m.area == 400
        assert m.bbox == square_region.bbox
        assert m.centroid == square_region.centroid
        assert m.mean_intensity == pytest.approx(200.0)
        assert not m.hull.is_degenerate


# ============================================================================
# TESTS: TEXTURE STATISTICS
# ============================================================================

class TestTextureStatistics:

    def test_empty_default(self):
        stats = texture_statistics([])
        assert stats.texture_score == EMPTY_TEXTURE_SCORE
        assert stats.mean == 0.0

    def test_constant_samples(self):
        stats = texture_statistics([0.5] * 4)
        assert stats.variance == 0.0
        assert stats.homogeneity == 1.0
        assert stats.texture_score == pytest.approx(0.5)

    def test_two_values(self):
        stats = texture_statistics([0.0, 1.0])
        assert stats.variance == pytest.approx(0.25)
        assert stats.std == pytest.approx(0.5)
        assert stats.homogeneity == pytest.approx(0.8)
        assert stats.texture_score == pytest.approx(0.65)

    def test_score_clamped(self):
        assert texture_statistics([0, 255]).texture_score == 1.0


# ============================================================================
# TESTS: POPULATION AND CHANNEL MEASUREMENTS
# ============================================================================

class TestPopulationMeasurements:

    def test_identical_nuclei_no_pleomorphism(self, analyzer, square_region):
        nuclei = [analyzer.measure(square_region)] * 5
        stats = analyzer.pleomorphism(nuclei)
        assert stats.pleomorphism_index == 0.0
        assert stats.mean_area == 400

    def test_pleomorphism_increases_with_size_spread(self, analyzer, square_region, disk_region, bar_region):
        uniform = analyzer.pleomorphism([analyzer.measure(square_region)] * 3)
        varied = analyzer.pleomorphism([analyzer.measure(r) for r in (square_region, disk_region, bar_region)])
        assert varied.pleomorphism_index > uniform.pleomorphism_index

    def test_empty_population(self, analyzer):
        assert analyzer.pleomorphism([]).pleomorphism_index == 0.0

    def test_nc_ratio_default_without_cytoplasm(self, analyzer, square_region):
        stats = analyzer.nc_ratio([analyzer.measure(square_region)], np.zeros((64, 64), dtype=np.uint8))
        assert stats.mean_ratio == pytest.approx(0.1)
        assert stats.ratios_calculated == 0

    def test_nc_ratio_with_cytoplasm(self, analyzer, square_region):
        cytoplasm = np.full((64, 64), 200, dtype=np.uint8)
        stats = analyzer.nc_ratio([analyzer.measure(square_region)], cytoplasm)
        # 31 x 31 window fully inside the image
        assert stats.mean_ratio == pytest.approx(400 / 961)
        assert stats.ratios_calculated == 1

    def test_nearest_neighbour_cv_regular_grid(self, analyzer):
        pixels = np.zeros((64, 64), dtype=np.uint8)
        for y in range(4, 64, 16):
            for x in range(4, 64, 16):
                pixels[y:y + 4, x:x + 4] = 200
        regions = RegionDetector(threshold=100, min_region_px=1).detect(ChannelImage("h", pixels))
        nuclei = analyzer.measure_all(regions)
        assert len(nuclei) == 16
        assert analyzer.nearest_neighbour_cv(nuclei) == pytest.approx(0.0, abs=1e-6)


class TestChannelMeasurements:

    def test_glcm_constant_patch(self, analyzer):
        texture = analyzer.glcm_texture(np.full((8, 8), 100, dtype=np.uint8))
        assert texture.contrast == pytest.approx(0.0)
        assert texture.homogeneity == pytest.approx(1.0)
        assert np.isfinite(texture.correlation)

    def test_glcm_checkerboard_high_contrast(self, analyzer):
        board = (np.indices((8, 8)).sum(axis=0) % 2 * 255).astype(np.uint8)
        texture = analyzer.glcm_texture(board)
        assert texture.contrast > 100
        assert texture.homogeneity < 0.9

    def test_glcm_too_small(self, analyzer):
        assert analyzer.glcm_texture(np.zeros((1, 5), dtype=np.uint8)) is None

    def test_window_density(self, analyzer):
        dense = analyzer.window_density(np.full((100, 100), 200, dtype=np.uint8))
        assert len(dense) == 4
        assert all(w.density == 1.0 for w in dense)
        assert analyzer.window_density(np.zeros((100, 100), dtype=np.uint8)) == []

    def test_quadrant_variance(self, analyzer):
        pixels = np.zeros((10, 10), dtype=np.uint8)
        pixels[:, :5] = 255
        assert analyzer.quadrant_intensities(pixels) == pytest.approx([1.0, 0.0, 1.0, 0.0])
        assert analyzer.distribution_variance(pixels) == pytest.approx(0.25)

    def test_space_ratio(self, analyzer):
        pixels = np.zeros((10, 10), dtype=np.uint8)
        pixels[5:, :] = 200
        samples = analyzer.sample_pixels(pixels)
        assert samples.size == 10
        assert analyzer.space_ratio(samples) == pytest.approx(0.5)

    def test_edge_gradient_flat(self, analyzer):
        assert analyzer.edge_gradient_stats(np.full((5, 5), 9, dtype=np.uint8)) == (0.0, 0.0)

    def test_edge_gradient_step(self, analyzer):
        pixels = np.zeros((4, 10), dtype=np.uint8)
        pixels[:, 5:] = 255
        mean, variance = analyzer.edge_gradient_stats(pixels)
        assert mean == pytest.approx(1.0)
        assert variance == pytest.approx(0.0)
