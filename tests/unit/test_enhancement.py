"""
Unit tests for histograde.preprocessing.enhancement.
"""

import numpy as np
import pytest

from histograde.errors import ConfigurationError
from histograde.image import ChannelImage
from histograde.preprocessing.enhancement import (
    ImageEnhancer,
    equalize_histogram,
    mean_filter,
    median_filter,
    stretch_contrast,
)


@pytest.fixture
def spike_channel():
    """9x9 zeros with a single bright pixel in the center and one in a corner."""
    pixels = np.zeros((9, 9), dtype=np.uint8)
    pixels[4, 4] = 255
    pixels[0, 0] = 255
    return pixels


# ============================================================================
# TESTS: DENOISE
# ============================================================================

class TestDenoise:
    """Neighbourhood filters with clamp-to-boundary edges."""

    def test_median_removes_isolated_spikes(self, spike_channel):
        filtered = median_filter(spike_channel, radius=1)
        assert filtered.shape == spike_channel.shape
        assert np.all(filtered == 0)

    def test_mean_of_constant_is_constant(self):
        pixels = np.full((7, 5), 77, dtype=np.uint8)
        np.testing.assert_array_equal(mean_filter(pixels, radius=2), pixels)

    def test_mean_spreads_spike(self, spike_channel):
        filtered = mean_filter(spike_channel, radius=1)
        assert filtered.dtype == np.uint8
        assert filtered[4, 4] == round(255 / 9)
        assert filtered[3, 3] == round(255 / 9)

    def test_input_not_modified(self, spike_channel):
        original = spike_channel.copy()
        median_filter(spike_channel)
        mean_filter(spike_channel)
        np.testing.assert_array_equal(spike_channel, original)


# ============================================================================
# TESTS: CONTRAST
# ============================================================================

class TestContrast:
    """Min-max stretch and histogram equalization."""

    def test_stretch_full_range(self):
        pixels = np.array([[50, 75], [90, 100]], dtype=np.uint8)
        stretched = stretch_contrast(pixels)
        assert stretched.min() == 0
        assert stretched.max() == 255
        assert stretched[0, 1] == round((75 - 50) / 50 * 255)

    def test_stretch_flat_is_noop(self):
        pixels = np.full((4, 4), 42, dtype=np.uint8)
        np.testing.assert_array_equal(stretch_contrast(pixels), pixels)

    def test_equalize_two_levels(self):
        pixels = np.array([[10, 10], [20, 20]], dtype=np.uint8)
        equalized = equalize_histogram(pixels)
        np.testing.assert_array_equal(equalized, [[0, 0], [255, 255]])

    def test_equalize_flat_is_noop(self):
        pixels = np.full((3, 3), 200, dtype=np.uint8)
        np.testing.assert_array_equal(equalize_histogram(pixels), pixels)

    def test_equalize_preserves_order(self):
        rng = np.random.default_rng(1)
        pixels = rng.integers(40, 120, (32, 32), dtype=np.uint8)
        equalized = equalize_histogram(pixels)
        order = np.argsort(pixels.ravel(), kind="stable")
        assert np.all(np.diff(equalized.ravel()[order].astype(int)) >= 0)


# ============================================================================
# TESTS: IMAGE ENHANCER
# ============================================================================

class TestImageEnhancer:
    """Configured denoise + contrast."""

    def test_enhance_keeps_shape_and_name(self):
        rng = np.random.default_rng(7)
        channel = ChannelImage("hematoxylin", rng.integers(0, 256, (20, 30), dtype=np.uint8))
        enhanced = ImageEnhancer().enhance(channel)
        assert enhanced.name == "hematoxylin"
        assert enhanced.pixels.shape == (20, 30)
        assert enhanced.pixels.dtype == np.uint8

    def test_none_methods_copy(self):
        channel = ChannelImage("eosin", np.arange(16, dtype=np.uint8).reshape(4, 4))
        enhanced = ImageEnhancer(denoise="none", contrast="none").enhance(channel)
        np.testing.assert_array_equal(enhanced.pixels, channel.pixels)
        assert enhanced.pixels is not channel.pixels

    @pytest.mark.parametrize("kwargs", [
        {"denoise": "gaussian"},
        {"contrast": "clahe"},
        {"radius": 0},
    ])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ConfigurationError):
            ImageEnhancer(**kwargs)
