"""
Unit tests for render surfaces and pixel effects.
"""
import numpy as np
import pytest

from lumicut.effects import (
    RenderSurface,
    apply_curves,
    apply_filter_chain,
    apply_grain,
    apply_posterize,
    apply_vignette,
    grayscale_matrix,
    hue_rotate_matrix,
    posterize_levels,
    run_filter_chain,
    saturate_matrix,
    vignette_alpha,
)
from lumicut.errors import RenderSurfaceError
from lumicut.filters import FilterPrimitive
from lumicut.pipeline.settings import ColorCurves


def _flat(width, height, rgba):
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[...] = rgba
    return RenderSurface(width, height, pixels)


class TestRenderSurface:
    """Tests for RenderSurface."""

    def test_new_surface_is_transparent(self):
        surface = RenderSurface(4, 3)
        assert surface.pixels().shape == (3, 4, 4)
        assert not surface.pixels().any()

    def test_released_surface_raises(self):
        """Pixel access after release reports an unavailable surface."""
        surface = RenderSurface(2, 2)
        surface.release()
        assert not surface.available
        with pytest.raises(RenderSurfaceError, match="render surface unavailable"):
            surface.pixels()

    def test_wrong_shape_is_rejected(self):
        with pytest.raises(RenderSurfaceError):
            RenderSurface(2, 2, np.zeros((3, 3, 4), dtype=np.uint8))

    def test_region_is_clipped_copy(self):
        """Regions copy pixels and pad outside areas with transparency."""
        surface = _flat(4, 2, (10, 20, 30, 255))
        part = surface.region(2, 0, 4, 2)
        assert part.size == (4, 2)
        assert (part.pixels()[:, :2] == (10, 20, 30, 255)).all()
        assert not part.pixels()[:, 2:].any()
        part.pixels()[...] = 0
        assert surface.pixels()[0, 3, 3] == 255


class TestFilterStage:
    """Tests for run_filter_chain / apply_filter_chain."""

    def test_empty_chain_is_noop(self):
        surface = _flat(3, 3, (100, 150, 200, 255))
        apply_filter_chain(surface, [])
        assert (surface.pixels() == (100, 150, 200, 255)).all()

    def test_grayscale_equalises_channels(self):
        """grayscale(1) gives R == G == B."""
        surface = _flat(5, 5, (200, 40, 90, 255))
        apply_filter_chain(surface, [FilterPrimitive('grayscale', 1)])
        px = surface.pixels()
        assert (px[..., 0] == px[..., 1]).all()
        assert (px[..., 1] == px[..., 2]).all()
        assert (px[..., 3] == 255).all()

    def test_brightness_and_invert(self):
        """Linear transfers scale and flip channels."""
        out = run_filter_chain(_flat(1, 1, (100, 0, 255, 255)).pixels(), [FilterPrimitive('brightness', 2)])
        assert tuple(out[0, 0]) == (200, 0, 255, 255)
        out = run_filter_chain(_flat(1, 1, (100, 0, 255, 255)).pixels(), [FilterPrimitive('invert', 1)])
        assert tuple(out[0, 0]) == (155, 255, 0, 255)

    def test_contrast_pivots_on_mid_grey(self):
        """contrast(c) keeps 0.5 fixed."""
        out = run_filter_chain(_flat(1, 1, (128, 64, 192, 255)).pixels(), [FilterPrimitive('contrast', 2)])
        r, g, b, _ = out[0, 0]
        assert abs(int(r) - 128) <= 1
        assert g < 64 and b > 192

    def test_input_buffer_is_not_modified(self):
        pixels = _flat(2, 2, (10, 20, 30, 255)).pixels()
        run_filter_chain(pixels, [FilterPrimitive('invert', 1)])
        assert tuple(pixels[0, 0]) == (10, 20, 30, 255)

    def test_blur_smooths_edges(self):
        """Gaussian blur mixes a hard edge."""
        pixels = np.zeros((10, 10, 4), dtype=np.uint8)
        pixels[..., 3] = 255
        pixels[:, 5:, :3] = 255
        out = run_filter_chain(pixels, [FilterPrimitive('blur', 2)])
        assert 0 < out[5, 4, 0] < 255
        assert 0 < out[5, 5, 0] < 255

    def test_blur_keeps_colour_next_to_transparency(self):
        """Transparent pixels only fade the alpha of a blurred edge, not its colour."""
        pixels = np.zeros((20, 40, 4), dtype=np.uint8)
        pixels[:, 20:] = (200, 200, 200, 255)
        out = run_filter_chain(pixels, [FilterPrimitive('blur', 3)])
        row = out[10]
        edge = row[:, 3] > 16
        assert (row[:, 3] < 255).any()
        assert np.abs(row[edge, :3].astype(int) - 200).max() <= 10

    def test_matrices_are_identity_at_neutral(self):
        """Neutral amounts produce identity matrices."""
        assert grayscale_matrix(0) == pytest.approx(np.eye(3))
        assert saturate_matrix(1) == pytest.approx(np.eye(3))
        assert hue_rotate_matrix(0) == pytest.approx(np.eye(3))


class TestCurves:
    """Tests for apply_curves."""

    def test_mid_grey_darkened(self):
        """(0,0),(128,64),(255,255) maps 128 to 64; alpha untouched."""
        surface = _flat(4, 4, (128, 128, 128, 200))
        apply_curves(surface, ColorCurves(rgb=[(0, 0), (128, 64), (255, 255)]))
        assert (surface.pixels() == (64, 64, 64, 200)).all()


class TestPosterize:
    """Tests for posterize."""

    @pytest.mark.parametrize('intensity,levels', [(0, 16), (50, 9), (100, 2), (200, 2)])
    def test_levels(self, intensity, levels):
        """levels = max(2, round(16 - intensity / 100 * 14))."""
        assert posterize_levels(intensity) == levels

    def test_two_levels(self):
        """At full intensity every channel snaps to 0, 128 or 255."""
        surface = _flat(3, 1, (0, 0, 0, 255))
        surface.pixels()[0, :, 0] = (30, 100, 220)
        apply_posterize(surface, 100)
        assert list(surface.pixels()[0, :, 0]) == [0, 128, 255]

    def test_zero_is_noop(self):
        surface = _flat(2, 2, (13, 77, 201, 255))
        apply_posterize(surface, 0)
        assert (surface.pixels() == (13, 77, 201, 255)).all()


class TestGrain:
    """Tests for grain."""

    def test_seeded_grain_is_reproducible(self):
        """Same seed, same noise."""
        a = _flat(8, 8, (128, 128, 128, 255))
        b = _flat(8, 8, (128, 128, 128, 255))
        apply_grain(a, 50, rng=np.random.default_rng(5))
        apply_grain(b, 50, rng=np.random.default_rng(5))
        assert (a.pixels() == b.pixels()).all()

    def test_amplitude_bounds(self, rng):
        """Noise stays within +-intensity/2 * sqrt(scale) and shares one draw per pixel."""
        surface = _flat(32, 32, (128, 128, 128, 255))
        apply_grain(surface, 40, scale_factor=4.0, rng=rng)
        px = surface.pixels().astype(int)
        assert np.abs(px[..., :3] - 128).max() <= 40
        assert (px[..., 0] == px[..., 1]).all()
        assert (px[..., 3] == 255).all()
        assert px[..., 0].std() > 0

    def test_zero_is_noop(self, rng):
        surface = _flat(4, 4, (128, 128, 128, 255))
        apply_grain(surface, 0, rng=rng)
        assert (surface.pixels() == 128).sum() == 4 * 4 * 3


class TestVignette:
    """Tests for vignette."""

    def test_alpha_profile(self):
        """Clear centre, intensity * 0.7 at the corners."""
        alpha = vignette_alpha(100, 100, 100)
        assert alpha[50, 50] == 0
        assert alpha.max() == pytest.approx(0.7)
        assert alpha[0, 0] == pytest.approx(0.7)

    def test_darkens_edges_only(self):
        surface = _flat(60, 40, (200, 200, 200, 255))
        apply_vignette(surface, 100)
        px = surface.pixels()
        assert tuple(px[20, 30, :3]) == (200, 200, 200)
        assert px[0, 0, 0] < 100
        assert (px[..., 3] == 255).all()

    def test_transparent_pixels_become_black_overlay(self):
        """Over a transparent pixel only the overlay remains."""
        surface = RenderSurface(50, 50)
        apply_vignette(surface, 100)
        px = surface.pixels()
        assert px[0, 0, 3] == pytest.approx(round(0.7 * 255), abs=1)
        assert tuple(px[0, 0, :3]) == (0, 0, 0)
