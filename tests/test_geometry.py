"""
Unit tests for the geometry module.

Covers percent/pixel conversion, cover and contain placement, crop mapping
and the grid layout helpers.
"""
import random

import pytest

from lumicut.geometry import (
    FULL_FRAME,
    Point,
    Rect,
    Size,
    calculate_canvas_size,
    cell_bounds,
    compute_contain_placement,
    compute_cover_placement,
    compute_image_bounds,
    container_to_image_crop,
    cumulative_positions,
    grid_line_positions,
    percent_to_pixels,
    pixels_to_percent,
    rect_percent_to_pixels,
    rect_pixels_to_percent,
    resize_track,
    rotated_size,
)


class TestPercentConversion:
    """Tests for percent <-> pixel conversion."""

    def test_round_trip_randomized(self):
        """percent -> pixels -> percent should return the input for 1000 random values."""
        rnd = random.Random(42)
        for _ in range(1000):
            total = rnd.uniform(1, 10000)
            percent = rnd.uniform(-100, 200)
            back = pixels_to_percent(percent_to_pixels(percent, total), total)
            assert back == pytest.approx(percent, abs=1e-9)

    def test_zero_total_does_not_raise(self):
        """A degenerate frame maps everything to 0 percent."""
        assert pixels_to_percent(50, 0) == 0.0

    def test_rect_round_trip(self):
        """Rectangles convert per axis."""
        frame = Size(800, 600)
        rect = Rect(10, 20, 30, 40)
        pixels = rect_percent_to_pixels(rect, frame)
        assert pixels == pytest.approx((80, 120, 240, 240))
        assert rect_pixels_to_percent(pixels, frame) == pytest.approx(rect)


class TestRotatedSize:
    """Tests for rotated_size."""

    @pytest.mark.parametrize('rotation,expected', [(0, (1000, 500)), (90, (500, 1000)),
                                                   (180, (1000, 500)), (270, (500, 1000))])
    def test_quarter_turns_swap(self, rotation, expected):
        """90 and 270 swap width and height."""
        assert rotated_size(Size(1000, 500), rotation) == expected


class TestCoverPlacement:
    """Tests for compute_cover_placement."""

    def test_centered_focal_point_centers_image(self):
        """Focal 50/50 at zoom 1 puts the image centre on the container centre."""
        container = Size(800, 600)
        placement = compute_cover_placement(container, Size(1920, 1080), 1.0, Point(50, 50))
        assert placement.center.x == pytest.approx(400)
        assert placement.center.y == pytest.approx(300)

    def test_image_covers_container(self):
        """Both dimensions reach at least the container size."""
        placement = compute_cover_placement(Size(800, 600), Size(1920, 1080))
        assert placement.width >= 800 - 1e-9
        assert placement.height >= 600 - 1e-9
        assert placement.height == pytest.approx(600)

    def test_focal_point_zero_aligns_top_left(self):
        """Focal 0/0 keeps the image's top-left corner on the container origin."""
        placement = compute_cover_placement(Rect(100, 50, 400, 400), Size(800, 400), 1.0, Point(0, 0))
        assert (placement.x, placement.y) == pytest.approx((100, 50))

    def test_zoom_scales_result(self):
        """Zoom multiplies the cover scale."""
        base = compute_cover_placement(Size(400, 400), Size(400, 400), 1.0)
        zoomed = compute_cover_placement(Size(400, 400), Size(400, 400), 2.0)
        assert zoomed.width == pytest.approx(base.width * 2)
        assert zoomed.center == pytest.approx(base.center)

    def test_degenerate_container(self):
        """Zero-size inputs give an empty rect instead of raising."""
        assert compute_cover_placement(Size(0, 100), Size(10, 10)).width == 0


class TestContainPlacement:
    """Tests for compute_contain_placement and compute_image_bounds."""

    def test_fits_and_centers(self):
        """Landscape image in a square container is letterboxed vertically."""
        rect = compute_contain_placement(Size(500, 500), Size(1000, 500))
        assert rect == pytest.approx((0, 125, 500, 250))

    def test_rotation_uses_transposed_size(self):
        """A 90 degree rotation swaps the footprint."""
        rect = compute_contain_placement(Size(500, 500), Size(1000, 500), rotation=90)
        assert rect == pytest.approx((125, 0, 250, 500))

    def test_image_bounds_in_percent(self):
        """Bounds are reported as percent of the container."""
        bounds = compute_image_bounds(Size(500, 500), Size(1000, 500), rotation=90)
        assert bounds == pytest.approx((25, 0, 50, 100))


class TestContainerToImageCrop:
    """Tests for container_to_image_crop."""

    def test_crop_matching_bounds_is_full_frame(self):
        """Cropping exactly the image footprint selects the whole image."""
        bounds = Rect(25, 0, 50, 100)
        assert container_to_image_crop(bounds, bounds) == pytest.approx(FULL_FRAME)

    def test_parts_outside_image_are_clipped(self):
        """Crop extending past the footprint is clipped to 0..100."""
        crop = container_to_image_crop(Rect(0, 0, 50, 50), Rect(25, 0, 50, 100))
        assert crop == pytest.approx((0, 0, 50, 50))

    def test_degenerate_bounds_fall_back(self):
        """Zero-size bounds give the full frame instead of dividing by zero."""
        assert container_to_image_crop(Rect(10, 10, 20, 20), Rect(0, 0, 0, 0)) == FULL_FRAME


class TestGridHelpers:
    """Tests for grid layout math."""

    def test_canvas_size_landscape_and_portrait(self):
        """Long edge equals the base size."""
        assert calculate_canvas_size((16, 9)) == pytest.approx((1200, 675))
        assert calculate_canvas_size((9, 16)) == pytest.approx((675, 1200))
        assert calculate_canvas_size((1, 1), base_size=600) == pytest.approx((600, 600))

    def test_cumulative_positions(self):
        """Percent tracks become pixel boundaries."""
        assert cumulative_positions([25, 25, 50], 1200) == pytest.approx([0, 300, 600, 1200])
        assert grid_line_positions([0, 300, 600, 1200]) == pytest.approx([300, 600])

    def test_cell_bounds_with_span(self):
        """1-based indices and spans map onto track boundaries."""
        positions = [0, 400, 800, 1200]
        assert cell_bounds(1, 2, 1, 1, positions, positions) == pytest.approx((400, 0, 400, 400))
        assert cell_bounds(2, 1, 2, 1, positions, positions) == pytest.approx((0, 400, 400, 800))

    def test_resize_track_moves_boundary(self):
        """The neighbour absorbs the change."""
        assert resize_track([50, 50], 0, 20) == pytest.approx([70, 30])

    def test_resize_track_respects_floor(self):
        """Tracks never go below the minimum; refused moves change nothing."""
        assert resize_track([50, 50], 0, 45) == pytest.approx([90, 10])
        assert resize_track([40, 20, 40], 0, 15) == pytest.approx([40, 20, 40])

    def test_resize_last_track_is_ignored(self):
        """There is no boundary after the last track."""
        assert resize_track([50, 50], 1, 10) == [50, 50]
