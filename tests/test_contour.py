"""Tests for contour preprocessing."""
import pytest

from outline_forge.contour import bounds, fit_within, place_ring, prepare_contour
from outline_forge.contracts import DegenerateInputError


class TestPrepareContour:
    """Scale to real size, flip Y, rotate and place."""

    def test_scales_each_axis_to_target(self, rect_points):
        ring = prepare_contour(rect_points, 40.0, 20.0)
        assert bounds(ring) == pytest.approx((-20.0, -10.0, 20.0, 10.0))

    def test_flips_y(self, rect_points):
        ring = prepare_contour(rect_points, 40.0, 20.0)
        # image top-left ends up at the upper left in millimetre space
        assert ring[0] == pytest.approx((-20.0, 10.0))

    def test_rotation_is_ccw(self, rect_points):
        ring = prepare_contour(rect_points, 40.0, 20.0, rotation_deg=90.0)
        assert ring[0] == pytest.approx((-10.0, -20.0))
        assert bounds(ring) == pytest.approx((-10.0, -20.0, 10.0, 20.0))

    def test_offset_translates(self, rect_points):
        ring = prepare_contour(rect_points, 40.0, 20.0, offset=(5.0, -3.0))
        assert bounds(ring) == pytest.approx((-15.0, -13.0, 25.0, 7.0))

    def test_too_few_points_raises(self):
        with pytest.raises(DegenerateInputError):
            prepare_contour([(0, 0), (1, 1)], 10.0, 10.0)

    def test_degenerate_error_is_value_error(self):
        with pytest.raises(ValueError):
            prepare_contour([], 10.0, 10.0)

    def test_zero_extent_left_unscaled(self):
        points = [(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)]
        assert prepare_contour(points, 10.0, 10.0) == points


class TestPlaceRing:
    def test_identity(self, square_ring):
        assert place_ring(square_ring) == square_ring

    def test_rotate_then_translate(self):
        ring = place_ring([(1.0, 0.0)], rotation_deg=90.0, offset=(2.0, 0.0))
        assert ring[0] == pytest.approx((2.0, 1.0))


class TestFitWithin:
    """Tray tools are shrunk, never enlarged, to fit between the walls."""

    def test_shrinks_uniformly(self, rect_points):
        ring = prepare_contour(rect_points, 40.0, 20.0)
        fitted, scale = fit_within(ring, 20.0, 20.0)
        assert scale == pytest.approx(0.5)
        assert bounds(fitted) == pytest.approx((-10.0, -5.0, 10.0, 5.0))

    def test_never_enlarges(self, rect_points):
        ring = prepare_contour(rect_points, 40.0, 20.0)
        fitted, scale = fit_within(ring, 400.0, 400.0)
        assert scale == 1.0
        assert fitted == ring

    def test_no_room_raises(self, rect_points):
        ring = prepare_contour(rect_points, 40.0, 20.0)
        with pytest.raises(DegenerateInputError):
            fit_within(ring, 0.0, 10.0)
