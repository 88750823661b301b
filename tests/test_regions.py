"""Tests for region composition: reference unions and notch outlines."""
import logging
import math

import pytest
from shapely.errors import GEOSException
from shapely.geometry import Polygon

from outline_forge import regions
from outline_forge.contracts import BooleanEvaluationFailure, DepthCutout, FingerNotch
from outline_forge.offsetting import canonicalize_ring, signed_area
from outline_forge.regions import notch_ring, union_rings, union_with_reference


def _square(x0, y0, size):
    return [(x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size)]


class TestUnionWithReference:
    """Same-depth auxiliaries fuse with the reference; the rest stay apart."""

    def test_reference_alone(self):
        holes = union_with_reference(_square(0, 0, 10), [], 10.0)
        assert len(holes.rings) == 1
        assert Polygon(holes.rings[0]).area == pytest.approx(100.0)
        assert holes.independent == []

    def test_same_depth_overlap_merges(self):
        aux = DepthCutout(ring=_square(5, 0, 10), depth=10.004, label="notch0")
        holes = union_with_reference(_square(0, 0, 10), [aux], 10.0)
        assert len(holes.rings) == 1
        assert Polygon(holes.rings[0]).area == pytest.approx(150.0)
        assert holes.merged_labels == ["notch0"]

    def test_other_depth_stays_independent(self):
        aux = DepthCutout(ring=_square(5, 0, 10), depth=4.0, label="notch0")
        holes = union_with_reference(_square(0, 0, 10), [aux], 10.0)
        assert len(holes.rings) == 1
        assert Polygon(holes.rings[0]).area == pytest.approx(100.0)
        assert holes.independent == [aux]

    def test_rings_are_ccw(self):
        aux = DepthCutout(ring=list(reversed(_square(30, 0, 5))), depth=10.0)
        holes = union_with_reference(list(reversed(_square(0, 0, 10))), [aux], 10.0)
        assert len(holes.rings) == 2
        assert all(signed_area(r) > 0 for r in holes.rings)

    def test_degenerate_reference_falls_back(self):
        reference = [(0.0, 0.0), (5.0, 0.0), (10.0, 0.0)]
        holes = union_with_reference(reference, [], 10.0)
        assert len(holes.rings) == 1
        assert len(holes.rings[0]) == 3

    def test_union_failure_keeps_reference(self, monkeypatch, caplog):
        def boom(*args, **kwargs):
            raise GEOSException("TopologyException: found non-noded intersection")

        monkeypatch.setattr(regions, "unary_union", boom)
        aux = DepthCutout(ring=_square(5, 0, 10), depth=10.0, label="notch0")
        reference = list(reversed(_square(0, 0, 10)))
        with caplog.at_level(logging.WARNING, logger="outline_forge.regions"):
            holes = union_with_reference(reference, [aux], 10.0)
        assert holes.rings == [canonicalize_ring(reference)]
        assert holes.merged_labels == ["notch0"]
        assert "Reference union failed" in caplog.text


class TestUnionRings:
    def test_geos_error_becomes_boolean_failure(self, monkeypatch):
        def boom(*args, **kwargs):
            raise GEOSException("TopologyException")

        monkeypatch.setattr(regions, "unary_union", boom)
        with pytest.raises(BooleanEvaluationFailure):
            union_rings([_square(0, 0, 10), _square(5, 5, 10)])

    def test_disjoint_rings_stay_separate(self):
        polys = union_rings([_square(0, 0, 10), _square(20, 0, 10)])
        assert len(polys) == 2
        assert polys[0].bounds[0] == pytest.approx(0.0)
        assert polys[1].bounds[0] == pytest.approx(20.0)

    def test_idempotent(self):
        rings = [_square(0, 0, 10), _square(5, 5, 10)]
        once = union_rings(rings)
        twice = union_rings([list(p.exterior.coords)[:-1] for p in once])
        assert len(once) == len(twice) == 1
        assert twice[0].area == pytest.approx(once[0].area)

    def test_skips_short_rings(self):
        assert union_rings([[(0.0, 0.0), (1.0, 1.0)]]) == []


class TestNotchRing:
    """Finger-notch outlines."""

    def test_circle(self):
        ring = notch_ring(FingerNotch(shape="circle", radius=12.0, x=5.0, y=-2.0))
        assert len(ring) == 32
        for x, y in ring:
            assert math.hypot(x - 5.0, y + 2.0) == pytest.approx(12.0)

    def test_circle_radius_floor(self):
        ring = notch_ring(FingerNotch(shape="circle", radius=2.0))
        assert math.hypot(*ring[0]) == pytest.approx(5.0)

    def test_square_uses_width(self):
        poly = Polygon(notch_ring(FingerNotch(shape="square", width=10.0, height=99.0)))
        assert poly.bounds == pytest.approx((-5.0, -5.0, 5.0, 5.0))

    def test_rect_defaults(self):
        poly = Polygon(notch_ring(FingerNotch(shape="rect")))
        assert poly.bounds == pytest.approx((-12.0, -8.0, 12.0, 8.0))
