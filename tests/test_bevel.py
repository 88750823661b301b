"""Tests for cavity-opening chamfers."""
import logging

import pytest
import trimesh
from shapely.geometry import Polygon

from outline_forge.bevel import apply_bevels, bevel_tool, clamp_bevel
from outline_forge.solids import extrude_region

OUTER = [(-20.0, -20.0), (20.0, -20.0), (20.0, 20.0), (-20.0, 20.0)]
HOLE = [(-5.0, -5.0), (5.0, -5.0), (5.0, 5.0), (-5.0, 5.0)]


@pytest.fixture
def top_slab():
    """A 40x40x5 slab (z 0..5) with a 10x10 through hole."""
    return extrude_region(Polygon(OUTER, [list(reversed(HOLE))]), 0.0, 5.0)


class TestClampBevel:
    def test_limited_by_depth_ratio_and_cap(self):
        assert clamp_bevel(10.0, 20.0, 8.0) == pytest.approx(5.0)
        assert clamp_bevel(10.0, 10.0, 8.0) == pytest.approx(3.0)

    def test_limited_by_top_stratum(self):
        assert clamp_bevel(4.0, 30.0, 2.5) == pytest.approx(2.5)

    def test_too_small_is_zero(self):
        assert clamp_bevel(0.05, 20.0, 10.0) == 0.0
        assert clamp_bevel(2.0, 0.2, 10.0) == 0.0
        assert clamp_bevel(0.0, 20.0, 10.0) == 0.0


class TestBevelTool:
    def test_tool_is_closed_and_spans_top(self):
        tool = bevel_tool(HOLE, 1.0, 5.0)
        assert tool.is_watertight
        assert tool.bounds[0][2] == pytest.approx(4.0)
        assert tool.bounds[1][2] == pytest.approx(6.01)
        assert tool.bounds[1][0] == pytest.approx(6.0)


class TestApplyBevels:
    """Sequential CSG subtraction with a square-edge fallback."""

    def test_chamfer_removes_frustum(self, top_slab):
        before = top_slab.volume
        meshes, applied = apply_bevels([top_slab], [(HOLE, 1.0)], 5.0)
        assert applied
        assert len(meshes) == 1
        assert meshes[0].is_watertight
        # frustum 10 -> 12 over 1 mm minus the 10x10x1 hole it overlaps
        removed = (100.0 + 144.0 + 120.0) / 3 - 100.0
        assert before - meshes[0].volume == pytest.approx(removed, abs=0.05)

    def test_nothing_to_bevel(self, top_slab):
        meshes, applied = apply_bevels([top_slab], [(HOLE, 0.05)], 5.0)
        assert not applied
        assert meshes == [top_slab]

    def test_csg_failure_falls_back(self, top_slab, monkeypatch, caplog):
        def boom(*args, **kwargs):
            raise RuntimeError("engine unavailable")

        monkeypatch.setattr(trimesh.boolean, "difference", boom)
        with caplog.at_level(logging.WARNING, logger="outline_forge.bevel"):
            meshes, applied = apply_bevels([top_slab], [(HOLE, 1.0)], 5.0)
        assert not applied
        assert meshes == [top_slab]
        assert "Bevel CSG failed" in caplog.text

    def test_empty_result_falls_back(self, top_slab, monkeypatch):
        monkeypatch.setattr(trimesh.boolean, "difference", lambda *a, **k: trimesh.Trimesh())
        meshes, applied = apply_bevels([top_slab], [(HOLE, 1.0)], 5.0)
        assert not applied
        assert meshes == [top_slab]


LEFT_HOLE = [(-15.0, -5.0), (-5.0, -5.0), (-5.0, 5.0), (-15.0, 5.0)]
RIGHT_HOLE = [(5.0, -5.0), (15.0, -5.0), (15.0, 5.0), (5.0, 5.0)]
# 10x10 opening with a 1 mm slot cut down from the top edge
SLOTTED_HOLE = [
    (0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (5.5, 10.0),
    (5.5, 3.0), (4.5, 3.0), (4.5, 10.0), (0.0, 10.0),
]


class TestSequentialBevels:
    """Each opening's chamfer is cut from the result of the previous one."""

    def test_two_openings_remove_both_frustums(self):
        slab = extrude_region(
            Polygon(OUTER, [list(reversed(LEFT_HOLE)), list(reversed(RIGHT_HOLE))]), 0.0, 5.0
        )
        before = slab.volume
        meshes, applied = apply_bevels([slab], [(LEFT_HOLE, 1.0), (RIGHT_HOLE, 1.0)], 5.0)
        assert applied
        assert len(meshes) == 1
        assert meshes[0].is_watertight
        single = (100.0 + 144.0 + 120.0) / 3 - 100.0
        assert before - meshes[0].volume == pytest.approx(2 * single, abs=0.1)


class TestSelfIntersectingTool:
    def test_narrow_slot_keeps_square_edge(self, top_slab, caplog):
        with caplog.at_level(logging.WARNING, logger="outline_forge.bevel"):
            meshes, applied = apply_bevels([top_slab], [(SLOTTED_HOLE, 2.0)], 5.0)
        assert not applied
        assert meshes == [top_slab]
        assert "self-intersects" in caplog.text

    def test_other_openings_still_bevelled(self, top_slab, caplog):
        before = top_slab.volume
        shifted = [(x + 30.0, y) for x, y in SLOTTED_HOLE]
        with caplog.at_level(logging.WARNING, logger="outline_forge.bevel"):
            meshes, applied = apply_bevels([top_slab], [(shifted, 2.0), (HOLE, 1.0)], 5.0)
        assert applied
        assert "self-intersects" in caplog.text
        assert before - meshes[0].volume == pytest.approx(
            (100.0 + 144.0 + 120.0) / 3 - 100.0, abs=0.05
        )
