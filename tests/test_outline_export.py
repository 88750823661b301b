"""Tests for DXF/SVG top-outline exports."""
import io

import ezdxf
import pytest

from outline_forge.contracts import BuildResult, EmptyMeshError
from outline_forge.outline_export import (
    OutlineExportConfig,
    outline_to_dxf,
    outline_to_svg,
    top_profile,
    top_stratum,
)
from outline_forge.pipeline import build_insert


@pytest.fixture
def tray_result(rect_points, tray_config):
    return build_insert(rect_points, tray_config)


class TestTopProfile:
    def test_uses_highest_wall(self, tray_result):
        assert top_stratum(tray_result).role == "wall"

    def test_profile_has_hole(self, tray_result):
        profile = top_profile(tray_result)
        assert len(profile.geoms) == 1
        assert len(profile.geoms[0].interiors) == 1

    def test_empty_result_raises(self):
        with pytest.raises(EmptyMeshError):
            top_profile(BuildResult())


class TestDxfExport:
    """DXF text with the outline and cavity on the CUT layer."""

    def test_polylines_on_cut_layer(self, tray_result):
        doc = ezdxf.read(io.StringIO(outline_to_dxf(tray_result)))
        polylines = doc.modelspace().query("LWPOLYLINE")
        assert len(polylines) == 2
        assert all(p.dxf.layer == "CUT" for p in polylines)
        assert all(p.closed for p in polylines)

    def test_units_are_mm(self, tray_result):
        doc = ezdxf.read(io.StringIO(outline_to_dxf(tray_result)))
        assert doc.units == ezdxf.units.MM

    def test_custom_layer(self, tray_result):
        text = outline_to_dxf(tray_result, OutlineExportConfig(cut_layer="LASER"))
        doc = ezdxf.read(io.StringIO(text))
        assert {p.dxf.layer for p in doc.modelspace().query("LWPOLYLINE")} == {"LASER"}


class TestSvgExport:
    def test_two_polygons(self, tray_result):
        svg = outline_to_svg(tray_result)
        assert svg.startswith("<svg")
        assert svg.count("<polygon") == 2
        assert 'class="cut"' in svg

    def test_size_includes_margin(self, tray_result):
        svg = outline_to_svg(tray_result, OutlineExportConfig(margin_mm=5.0))
        assert 'width="110.000mm"' in svg
        assert 'height="90.000mm"' in svg
