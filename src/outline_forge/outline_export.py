"""
2D exports of the insert's top-surface cut pattern.

The outer outline and every cavity hole at the top of the solid, written as
DXF (ezdxf, CUT layer, R2010, millimetres) or SVG (svgwrite). Both return
text; writing it to disk is left to the caller.
"""

import io
import logging
from dataclasses import dataclass
from typing import List, Optional

import ezdxf
import svgwrite
from shapely.geometry import MultiPolygon, Polygon
from shapely.ops import unary_union

from outline_forge.contracts import BuildResult, EmptyMeshError, Stratum
from outline_forge.layering import stratum_sections

logger = logging.getLogger(__name__)

SURFACE_ROLES = ("wall", "body", "floor")


@dataclass
class OutlineExportConfig:
    """Layer and styling settings for outline exports."""

    cut_layer: str = "CUT"
    cut_color: int = 1  # ACI red
    stroke: str = "#ff0000"
    stroke_width: float = 0.5
    margin_mm: float = 10.0


def top_stratum(result: BuildResult) -> Optional[Stratum]:
    """Highest stratum that forms the visible top surface."""
    candidates = [s for s in result.strata if s.role in SURFACE_ROLES]
    if not candidates:
        return None
    return max(candidates, key=lambda s: s.z_top)


def top_profile(result: BuildResult) -> MultiPolygon:
    """Cross-section of the top surface as a MultiPolygon (holes as interiors)."""
    stratum = top_stratum(result)
    if stratum is None:
        raise EmptyMeshError("No geometry to export")
    merged = unary_union(stratum_sections(stratum))
    if isinstance(merged, Polygon):
        return MultiPolygon([merged])
    return merged


def outline_to_dxf(result: BuildResult, config: Optional[OutlineExportConfig] = None) -> str:
    """Top-surface outline and holes as DXF text."""
    if config is None:
        config = OutlineExportConfig()

    doc = ezdxf.new("R2010")
    doc.units = ezdxf.units.MM
    doc.layers.add(config.cut_layer, color=config.cut_color)
    msp = doc.modelspace()

    for polygon in top_profile(result).geoms:
        for ring in _rings(polygon):
            msp.add_lwpolyline(ring, close=True, dxfattribs={"layer": config.cut_layer})

    stream = io.StringIO()
    doc.write(stream)
    logger.info("Exported DXF outline (%d entities)", len(msp))
    return stream.getvalue()


def outline_to_svg(result: BuildResult, config: Optional[OutlineExportConfig] = None) -> str:
    """Top-surface outline and holes as SVG text, 1 user unit = 1 mm."""
    if config is None:
        config = OutlineExportConfig()

    profile = top_profile(result)
    min_x, min_y, max_x, max_y = profile.bounds
    margin = config.margin_mm
    width = max_x - min_x + 2 * margin
    height = max_y - min_y + 2 * margin

    dwg = svgwrite.Drawing(
        size=(f"{width:.3f}mm", f"{height:.3f}mm"),
        viewBox=f"0 0 {width:.3f} {height:.3f}",
    )
    dwg.defs.add(
        dwg.style(f".cut {{ stroke: {config.stroke}; stroke-width: {config.stroke_width}; fill: none; }}")
    )
    for polygon in profile.geoms:
        for ring in _rings(polygon):
            # SVG is Y-down
            points = [(x - min_x + margin, max_y - y + margin) for x, y in ring]
            dwg.add(dwg.polygon(points, class_="cut"))

    logger.info("Exported SVG outline %.1f x %.1f mm", width, height)
    return dwg.tostring()


def _rings(polygon: Polygon) -> List[List[tuple]]:
    rings = [list(polygon.exterior.coords)[:-1]]
    rings.extend(list(interior.coords)[:-1] for interior in polygon.interiors)
    return [r for r in rings if len(r) >= 3]
