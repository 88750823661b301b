"""
Parametric outer shapes and edge/base profiles.

Outer outlines for trays, the Gridfinity base feet and stacking lip, and the
chamfer/fillet skirts that round off the bottom edge of a solid. Everything
is centred on the origin.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import trimesh
from shapely.geometry import Polygon

from outline_forge.contracts import BaseCell, FrustumLayer, Ring, TrayParams, Vec2
from outline_forge.contour import bounds
from outline_forge.offsetting import canonicalize_ring, edge_profile_curve
from outline_forge.solids import extrude_region, loft_rings

logger = logging.getLogger(__name__)

CORNER_SEGMENTS = 8
OVAL_SEGMENTS = 48
FILLET_SEGMENTS = 8
MIN_SKIRT_SCALE = 0.05


@dataclass(frozen=True)
class GridfinityProfile:
    """Gridfinity dimensions (mm)."""

    grid_unit: float = 42.0
    clearance: float = 0.25  # per side
    corner_radius: float = 3.75
    height_unit: float = 7.0
    base_chamfer_bottom: float = 0.8
    base_vertical: float = 1.8
    base_chamfer_top: float = 2.15
    unit_top_width: float = 41.5
    narrow_corner_radius: float = 1.6
    lip_vertical: float = 1.9
    lip_slope: float = 1.8
    lip_wall: float = 1.2
    min_floor: float = 1.0

    @property
    def base_height(self) -> float:
        return self.base_chamfer_bottom + self.base_vertical + self.base_chamfer_top

    @property
    def lip_height(self) -> float:
        return self.lip_vertical + self.lip_slope

    def bin_size(self, units_x: int, units_y: int) -> Tuple[float, float]:
        return (
            units_x * self.grid_unit - 2 * self.clearance,
            units_y * self.grid_unit - 2 * self.clearance,
        )


GRIDFINITY = GridfinityProfile()


# ─── Outer shapes ────────────────────────────────────────────────────────────

def rounded_rect_ring(
    width: float, height: float, radius: float, corner_segments: int = CORNER_SEGMENTS
) -> Ring:
    """CCW rounded rectangle centred at the origin.

    Rings built with the same corner_segments correspond vertex by vertex,
    so they can be lofted against each other.
    """
    hw, hh = width / 2, height / 2
    r = min(max(radius, 0.0), hw, hh)
    if r <= 1e-9:
        return [(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)]
    cx, cy = hw - r, hh - r
    pts: Ring = []
    for i, (ox, oy) in enumerate([(-cx, -cy), (cx, -cy), (cx, cy), (-cx, cy)]):
        base = math.pi + i * math.pi / 2
        for j in range(corner_segments):
            a = base + j * (math.pi / 2) / corner_segments
            pts.append((ox + r * math.cos(a), oy + r * math.sin(a)))
    return pts


def oval_ring(width: float, height: float, segments: int = OVAL_SEGMENTS) -> Ring:
    hw, hh = width / 2, height / 2
    return [
        (math.cos(2 * math.pi * i / segments) * hw, math.sin(2 * math.pi * i / segments) * hh)
        for i in range(segments)
    ]


def outer_ring(tray: TrayParams) -> Ring:
    """Outer outline of a tray: rounded rectangle, oval or custom polygon."""
    if tray.outer_shape == "oval":
        return oval_ring(tray.width, tray.height)
    if tray.outer_shape == "custom":
        points = tray.custom_outer_points or []
        if len(points) >= 3:
            return canonicalize_ring(points)
        logger.warning("Custom tray outline has %d points, using a rectangle", len(points))
    return canonicalize_ring(rounded_rect_ring(tray.width, tray.height, tray.corner_radius))


def inner_extent(tray: TrayParams) -> Tuple[float, float]:
    """Room inside the tray walls available to the tool outline."""
    if tray.outer_shape == "custom" and len(tray.custom_outer_points or []) >= 3:
        scale = 1 - (tray.wall_thickness * 2 / max(tray.width, tray.height))
        return tray.width * scale, tray.height * scale
    return tray.width - 2 * tray.wall_thickness, tray.height - 2 * tray.wall_thickness


# ─── Gridfinity ──────────────────────────────────────────────────────────────

def cell_centers(units_x: int, units_y: int, profile: GridfinityProfile = GRIDFINITY) -> List[Vec2]:
    """Grid cell centres, symmetric about the origin."""
    return [
        ((ix - (units_x - 1) / 2) * profile.grid_unit, (iy - (units_y - 1) / 2) * profile.grid_unit)
        for iy in range(units_y)
        for ix in range(units_x)
    ]


def base_cell(center: Vec2, profile: GridfinityProfile = GRIDFINITY) -> BaseCell:
    """Frustum stack for one cell foot, from z=0 up to the base height."""
    top_w = profile.unit_top_width
    mid_w = top_w - 2 * profile.base_chamfer_top
    bottom_w = mid_w - 2 * profile.base_chamfer_bottom
    z1 = profile.base_chamfer_bottom
    z2 = z1 + profile.base_vertical
    return BaseCell(
        center=center,
        layers=[
            FrustumLayer(bottom_w, mid_w, profile.base_chamfer_bottom, 0.0),
            FrustumLayer(mid_w, mid_w, profile.base_vertical, z1),
            FrustumLayer(mid_w, top_w, profile.base_chamfer_top, z2),
        ],
    )


def _layer_radius(width: float, profile: GridfinityProfile) -> float:
    # corner radius follows the 45° chamfers away from the vertical section
    mid_w = profile.unit_top_width - 2 * profile.base_chamfer_top
    return max(profile.narrow_corner_radius + (width - mid_w) / 2, 0.5)


def base_cell_mesh(cell: BaseCell, profile: GridfinityProfile = GRIDFINITY) -> trimesh.Trimesh:
    cx, cy = cell.center
    sections: List[Tuple[Ring, float]] = []
    for layer in cell.layers:
        for width, z in ((layer.bottom_width, layer.z_bottom), (layer.top_width, layer.z_bottom + layer.height)):
            ring = rounded_rect_ring(width, width, _layer_radius(width, profile))
            ring = [(x + cx, y + cy) for x, y in ring]
            if sections and abs(sections[-1][1] - z) < 1e-9:
                continue
            sections.append((ring, z))
    return loft_rings(sections)


def gridfinity_base(
    units_x: int, units_y: int, profile: GridfinityProfile = GRIDFINITY
) -> Tuple[List[BaseCell], List[trimesh.Trimesh]]:
    cells = [base_cell(c, profile) for c in cell_centers(units_x, units_y, profile)]
    return cells, [base_cell_mesh(c, profile) for c in cells]


def stacking_lip(
    bin_width: float, bin_height: float, z_bottom: float, profile: GridfinityProfile = GRIDFINITY
) -> trimesh.Trimesh:
    """Lip ring around the top of a bin: outline minus its 1.2 mm inset."""
    outer = rounded_rect_ring(bin_width, bin_height, profile.corner_radius)
    inner = rounded_rect_ring(
        bin_width - 2 * profile.lip_wall,
        bin_height - 2 * profile.lip_wall,
        profile.corner_radius - profile.lip_wall,
    )
    return extrude_region(Polygon(outer, [inner]), z_bottom, profile.lip_height)


# ─── Edge skirts ─────────────────────────────────────────────────────────────

def _scaled(ring: Sequence[Vec2], center: Vec2, sx: float, sy: float) -> Ring:
    cx, cy = center
    return [(cx + (x - cx) * sx, cy + (y - cy) * sy) for x, y in ring]


def _profile_rings(ring: Sequence[Vec2], size: float, kind: str) -> List[Tuple[Ring, float]]:
    """(ring, rise) pairs following the edge profile, narrowest first."""
    min_x, min_y, max_x, max_y = bounds(ring)
    hw, hh = (max_x - min_x) / 2, (max_y - min_y) / 2
    center = ((min_x + max_x) / 2, (min_y + max_y) / 2)
    segments = FILLET_SEGMENTS if kind == "fillet" else 1
    out = []
    for inset, rise in edge_profile_curve(kind, size, segments):
        sx = max((hw - inset) / hw, MIN_SKIRT_SCALE) if hw > 0 else 1.0
        sy = max((hh - inset) / hh, MIN_SKIRT_SCALE) if hh > 0 else 1.0
        out.append((_scaled(ring, center, sx, sy), rise))
    return out


def edge_skirt(ring: Sequence[Vec2], size: float, kind: str, z_bottom: float = 0.0) -> trimesh.Trimesh:
    """Bottom-edge skirt: scaled-down outline at z_bottom, full outline at z_bottom + size."""
    ring = canonicalize_ring(ring)
    return loft_rings([(r, z_bottom + rise) for r, rise in _profile_rings(ring, size, kind)])


def rounded_extrusion(ring: Sequence[Vec2], depth: float, size: float, kind: str = "fillet") -> trimesh.Trimesh:
    """Extrusion of ring over [0, depth] with both horizontal edges profiled."""
    ring = canonicalize_ring(ring)
    profile = _profile_rings(ring, size, kind)
    bottom = [(r, rise) for r, rise in profile]
    top = [(r, depth - rise) for r, rise in reversed(profile)]
    if abs(bottom[-1][1] - top[0][1]) < 1e-9:
        top = top[1:]
    return loft_rings(bottom + top)
