"""
Polygon offsetting and winding canonicalization.

Offsets and unions run in an integer-snapped clip space (coordinates scaled
by CLIP_SCALE and rounded to the unit grid) so repeated boolean steps do not
accumulate floating-point drift. Every ring leaving this module is CCW.
"""

import logging
import math
from typing import List, Sequence

import numpy as np
import shapely
from shapely import affinity
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.polygon import orient

from outline_forge.contracts import Ring, Vec2

logger = logging.getLogger(__name__)

CLIP_SCALE = 1000.0
ROUND_JOIN_SEGMENTS = 8
MAX_MITER_RATIO = 4.0


# ─── Winding ─────────────────────────────────────────────────────────────────

def signed_area(ring: Sequence[Vec2]) -> float:
    """Shoelace area; positive for CCW rings."""
    if len(ring) < 3:
        return 0.0
    pts = np.asarray(ring, dtype=float)
    x, y = pts[:, 0], pts[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def canonicalize_ring(ring: Sequence[Vec2]) -> Ring:
    """Return ring as a CCW list without a repeated closing vertex."""
    pts = [(float(x), float(y)) for x, y in ring]
    if len(pts) > 1 and pts[0] == pts[-1]:
        pts = pts[:-1]
    if signed_area(pts) < 0:
        pts.reverse()
    return pts


def canonical_polygon(polygon: Polygon) -> Polygon:
    """Exterior CCW, interiors CW."""
    return orient(polygon, sign=1.0)


def ring_from_polygon(polygon: Polygon) -> Ring:
    return canonicalize_ring(polygon.exterior.coords)


def polygons_of(geom) -> List[Polygon]:
    """Flatten any shapely result into its non-empty polygons."""
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, MultiPolygon):
        return [g for g in geom.geoms if not g.is_empty]
    if hasattr(geom, "geoms"):
        out: List[Polygon] = []
        for g in geom.geoms:
            out.extend(polygons_of(g))
        return out
    return []


# ─── Clip space ──────────────────────────────────────────────────────────────

def to_clip_space(geom):
    scaled = affinity.scale(geom, CLIP_SCALE, CLIP_SCALE, origin=(0.0, 0.0))
    return shapely.set_precision(scaled, 1.0)


def from_clip_space(geom):
    snapped = shapely.set_precision(geom, 1.0)
    return affinity.scale(snapped, 1.0 / CLIP_SCALE, 1.0 / CLIP_SCALE, origin=(0.0, 0.0))


# ─── Offsetting ──────────────────────────────────────────────────────────────

def offset_polygon(ring: Sequence[Vec2], distance_mm: float) -> Ring:
    """Uniform outward offset with round joins.

    Identity for distance 0 or fewer than three points. When the offset
    splits the shape, the largest piece is kept.
    """
    if not distance_mm or distance_mm <= 0 or len(ring) < 3:
        return list(ring)

    source = Polygon(ring)
    if not source.is_valid:
        source = source.buffer(0)
    grown = to_clip_space(source).buffer(
        distance_mm * CLIP_SCALE,
        quad_segs=ROUND_JOIN_SEGMENTS,
        join_style="round",
    )
    pieces = polygons_of(from_clip_space(grown))
    if not pieces:
        logger.warning("Offset of %d-point ring produced nothing", len(ring))
        return list(ring)
    if len(pieces) > 1:
        logger.debug("Offset produced %d pieces, keeping largest", len(pieces))
    largest = max(pieces, key=lambda p: p.area)
    out = ring_from_polygon(largest)
    if len(out) < 3:
        return list(ring)
    return out


def miter_offset_ring(ring: Sequence[Vec2], distance_mm: float) -> Ring:
    """Offset every vertex along its corner bisector.

    Keeps the vertex count, so the result can be lofted against the source
    ring. Miter length is clamped to MAX_MITER_RATIO * distance.
    """
    pts = np.asarray(canonicalize_ring(ring), dtype=float)
    n = len(pts)
    if n < 3 or distance_mm == 0:
        return [tuple(p) for p in pts]

    prev_pts = np.roll(pts, 1, axis=0)
    next_pts = np.roll(pts, -1, axis=0)
    e_in = _unit_rows(pts - prev_pts)
    e_out = _unit_rows(next_pts - pts)
    # outward normal of a CCW edge (dx, dy) is (dy, -dx)
    n_in = np.column_stack([e_in[:, 1], -e_in[:, 0]])
    n_out = np.column_stack([e_out[:, 1], -e_out[:, 0]])
    bisector = _unit_rows(n_in + n_out)
    cos_half = np.einsum("ij,ij->i", bisector, n_out)
    cos_half = np.clip(cos_half, 1.0 / MAX_MITER_RATIO, 1.0)
    moved = pts + bisector * (distance_mm / cos_half)[:, None]
    return [(float(x), float(y)) for x, y in moved]


def _unit_rows(vecs: np.ndarray) -> np.ndarray:
    lens = np.linalg.norm(vecs, axis=1)
    lens[lens < 1e-12] = 1.0
    return vecs / lens[:, None]


# ─── Edge profiles ───────────────────────────────────────────────────────────

def edge_profile_curve(kind: str, size: float, segments: int = 8) -> List[Vec2]:
    """Cross-section of an edge treatment as (radial inset, vertical rise).

    Starts fully inset at height 0 and ends at zero inset at height `size`.
    A chamfer is one straight segment; a fillet is a quarter circle centred
    at (size, size) sampled with `segments` steps.
    """
    if kind == "chamfer":
        return [(size, 0.0), (0.0, size)]
    if kind == "fillet":
        segments = max(1, int(segments))
        pts = []
        for i in range(segments + 1):
            angle = (math.pi / 2) * (i / segments)
            pts.append((size * (1 - math.sin(angle)), size * (1 - math.cos(angle))))
        return pts
    raise ValueError(f"Unknown edge profile: {kind!r}")
