"""
Depth-layered solid construction.

A single extrusion cannot express "hole A open for z in [10, 20), hole B open
for z in [0, 20)". The solid's height is therefore cut into strata wherever
some cutout's hole opens or closes, and every stratum becomes one simple
extrusion of (outer boundary - union of the holes open in it).

Heights inside the builder are local: 0 is the bottom of the region being
stratified (cavity floor for walls, underside of the floor for floors).
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence

import trimesh
from shapely.geometry import Polygon
from shapely.ops import unary_union

from outline_forge.contracts import (
    DEPTH_EPSILON_MM,
    MIN_LAYER_MM,
    BooleanEvaluationFailure,
    DepthCutout,
    Ring,
    Stratum,
)
from outline_forge.offsetting import (
    canonical_polygon,
    canonicalize_ring,
    polygons_of,
    ring_from_polygon,
)
from outline_forge.regions import union_rings
from outline_forge.solids import extrude_region

logger = logging.getLogger(__name__)

OPEN_EPSILON_MM = 1e-6


@dataclass
class _Opening:
    rings: List[Ring]
    opening_height: float
    label: str


def break_heights(
    reference_depth: float,
    cutout_depths: Iterable[float],
    valid_range: float,
    epsilon: float = DEPTH_EPSILON_MM,
) -> List[float]:
    """Heights at which the open-hole set can change.

    {0, Dref} plus Dref - Di for shallower cutouts and Di - Dref for deeper
    ones, clipped to [0, valid_range], sorted and deduplicated within epsilon.
    """
    values = [0.0, float(reference_depth)]
    for depth in cutout_depths:
        if depth < reference_depth - epsilon:
            values.append(reference_depth - depth)
        elif depth > reference_depth + epsilon:
            values.append(depth - reference_depth)
    return _dedupe(values, 0.0, valid_range, epsilon)


def _dedupe(values: Iterable[float], lo: float, hi: float, epsilon: float) -> List[float]:
    """Sorted breaks in [lo, hi]; both endpoints always survive."""
    if hi <= lo:
        return [lo]
    # values within epsilon of either endpoint collapse onto it
    interior = sorted(float(v) for v in values if lo + epsilon < float(v) < hi - epsilon)
    out: List[float] = [lo]
    for v in interior:
        if v - out[-1] > epsilon:
            out.append(v)
    out.append(hi)
    return out


def build_wall_strata(
    outer: Sequence,
    reference_rings: Sequence[Ring],
    cutouts: Sequence[DepthCutout],
    reference_depth: float,
    z0: float,
    role: str = "wall",
) -> List[Stratum]:
    """Stratify the cavity wall band [z0, z0 + reference_depth).

    The reference holes are open everywhere. A cutout shallower than the
    reference opens at reference_depth - depth; deeper or equal cutouts are
    open through the whole band.
    """
    if reference_depth < MIN_LAYER_MM:
        return []
    openings = [_Opening(list(reference_rings), 0.0, "reference")]
    for cut in cutouts:
        if cut.depth >= reference_depth - DEPTH_EPSILON_MM:
            openings.append(_Opening([cut.ring], 0.0, cut.label))
        else:
            openings.append(_Opening([cut.ring], reference_depth - cut.depth, cut.label))

    breaks = break_heights(reference_depth, [c.depth for c in cutouts], reference_depth)
    logger.debug("Wall breaks at %s", breaks)
    return _stratify(outer, openings, breaks, z0, role)


def build_floor_strata(
    outer: Sequence,
    cutouts: Sequence[DepthCutout],
    reference_depth: float,
    floor_depth: float,
    min_floor: float,
    z0: float,
    role: str = "floor",
) -> List[Stratum]:
    """Stratify the floor band [z0, z0 + floor_depth) below the cavity.

    Cutouts deeper than the reference continue into the floor by
    depth - reference_depth, clipped so min_floor of material remains.
    """
    if floor_depth < MIN_LAYER_MM:
        return []
    valid_range = max(0.0, floor_depth - min_floor)
    openings: List[_Opening] = []
    values = [0.0, floor_depth]
    for cut in cutouts:
        extra = cut.depth - reference_depth
        if extra <= DEPTH_EPSILON_MM:
            continue
        if extra > valid_range:
            logger.info(
                "Cutout %s clipped from %.2f to %.2f mm below the cavity",
                cut.label or "?", extra, valid_range,
            )
            extra = valid_range
        if extra < MIN_LAYER_MM:
            continue
        opening_height = floor_depth - extra
        openings.append(_Opening([cut.ring], opening_height, cut.label))
        values.append(opening_height)

    breaks = _dedupe(values, 0.0, floor_depth, DEPTH_EPSILON_MM)
    logger.debug("Floor breaks at %s", breaks)
    return _stratify(outer, openings, breaks, z0, role)


def build_layered_solid(
    outer: Sequence,
    reference_rings: Sequence[Ring],
    cutouts: Sequence[DepthCutout],
    reference_depth: float,
    floor_depth: float,
    min_floor: float,
    z0: float = 0.0,
) -> List[Stratum]:
    """Floor strata followed by wall strata, tiling [z0, z0 + floor + cavity)."""
    strata = build_floor_strata(outer, cutouts, reference_depth, floor_depth, min_floor, z0)
    strata.extend(
        build_wall_strata(outer, reference_rings, cutouts, reference_depth, z0 + floor_depth)
    )
    return strata


def _stratify(
    outer: Sequence,
    openings: Sequence[_Opening],
    breaks: Sequence[float],
    z0: float,
    role: str,
) -> List[Stratum]:
    outer_ring = canonicalize_ring(outer)
    strata: List[Stratum] = []
    for bottom, top in zip(breaks[:-1], breaks[1:]):
        if top - bottom < MIN_LAYER_MM:
            continue
        open_now = [o for o in openings if bottom >= o.opening_height - OPEN_EPSILON_MM]
        holes = _merge_open_holes(open_now)
        strata.append(
            Stratum(
                z_bottom=z0 + bottom,
                z_top=z0 + top,
                outer=outer_ring,
                holes=holes,
                role=role,
                open_labels=[o.label for o in open_now],
            )
        )
    return strata


def _merge_open_holes(openings: Sequence[_Opening]) -> List[Ring]:
    """Union every open hole so the stratum never sees two touching holes."""
    rings = [ring for o in openings for ring in o.rings if len(ring) >= 3]
    if not rings:
        return []
    try:
        merged = union_rings(rings)
    except BooleanEvaluationFailure as exc:
        logger.warning("Hole union failed, keeping non-overlapping holes only: %s", exc)
        merged = _first_disjoint(rings)
    return [ring_from_polygon(p) for p in merged]


def _first_disjoint(rings: Sequence[Ring]) -> List[Polygon]:
    kept: List[Polygon] = []
    for ring in rings:
        poly = Polygon(ring)
        if not poly.is_valid:
            continue
        if all(not poly.intersects(k) for k in kept):
            kept.append(canonical_polygon(poly))
    return kept


def stratum_sections(stratum: Stratum) -> List[Polygon]:
    """Cross-section polygons of a stratum (outer minus its holes)."""
    section = Polygon(stratum.outer)
    if stratum.holes:
        section = section.difference(unary_union([Polygon(h) for h in stratum.holes]))
    return [canonical_polygon(p) for p in polygons_of(section) if p.area > 1e-9]


def stratum_meshes(stratum: Stratum) -> List[trimesh.Trimesh]:
    """One closed extrusion per cross-section piece."""
    return [
        extrude_region(poly, stratum.z_bottom, stratum.height)
        for poly in stratum_sections(stratum)
    ]
