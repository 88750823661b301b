"""
Multi-region boolean composition.

Unions a reference cavity with every same-depth auxiliary opening, and merges
whatever holes are open in a stratum into pairwise-disjoint regions.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Sequence

from shapely.errors import GEOSException
from shapely.geometry import Polygon
from shapely.ops import unary_union

from outline_forge.contracts import (
    DEPTH_EPSILON_MM,
    BooleanEvaluationFailure,
    DepthCutout,
    FingerNotch,
    Ring,
)
from outline_forge.offsetting import (
    canonical_polygon,
    canonicalize_ring,
    from_clip_space,
    polygons_of,
    ring_from_polygon,
    to_clip_space,
)

logger = logging.getLogger(__name__)

NOTCH_CIRCLE_SEGMENTS = 32
MIN_NOTCH_RADIUS_MM = 5.0


@dataclass
class CompositeHoles:
    """Result of unioning a reference opening with its auxiliaries."""

    rings: List[Ring]
    independent: List[DepthCutout] = field(default_factory=list)
    merged_labels: List[str] = field(default_factory=list)


def union_with_reference(
    reference: Sequence,
    auxiliaries: Sequence[DepthCutout],
    reference_depth: float,
    depth_epsilon: float = DEPTH_EPSILON_MM,
) -> CompositeHoles:
    """Union reference with every auxiliary of the same depth.

    Auxiliaries whose depth differs by more than depth_epsilon are returned
    untouched as independent-depth cutouts. A union that yields nothing
    falls back to the reference ring alone.
    """
    same_depth: List[DepthCutout] = []
    independent: List[DepthCutout] = []
    for aux in auxiliaries:
        if abs(aux.depth - reference_depth) <= depth_epsilon:
            same_depth.append(aux)
        else:
            independent.append(aux)

    rings = [list(reference)] + [aux.ring for aux in same_depth]
    try:
        merged = union_rings(rings)
    except BooleanEvaluationFailure as exc:
        logger.warning("Reference union failed, using un-unioned reference: %s", exc)
        merged = []

    out = [ring_from_polygon(p) for p in merged]
    out = [r for r in out if len(r) >= 3]
    if not out:
        out = [canonicalize_ring(reference)]

    return CompositeHoles(
        rings=out,
        independent=independent,
        merged_labels=[aux.label for aux in same_depth],
    )


def union_rings(rings: Sequence[Sequence]) -> List[Polygon]:
    """Integer-scaled OR of rings into disjoint canonical polygons.

    Raises BooleanEvaluationFailure when GEOS rejects the input.
    """
    sources = []
    for ring in rings:
        if len(ring) < 3:
            continue
        poly = Polygon(ring)
        if not poly.is_valid:
            poly = poly.buffer(0)
        if poly.is_empty:
            continue
        sources.append(to_clip_space(poly))
    if not sources:
        return []
    try:
        unioned = unary_union(sources)
        # pieces touching at a single vertex survive unary_union; a one-unit
        # close in clip space fuses them
        if len(polygons_of(unioned)) > 1 and not _pairwise_disjoint(polygons_of(unioned)):
            unioned = unioned.buffer(1.0, join_style="mitre").buffer(-1.0, join_style="mitre")
        polys = polygons_of(from_clip_space(unioned))
    except GEOSException as exc:
        raise BooleanEvaluationFailure(str(exc)) from exc
    return sorted(
        (canonical_polygon(p) for p in polys),
        key=lambda p: (round(p.bounds[0], 6), round(p.bounds[1], 6)),
    )


def _pairwise_disjoint(polys: List[Polygon]) -> bool:
    for i, a in enumerate(polys):
        for b in polys[i + 1:]:
            if a.intersects(b):
                return False
    return True


def notch_ring(notch: FingerNotch) -> Ring:
    """Outline of a finger notch centred at its position."""
    cx, cy = float(notch.x or 0.0), float(notch.y or 0.0)
    if notch.shape == "circle":
        r = max(MIN_NOTCH_RADIUS_MM, float(notch.radius or 12.0))
        pts = []
        for i in range(NOTCH_CIRCLE_SEGMENTS):
            a = 2 * math.pi * i / NOTCH_CIRCLE_SEGMENTS
            pts.append((cx + math.cos(a) * r, cy + math.sin(a) * r))
        return pts
    if notch.shape == "square":
        hw = hh = float(notch.width or 24.0) / 2
    else:
        hw = float(notch.width or 24.0) / 2
        hh = float(notch.height or 16.0) / 2
    return [(cx - hw, cy - hh), (cx + hw, cy - hh), (cx + hw, cy + hh), (cx - hw, cy + hh)]
