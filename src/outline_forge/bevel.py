"""
Top-edge chamfers on cavity openings.

Each opening gets a lofted cutting tool: a thin slab at the top surface whose
outline is grown by the bevel size, tapering back to the opening outline
below and above the slab. Subtracting it from the top stratum leaves a 45°
chamfer around the hole.
"""

import logging
from typing import List, Sequence, Tuple

import trimesh
from shapely.geometry import Polygon

from outline_forge.contracts import BooleanEvaluationFailure, Ring
from outline_forge.offsetting import canonicalize_ring, miter_offset_ring
from outline_forge.solids import concatenate, loft_rings

logger = logging.getLogger(__name__)

TOOL_SLAB_MM = 0.01
MIN_BEVEL_MM = 0.1
MAX_BEVEL_MM = 5.0
BEVEL_DEPTH_RATIO = 0.3
BOOLEAN_ENGINE = "manifold"


def clamp_bevel(bevel_mm: float, reference_depth: float, top_height: float) -> float:
    """Clamp a requested bevel; returns 0 when the result is too small to cut."""
    if not bevel_mm or bevel_mm <= 0:
        return 0.0
    size = min(bevel_mm, BEVEL_DEPTH_RATIO * reference_depth, MAX_BEVEL_MM, top_height)
    return size if size > MIN_BEVEL_MM else 0.0


def bevel_tool(ring: Sequence, size: float, top_z: float) -> trimesh.Trimesh:
    """Chamfer cutter for one opening whose top surface sits at top_z."""
    inner = canonicalize_ring(ring)
    outer = miter_offset_ring(inner, size)
    return loft_rings(
        [
            (inner, top_z - size),
            (outer, top_z),
            (outer, top_z + TOOL_SLAB_MM),
            (inner, top_z + TOOL_SLAB_MM + size),
        ]
    )


def apply_bevels(
    top: Sequence[trimesh.Trimesh],
    openings: Sequence[Tuple[Ring, float]],
    top_z: float,
) -> Tuple[List[trimesh.Trimesh], bool]:
    """Subtract one chamfer tool per (ring, size) opening from the top stratum.

    Returns (meshes, applied). On any CSG failure the untouched top stratum
    meshes are returned with applied=False.
    Openings whose grown outline would cross itself keep a square edge.
    """
    openings = [(ring, size) for ring, size in openings if size > MIN_BEVEL_MM]
    openings = [(ring, size) for ring, size in openings if _tool_ring_is_simple(ring, size)]
    if not openings or not top:
        return list(top), False

    try:
        current = concatenate(top)
        for ring, size in openings:
            tool = bevel_tool(ring, size, top_z)
            current = trimesh.boolean.difference([current, tool], engine=BOOLEAN_ENGINE)
            if current is None or len(current.faces) == 0:
                raise BooleanEvaluationFailure("bevel subtraction produced an empty mesh")
    except Exception as exc:
        logger.warning("Bevel CSG failed, keeping square edges: %s", exc)
        return list(top), False

    logger.debug("Applied %d bevel(s) at z=%.2f", len(openings), top_z)
    return [current], True


def _tool_ring_is_simple(ring: Sequence, size: float) -> bool:
    # narrow slots make the bisector offset fold over itself
    if Polygon(miter_offset_ring(ring, size)).is_valid:
        return True
    logger.warning(
        "Bevel of %.2f mm self-intersects on a %d-point opening, keeping its square edge",
        size, len(ring),
    )
    return False
