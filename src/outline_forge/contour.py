"""
Traced-outline preprocessing: source coordinates -> millimetre space.

Traced outlines arrive in image space (Y down, arbitrary units). They are
scaled per axis to the real-world size the user entered, flipped, rotated
and placed.
"""

import logging
import math
from typing import Sequence, Tuple

from outline_forge.contracts import DegenerateInputError, Ring, Vec2

logger = logging.getLogger(__name__)


def bounds(points: Sequence[Vec2]) -> Tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) of a point list."""
    xs = [float(p[0]) for p in points]
    ys = [float(p[1]) for p in points]
    return (min(xs), min(ys), max(xs), max(ys))


def prepare_contour(
    points: Sequence[Vec2],
    target_width: float,
    target_height: float,
    rotation_deg: float = 0.0,
    offset: Vec2 = (0.0, 0.0),
) -> Ring:
    """Scale, flip, rotate and translate a traced outline.

    X and Y are scaled independently so the bounding box becomes exactly
    target_width x target_height, centred on the origin before rotation.

    Raises:
        DegenerateInputError: fewer than 3 points.
    """
    if len(points) < 3:
        raise DegenerateInputError(f"Outline has {len(points)} points, need at least 3")

    min_x, min_y, max_x, max_y = bounds(points)
    width = max_x - min_x
    height = max_y - min_y
    if width == 0 or height == 0:
        logger.warning(
            "Outline has zero extent (%.3f x %.3f), leaving it unscaled", width, height
        )
        return [(float(x), float(y)) for x, y in points]

    sx = target_width / width
    sy = target_height / height
    cx = (min_x + max_x) / 2
    cy = (min_y + max_y) / 2

    centred = [((float(x) - cx) * sx, -(float(y) - cy) * sy) for x, y in points]
    return place_ring(centred, rotation_deg, offset)


def place_ring(ring: Sequence[Vec2], rotation_deg: float = 0.0, offset: Vec2 = (0.0, 0.0)) -> Ring:
    """Rotate CCW about the origin, then translate."""
    rad = math.radians(rotation_deg or 0.0)
    cos_r, sin_r = math.cos(rad), math.sin(rad)
    ox, oy = float(offset[0]), float(offset[1])
    return [(x * cos_r - y * sin_r + ox, x * sin_r + y * cos_r + oy) for x, y in ring]


def fit_within(ring: Sequence[Vec2], max_width: float, max_height: float) -> Tuple[Ring, float]:
    """Uniformly shrink a ring about its bbox centre to fit max_width x max_height.

    Never enlarges. Returns (ring, applied_scale).
    """
    if len(ring) < 3:
        return list(ring), 1.0
    min_x, min_y, max_x, max_y = bounds(ring)
    width, height = max_x - min_x, max_y - min_y
    if width <= 0 or height <= 0:
        return list(ring), 1.0
    scale = min(max_width / width, max_height / height, 1.0)
    if scale >= 1.0:
        return list(ring), 1.0
    if scale <= 0:
        raise DegenerateInputError("No room for the outline inside the walls")
    cx, cy = (min_x + max_x) / 2, (min_y + max_y) / 2
    logger.info("Shrinking outline by %.3f to fit %.1f x %.1f", scale, max_width, max_height)
    return [(cx + (x - cx) * scale, cy + (y - cy) * scale) for x, y in ring], scale
