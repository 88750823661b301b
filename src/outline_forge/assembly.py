"""Mesh assembly: flatten sub-solids into triangle soups and preview buffers."""

import logging
from typing import List, Sequence

import numpy as np

from outline_forge.contracts import BuildResult, MeshBuffer, SolidPart

logger = logging.getLogger(__name__)


def face_normals(triangles: np.ndarray) -> np.ndarray:
    """Unit normals of (N, 3, 3) triangles; zero vectors for degenerate ones."""
    tri = np.asarray(triangles, dtype=np.float64).reshape(-1, 3, 3)
    cross = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    lengths = np.linalg.norm(cross, axis=1)
    normals = np.zeros_like(cross)
    ok = lengths > 1e-12
    normals[ok] = cross[ok] / lengths[ok, None]
    return normals


def merge_triangles(parts: Sequence[SolidPart]) -> np.ndarray:
    """Concatenate the triangles of every part into one (N, 3, 3) array."""
    chunks: List[np.ndarray] = []
    for part in parts:
        if part.mesh is None or len(part.mesh.faces) == 0:
            continue
        if not part.mesh.is_watertight:
            logger.warning("Part %s is not watertight", part.name)
        chunks.append(np.asarray(part.mesh.triangles, dtype=np.float64))
    if not chunks:
        return np.zeros((0, 3, 3), dtype=np.float64)
    return np.concatenate(chunks, axis=0)


def _buffer(part: SolidPart, exportable: bool) -> MeshBuffer:
    tri = np.asarray(part.mesh.triangles, dtype=np.float64)
    normals = np.repeat(face_normals(tri), 3, axis=0)
    return MeshBuffer(
        name=part.name,
        positions=tri.reshape(-1, 3).astype(np.float32),
        normals=normals.astype(np.float32),
        exportable=exportable,
    )


def preview_buffers(result: BuildResult) -> List[MeshBuffer]:
    """Flat per-vertex position/normal arrays for every part, export set first."""
    buffers = [_buffer(p, True) for p in result.exportable if len(p.mesh.faces)]
    buffers.extend(_buffer(p, False) for p in result.preview if len(p.mesh.faces))
    return buffers
