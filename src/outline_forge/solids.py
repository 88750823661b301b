"""
Solid primitives: planar-region extrusion and ring lofting.

Both return closed trimesh.Trimesh solids with outward normals. Lofts expect
every ring to carry the same number of vertices in corresponding order.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np
import trimesh
from shapely.geometry import Polygon

from outline_forge.offsetting import canonical_polygon, canonicalize_ring

logger = logging.getLogger(__name__)

TRIANGULATION_ENGINE = "earcut"


def extrude_region(polygon: Polygon, z_bottom: float, height: float) -> trimesh.Trimesh:
    """Extrude a polygon (holes allowed) between z_bottom and z_bottom + height."""
    mesh = trimesh.creation.extrude_polygon(
        canonical_polygon(polygon), height, engine=TRIANGULATION_ENGINE
    )
    mesh.apply_translation([0.0, 0.0, z_bottom])
    return mesh


def prism(ring: Sequence, z_bottom: float, height: float) -> trimesh.Trimesh:
    return loft_rings([(ring, z_bottom), (ring, z_bottom + height)])


def loft_rings(sections: Sequence[Tuple[Sequence, float]]) -> trimesh.Trimesh:
    """Ruled solid through stacked rings, capped at both ends.

    Args:
        sections: (ring, z) pairs ordered by increasing z; all rings must have
            the same vertex count.
    """
    if len(sections) < 2:
        raise ValueError("A loft needs at least two sections")
    rings = [np.asarray(canonicalize_ring(r), dtype=float) for r, _ in sections]
    n = len(rings[0])
    if n < 3 or any(len(r) != n for r in rings):
        raise ValueError("Loft rings must share a vertex count of at least 3")

    vertices: List[np.ndarray] = []
    for ring, (_, z) in zip(rings, sections):
        vertices.append(np.column_stack([ring, np.full(n, float(z))]))
    faces: List[List[int]] = []

    idx = np.arange(n)
    nxt = (idx + 1) % n
    for level in range(len(rings) - 1):
        lo = level * n
        hi = (level + 1) * n
        for a, b in zip(idx, nxt):
            faces.append([lo + a, lo + b, hi + b])
            faces.append([lo + a, hi + b, hi + a])

    base = len(rings) * n
    cap_vertices, cap_faces = _cap(rings[0], float(sections[0][1]), facing_up=False)
    vertices.append(cap_vertices)
    faces.extend((cap_faces + base).tolist())
    base += len(cap_vertices)

    cap_vertices, cap_faces = _cap(rings[-1], float(sections[-1][1]), facing_up=True)
    vertices.append(cap_vertices)
    faces.extend((cap_faces + base).tolist())

    mesh = trimesh.Trimesh(
        vertices=np.vstack(vertices),
        faces=np.asarray(faces, dtype=np.int64),
        process=True,
    )
    return _postprocess_mesh(mesh)


def _cap(ring: np.ndarray, z: float, facing_up: bool) -> Tuple[np.ndarray, np.ndarray]:
    """Triangulate a ring and orient its triangles up or down."""
    verts_2d, faces = trimesh.creation.triangulate_polygon(
        Polygon(ring), engine=TRIANGULATION_ENGINE
    )
    verts_2d = np.asarray(verts_2d, dtype=float)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    tri = verts_2d[faces]
    cross = (tri[:, 1, 0] - tri[:, 0, 0]) * (tri[:, 2, 1] - tri[:, 0, 1]) - (
        tri[:, 1, 1] - tri[:, 0, 1]
    ) * (tri[:, 2, 0] - tri[:, 0, 0])
    flip = cross < 0 if facing_up else cross > 0
    faces[flip] = faces[flip][:, ::-1]
    verts_3d = np.column_stack([verts_2d, np.full(len(verts_2d), z)])
    return verts_3d, faces


def _postprocess_mesh(mesh: trimesh.Trimesh) -> trimesh.Trimesh:
    """Normalize topology after assembling a solid by hand."""
    mesh.merge_vertices(digits_vertex=7)
    mesh.update_faces(mesh.nondegenerate_faces())
    mesh.remove_unreferenced_vertices()
    if not mesh.is_watertight:
        logger.warning("Lofted solid is not watertight (%d faces)", len(mesh.faces))
    mesh.fix_normals()
    return mesh


def concatenate(meshes: Sequence[trimesh.Trimesh]) -> trimesh.Trimesh:
    meshes = [m for m in meshes if m is not None and len(m.faces)]
    if not meshes:
        return trimesh.Trimesh()
    if len(meshes) == 1:
        return meshes[0]
    return trimesh.util.concatenate(list(meshes))
