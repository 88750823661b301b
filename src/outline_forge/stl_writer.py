"""
Binary STL serialization.

Layout: 80-byte ASCII header (zero padded), little-endian uint32 triangle
count, then 50 bytes per triangle: normal and three vertices as float32,
followed by a uint16 attribute word (always 0).
"""

import logging
from typing import Optional, Tuple

import numpy as np

from outline_forge.assembly import face_normals
from outline_forge.contracts import EmptyMeshError

logger = logging.getLogger(__name__)

HEADER_BYTES = 80
COUNT_BYTES = 4
STL_RECORD = np.dtype(
    [
        ("normal", "<f4", (3,)),
        ("vectors", "<f4", (3, 3)),
        ("attr", "<u2"),
    ]
)


def stl_size(triangle_count: int) -> int:
    return HEADER_BYTES + COUNT_BYTES + STL_RECORD.itemsize * triangle_count


def to_binary_stl(
    triangles: np.ndarray,
    normals: Optional[np.ndarray] = None,
    header: str = "",
) -> bytes:
    """Serialize an (N, 3, 3) triangle array.

    Raises:
        EmptyMeshError: no triangles.
    """
    triangles = np.asarray(triangles, dtype=np.float64).reshape(-1, 3, 3)
    if len(triangles) == 0:
        raise EmptyMeshError("No geometry to export")
    if normals is None:
        normals = face_normals(triangles)

    records = np.zeros(len(triangles), dtype=STL_RECORD)
    records["normal"] = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    records["vectors"] = triangles

    head = header.encode("ascii", errors="replace")[:HEADER_BYTES].ljust(HEADER_BYTES, b"\0")
    count = np.array([len(triangles)], dtype="<u4").tobytes()
    logger.debug("Serialized %d triangles", len(triangles))
    return head + count + records.tobytes()


def read_binary_stl(data: bytes) -> Tuple[str, np.ndarray, np.ndarray]:
    """Parse binary STL bytes into (header, normals (N,3), triangles (N,3,3))."""
    if len(data) < HEADER_BYTES + COUNT_BYTES:
        raise ValueError(f"STL data too short: {len(data)} bytes")
    header = data[:HEADER_BYTES].rstrip(b"\0").decode("ascii", errors="replace")
    count = int(np.frombuffer(data, dtype="<u4", count=1, offset=HEADER_BYTES)[0])
    expected = stl_size(count)
    if len(data) < expected:
        raise ValueError(f"STL declares {count} triangles but holds {len(data)} bytes")
    records = np.frombuffer(
        data, dtype=STL_RECORD, count=count, offset=HEADER_BYTES + COUNT_BYTES
    )
    return header, records["normal"].astype(np.float64), records["vectors"].astype(np.float64)
