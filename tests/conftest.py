"""
Shared test fixtures for the outline -> insert pipeline tests.
"""
import sys
import warnings
from pathlib import Path

# Suppress trimesh internal RuntimeWarning for degenerate cross-sections
# (divide-by-zero when a mass property is queried on a zero-volume mesh).
warnings.filterwarnings(
    "ignore",
    message="invalid value encountered in divide",
    category=RuntimeWarning,
    module=r"trimesh\.triangles",
)

import pytest
import trimesh

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from outline_forge.contracts import (
    CutoutSpec,
    GridfinityMode,
    GridfinityParams,
    InsertConfig,
    TrayMode,
    TrayParams,
)


@pytest.fixture
def rect_points():
    """A traced 400x200 px rectangle in image space (Y down)."""
    return [(0.0, 0.0), (400.0, 0.0), (400.0, 200.0), (0.0, 200.0)]


@pytest.fixture
def square_ring():
    """A 10x10 mm CCW square with its corner at the origin."""
    return [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]


@pytest.fixture
def tray_config():
    """100x80x20 tray, 3 mm walls, 40x20 tool cut 10 mm deep."""
    return InsertConfig(
        mode=TrayMode(tray=TrayParams(width=100.0, height=80.0, depth=20.0, wall_thickness=3.0)),
        real_width=40.0,
        real_height=20.0,
        primary=CutoutSpec(depth=10.0),
    )


@pytest.fixture
def gridfinity_config():
    """2x1 Gridfinity bin, 21 mm walls, default cavity depth."""
    return InsertConfig(
        mode=GridfinityMode(grid=GridfinityParams(grid_units_x=2, grid_units_y=1)),
        real_width=40.0,
        real_height=20.0,
    )


@pytest.fixture
def box_mesh():
    """A 10x10x10 mm box with its bottom at z=0."""
    mesh = trimesh.creation.box(extents=[10, 10, 10])
    mesh.apply_translation([0, 0, 5])
    return mesh
