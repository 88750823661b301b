"""Contracts for the outline -> printable solid engine."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import trimesh

Vec2 = Tuple[float, float]
Ring = List[Vec2]

DEPTH_EPSILON_MM = 0.01
MIN_LAYER_MM = 0.01


# ─── Errors ──────────────────────────────────────────────────────────────────


class OutlineForgeError(Exception):
    """Base error for the geometry engine."""


class DegenerateInputError(OutlineForgeError, ValueError):
    """Too few points or zero bounding extent."""


class BooleanEvaluationFailure(OutlineForgeError):
    """A union/CSG step failed on pathological input."""


class EmptyMeshError(OutlineForgeError):
    """Nothing exportable was produced."""


# ─── Inputs ──────────────────────────────────────────────────────────────────


@dataclass
class CutoutSpec:
    """Per-cutout placement and cavity parameters."""

    depth: Optional[float] = None  # None = reference cavity depth
    tolerance: float = 1.5
    rotation_deg: float = 0.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    bevel_mm: float = 0.0


@dataclass
class FingerNotch:
    """A finger-access notch next to a tool cavity."""

    shape: str = "circle"  # "circle" | "square" | "rect"
    radius: float = 12.0
    width: float = 24.0
    height: float = 16.0
    x: float = 0.0
    y: float = 0.0
    depth: Optional[float] = None  # independent depth; None = cavity depth


@dataclass
class ToolOutline:
    """A secondary traced tool cut into the same insert."""

    points: List[Vec2]
    real_width: float = 100.0
    real_height: float = 100.0
    cutout: CutoutSpec = field(default_factory=CutoutSpec)


@dataclass
class TrayParams:
    width: float = 150.0
    height: float = 100.0
    depth: float = 30.0
    wall_thickness: float = 3.0
    corner_radius: float = 2.0
    floor_thickness: float = 2.0
    edge_profile: str = "none"  # "none" | "chamfer" | "fillet"
    edge_size: float = 2.0
    outer_shape: str = "rectangle"  # "rectangle" | "oval" | "custom"
    custom_outer_points: Optional[List[Vec2]] = None


@dataclass
class GridfinityParams:
    grid_units_x: int = 2
    grid_units_y: int = 1
    wall_height_mm: float = 21.0


@dataclass
class ObjectMode:
    """Free-standing extrusion of the outline."""

    depth: float = 25.0
    edge_radius: float = 0.0


@dataclass
class TrayMode:
    """Custom tray with tool-shaped cavity."""

    tray: TrayParams = field(default_factory=TrayParams)


@dataclass
class GridfinityMode:
    """Gridfinity-compatible bin with tool-shaped cavity."""

    grid: GridfinityParams = field(default_factory=GridfinityParams)


InsertMode = Union[ObjectMode, TrayMode, GridfinityMode]


@dataclass
class InsertConfig:
    """Everything needed to turn one traced outline into a solid."""

    mode: InsertMode = field(default_factory=ObjectMode)
    real_width: float = 100.0
    real_height: float = 100.0
    primary: CutoutSpec = field(default_factory=CutoutSpec)
    finger_notches: List[FingerNotch] = field(default_factory=list)
    additional_tools: List[ToolOutline] = field(default_factory=list)
    stl_header: str = "outline_forge STL export"

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "InsertConfig":
        """Build a config from a JSON-shaped dict (unknown keys ignored)."""
        mode_tag = str(payload.get("mode", "object")).lower()
        if mode_tag == "tray":
            mode: InsertMode = TrayMode(tray=_build(TrayParams, payload.get("tray", {})))
            if mode.tray.custom_outer_points:
                mode.tray.custom_outer_points = to_ring(mode.tray.custom_outer_points)
        elif mode_tag == "gridfinity":
            mode = GridfinityMode(grid=_build(GridfinityParams, payload.get("gridfinity", {})))
        elif mode_tag == "object":
            mode = _build(ObjectMode, payload.get("object", {}))
        else:
            raise ValueError(f"Unknown insert mode: {mode_tag!r}")

        tools = []
        for item in payload.get("additional_tools", []) or []:
            tools.append(
                ToolOutline(
                    points=to_ring(item.get("points", [])),
                    real_width=float(item.get("real_width", 100.0)),
                    real_height=float(item.get("real_height", 100.0)),
                    cutout=_build(CutoutSpec, item.get("cutout", {})),
                )
            )

        kwargs: Dict[str, Any] = {
            "mode": mode,
            "primary": _build(CutoutSpec, payload.get("primary", {})),
            "finger_notches": [
                _build(FingerNotch, n) for n in payload.get("finger_notches", []) or []
            ],
            "additional_tools": tools,
        }
        for key in ("real_width", "real_height"):
            if key in payload:
                kwargs[key] = float(payload[key])
        if "stl_header" in payload:
            kwargs["stl_header"] = str(payload["stl_header"])
        return cls(**kwargs)


def _build(cls, values: Dict[str, Any]):
    allowed = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in (values or {}).items() if k in allowed})


def to_ring(points: Sequence[Any]) -> Ring:
    """Accept [x, y] pairs or {"x":..,"y":..} dicts."""
    ring: Ring = []
    for p in points:
        if isinstance(p, dict):
            ring.append((float(p["x"]), float(p["y"])))
        else:
            ring.append((float(p[0]), float(p[1])))
    return ring


# ─── Intermediate geometry ───────────────────────────────────────────────────


@dataclass
class DepthCutout:
    """A placed opening with its own depth, ready for stratification."""

    ring: Ring
    depth: float
    label: str = ""
    bevel_mm: float = 0.0


@dataclass
class Stratum:
    """A horizontal slice [z_bottom, z_top) with a uniform open-hole set."""

    z_bottom: float
    z_top: float
    outer: Ring
    holes: List[Ring] = field(default_factory=list)
    role: str = "wall"
    open_labels: List[str] = field(default_factory=list)

    @property
    def height(self) -> float:
        return self.z_top - self.z_bottom


@dataclass
class FrustumLayer:
    bottom_width: float
    top_width: float
    height: float
    z_bottom: float


@dataclass
class BaseCell:
    """One Gridfinity grid cell foot: three stacked frustum layers."""

    center: Vec2
    layers: List[FrustumLayer] = field(default_factory=list)


# ─── Outputs ─────────────────────────────────────────────────────────────────


@dataclass
class SolidPart:
    """A closed sub-solid, either exportable or preview-only."""

    name: str
    mesh: trimesh.Trimesh
    role: str = "body"
    tool_index: Optional[int] = None


@dataclass
class MeshBuffer:
    """Flat position/normal arrays for one sub-solid."""

    name: str
    positions: np.ndarray  # (N*3, 3) float32
    normals: np.ndarray  # (N*3, 3) float32
    exportable: bool


@dataclass
class BuildResult:
    exportable: List[SolidPart] = field(default_factory=list)
    preview: List[SolidPart] = field(default_factory=list)
    strata: List[Stratum] = field(default_factory=list)
    base_cells: List[BaseCell] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def strata_by_role(self, role: str) -> List[Stratum]:
        return [s for s in self.strata if s.role == role]
