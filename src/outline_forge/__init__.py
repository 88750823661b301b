"""Public API for the traced-outline -> printable insert engine."""

from outline_forge.contracts import (
    BuildResult,
    CutoutSpec,
    EmptyMeshError,
    FingerNotch,
    GridfinityMode,
    GridfinityParams,
    InsertConfig,
    ObjectMode,
    OutlineForgeError,
    ToolOutline,
    TrayMode,
    TrayParams,
)
from outline_forge.outline_export import outline_to_dxf, outline_to_svg
from outline_forge.pipeline import build_insert, export_stl

__all__ = [
    "BuildResult",
    "CutoutSpec",
    "EmptyMeshError",
    "FingerNotch",
    "GridfinityMode",
    "GridfinityParams",
    "InsertConfig",
    "ObjectMode",
    "OutlineForgeError",
    "ToolOutline",
    "TrayMode",
    "TrayParams",
    "build_insert",
    "export_stl",
    "outline_to_dxf",
    "outline_to_svg",
]
