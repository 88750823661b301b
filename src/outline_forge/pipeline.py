"""
End-to-end insert generation: traced outline + InsertConfig -> solids -> STL.

The mode is dispatched once here. Each builder places the tool outlines,
composes the opening set, stratifies the body and assembles the exportable
and preview-only parts into a BuildResult.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from shapely.geometry import Polygon

from outline_forge.assembly import merge_triangles
from outline_forge.bevel import apply_bevels, clamp_bevel
from outline_forge.contour import fit_within, place_ring, prepare_contour
from outline_forge.contracts import (
    DEPTH_EPSILON_MM,
    BuildResult,
    CutoutSpec,
    DegenerateInputError,
    DepthCutout,
    GridfinityMode,
    InsertConfig,
    ObjectMode,
    Ring,
    SolidPart,
    Stratum,
    TrayMode,
    Vec2,
)
from outline_forge.layering import (
    build_floor_strata,
    build_layered_solid,
    build_wall_strata,
    stratum_meshes,
)
from outline_forge.offsetting import canonical_polygon, offset_polygon, polygons_of, ring_from_polygon
from outline_forge.profiles import (
    GRIDFINITY,
    edge_skirt,
    gridfinity_base,
    inner_extent,
    outer_ring,
    rounded_extrusion,
    rounded_rect_ring,
    stacking_lip,
)
from outline_forge.regions import notch_ring, union_with_reference
from outline_forge.solids import extrude_region
from outline_forge.stl_writer import to_binary_stl

logger = logging.getLogger(__name__)

FALLBACK_SQUARE_MM = 10.0
OBJECT_EDGE_RATIO = 0.3
SKIRT_DEPTH_RATIO = 0.4
SKIRT_SPAN_RATIO = 0.25
TRAY_MIN_FLOOR_MM = 1.0
PREVIEW_OVERSHOOT_MM = 0.25
PRIMARY_TOOL_INDEX = -1
GRIDFINITY_TOOL_MARGIN_MM = 2.0


@dataclass
class PlacedTool:
    """A tool outline in insert coordinates with its toleranced opening."""

    index: int
    outline: Ring
    opening: Ring
    depth: float
    bevel_mm: float = 0.0


def build_insert(points: Sequence, config: InsertConfig) -> BuildResult:
    """Build every solid for one outline. Never raises on degenerate input."""
    mode = config.mode
    if isinstance(mode, TrayMode):
        logger.info("Building tray insert %.1f x %.1f", mode.tray.width, mode.tray.height)
        return _build_tray(points, config, mode)
    if isinstance(mode, GridfinityMode):
        logger.info(
            "Building Gridfinity bin %dx%d", mode.grid.grid_units_x, mode.grid.grid_units_y
        )
        return _build_gridfinity(points, config, mode)
    if isinstance(mode, ObjectMode):
        logger.info("Building object extrusion")
        return _build_object(points, config, mode)
    raise TypeError(f"Unsupported insert mode: {type(mode).__name__}")


def export_stl(points: Sequence, config: InsertConfig) -> bytes:
    """Binary STL of the exportable solids.

    Raises:
        EmptyMeshError: nothing exportable was produced.
    """
    result = build_insert(points, config)
    triangles = merge_triangles(result.exportable)
    logger.info("Exporting %d triangles from %d parts", len(triangles), len(result.exportable))
    return to_binary_stl(triangles, header=config.stl_header)


# ─── Tool placement ──────────────────────────────────────────────────────────

def _warn(result: BuildResult, message: str, *args) -> None:
    logger.warning(message, *args)
    result.warnings.append(message % args if args else message)


def place_tool(
    points: Sequence,
    real_width: float,
    real_height: float,
    cutout: CutoutSpec,
    reference_depth: float,
    index: int,
    fit: Optional[Tuple[float, float]] = None,
) -> PlacedTool:
    """Scale, fit, orient and tolerance one traced tool.

    Raises:
        DegenerateInputError: the outline has fewer than 3 points or no area.
    """
    ring = prepare_contour(points, real_width, real_height)
    if fit is not None:
        ring, _ = fit_within(ring, fit[0], fit[1])
    ring = place_ring(ring, cutout.rotation_deg, (cutout.offset_x, cutout.offset_y))
    if _largest_region(ring) is None:
        raise DegenerateInputError("Tool outline encloses no area")
    depth = cutout.depth if cutout.depth and cutout.depth > 0 else reference_depth
    return PlacedTool(
        index=index,
        outline=ring,
        opening=offset_polygon(ring, cutout.tolerance or 0.0),
        depth=float(depth),
        bevel_mm=float(cutout.bevel_mm or 0.0),
    )


def _place_all(
    points: Sequence,
    config: InsertConfig,
    reference_depth: float,
    result: BuildResult,
    fit: Optional[Tuple[float, float]] = None,
    fit_primary: bool = True,
) -> Tuple[Optional[PlacedTool], List[PlacedTool], List[DepthCutout]]:
    """Place the primary tool, secondary tools and finger notches.

    Secondary tools are always shrunk into `fit`; the primary only when
    fit_primary is set.
    """
    primary: Optional[PlacedTool] = None
    try:
        primary = place_tool(
            points, config.real_width, config.real_height, config.primary,
            reference_depth, PRIMARY_TOOL_INDEX, fit if fit_primary else None,
        )
    except DegenerateInputError as exc:
        _warn(result, "Primary outline skipped: %s", exc)

    extras: List[PlacedTool] = []
    for i, tool in enumerate(config.additional_tools):
        try:
            extras.append(
                place_tool(
                    tool.points, tool.real_width, tool.real_height, tool.cutout,
                    reference_depth, i, fit,
                )
            )
        except DegenerateInputError as exc:
            _warn(result, "Additional tool %d skipped: %s", i, exc)

    notches: List[DepthCutout] = []
    for i, notch in enumerate(config.finger_notches):
        depth = notch.depth if notch.depth and notch.depth > 0 else reference_depth
        notches.append(DepthCutout(ring=notch_ring(notch), depth=float(depth), label=f"notch{i}"))

    return primary, extras, notches


def _compose_openings(
    primary: Optional[PlacedTool],
    extras: Sequence[PlacedTool],
    notches: Sequence[DepthCutout],
    reference_depth: float,
) -> Tuple[List[Ring], List[DepthCutout]]:
    """Reference hole rings plus the cutouts that keep their own depth."""
    auxiliaries = [
        DepthCutout(ring=t.opening, depth=t.depth, label=f"tool{t.index}", bevel_mm=t.bevel_mm)
        for t in extras
    ]
    auxiliaries.extend(notches)
    if primary is None:
        return [], auxiliaries
    composite = union_with_reference(primary.opening, auxiliaries, reference_depth)
    if composite.merged_labels:
        logger.debug("Merged into reference cavity: %s", composite.merged_labels)
    return composite.rings, composite.independent


def _bevel_openings(
    primary: Optional[PlacedTool], extras: Sequence[PlacedTool], top: Stratum
) -> List[Tuple[Ring, float]]:
    tools = ([primary] if primary is not None else []) + list(extras)
    openings = []
    for tool in tools:
        size = clamp_bevel(tool.bevel_mm, tool.depth, top.height)
        if size > 0:
            openings.append((tool.opening, size))
    return openings


# ─── Shared assembly ─────────────────────────────────────────────────────────

def _largest_region(ring: Sequence[Vec2]) -> Optional[Polygon]:
    if len(ring) < 3:
        return None
    poly = Polygon(ring)
    if not poly.is_valid:
        poly = poly.buffer(0)
    return _largest_piece(poly)


def _largest_piece(geom) -> Optional[Polygon]:
    pieces = [p for p in polygons_of(geom) if p.area > 1e-9]
    if not pieces:
        return None
    return canonical_polygon(max(pieces, key=lambda p: p.area))


def _strata_parts(
    strata: Sequence[Stratum],
    primary: Optional[PlacedTool],
    extras: Sequence[PlacedTool],
    result: BuildResult,
) -> List[SolidPart]:
    """Extrude every stratum; the topmost wall stratum gets the bevels."""
    walls = [s for s in strata if s.role == "wall"]
    top = max(walls, key=lambda s: s.z_top) if walls else None
    parts: List[SolidPart] = []
    for i, stratum in enumerate(strata):
        meshes = stratum_meshes(stratum)
        if stratum is top:
            openings = _bevel_openings(primary, extras, stratum)
            if openings:
                meshes, applied = apply_bevels(meshes, openings, stratum.z_top)
                if not applied:
                    result.warnings.append("Bevel skipped, keeping square edges")
        for j, mesh in enumerate(meshes):
            parts.append(SolidPart(name=f"{stratum.role}_{i}_{j}", mesh=mesh, role=stratum.role))
    return parts


def _preview_parts(
    primary: Optional[PlacedTool],
    extras: Sequence[PlacedTool],
    notches: Sequence[DepthCutout],
    top_z: float,
    clip: Optional[Sequence[Vec2]] = None,
) -> List[SolidPart]:
    """Translucent tool and notch bodies sitting in their cavities.

    With `clip`, each body is trimmed to that outline (the bin footprint).
    """
    bound = Polygon(clip) if clip is not None else None
    items: List[Tuple[str, str, int, Ring, float]] = []
    for tool in ([primary] if primary is not None else []) + list(extras):
        items.append((f"tool_{tool.index}", "tool", tool.index, tool.outline, tool.depth))
    for i, notch in enumerate(notches):
        items.append((f"notch_{i}", "notch", i, notch.ring, notch.depth))

    parts: List[SolidPart] = []
    for name, role, index, ring, depth in items:
        region = _largest_region(ring)
        if region is None:
            continue
        if bound is not None:
            region = _largest_piece(region.intersection(bound))
            if region is None:
                logger.debug("Preview body %s lies outside the bin", name)
                continue
        try:
            mesh = extrude_region(
                region, top_z - depth - PREVIEW_OVERSHOOT_MM, depth + 2 * PREVIEW_OVERSHOOT_MM
            )
        except Exception as exc:
            logger.warning("Preview body %s failed: %s", name, exc)
            continue
        parts.append(SolidPart(name=name, mesh=mesh, role=role, tool_index=index))
    return parts


# ─── Object mode ─────────────────────────────────────────────────────────────

def _fallback_square() -> Ring:
    h = FALLBACK_SQUARE_MM / 2
    return [(-h, -h), (h, -h), (h, h), (-h, h)]


def _build_object(points: Sequence, config: InsertConfig, mode: ObjectMode) -> BuildResult:
    result = BuildResult()
    ring: Optional[Ring] = None
    try:
        ring = prepare_contour(
            points, config.real_width, config.real_height, config.primary.rotation_deg
        )
    except DegenerateInputError as exc:
        _warn(result, "Degenerate outline, using fallback square: %s", exc)
    region = _largest_region(ring) if ring else None
    if region is None:
        if ring:
            _warn(result, "Outline encloses no area, using fallback square")
        region = Polygon(_fallback_square())

    depth = mode.depth if mode.depth and mode.depth > 0 else ObjectMode.depth
    edge = min(max(mode.edge_radius or 0.0, 0.0), depth * OBJECT_EDGE_RATIO)
    ring = ring_from_polygon(region)

    if edge > 0 and not region.interiors:
        mesh = rounded_extrusion(ring, depth, edge, "fillet")
    else:
        mesh = extrude_region(region, 0.0, depth)
    result.strata.append(Stratum(0.0, depth, ring, role="body"))
    result.exportable.append(SolidPart(name="object", mesh=mesh, role="body"))
    return result


# ─── Tray mode ───────────────────────────────────────────────────────────────

def _skirt_size(tray, base_depth: float) -> float:
    if tray.edge_profile not in ("chamfer", "fillet") or not tray.edge_size or tray.edge_size <= 0:
        return 0.0
    return min(
        tray.edge_size,
        tray.depth * SKIRT_DEPTH_RATIO,
        tray.width * SKIRT_SPAN_RATIO,
        tray.height * SKIRT_SPAN_RATIO,
        base_depth,
    )


def _build_tray(points: Sequence, config: InsertConfig, mode: TrayMode) -> BuildResult:
    tray = mode.tray
    result = BuildResult()
    outer = outer_ring(tray)

    default_depth = max(tray.depth - tray.floor_thickness, 0.0)
    reference_depth = config.primary.depth if config.primary.depth and config.primary.depth > 0 else default_depth
    base_depth = max(tray.depth - reference_depth, tray.floor_thickness)
    logger.debug(
        "Tray cavity %.2f mm over a %.2f mm base (total %.2f)",
        reference_depth, base_depth, base_depth + reference_depth,
    )

    primary, extras, notches = _place_all(
        points, config, reference_depth, result, fit=inner_extent(tray)
    )
    reference_rings, independent = _compose_openings(primary, extras, notches, reference_depth)

    skirt = _skirt_size(tray, base_depth)
    deep = [c for c in independent if c.depth > reference_depth + DEPTH_EPSILON_MM]
    if skirt > 0 and deep:
        logger.info(
            "%d cutout(s) reach below the cavity floor, dropping the %s skirt",
            len(deep), tray.edge_profile,
        )
        skirt = 0.0

    min_floor = min(TRAY_MIN_FLOOR_MM, base_depth)
    if skirt > 0:
        result.strata.append(Stratum(0.0, skirt, outer, role="skirt"))
        result.strata.extend(
            build_floor_strata(outer, [], reference_depth, base_depth - skirt, min_floor, z0=skirt)
        )
        result.strata.extend(
            build_wall_strata(outer, reference_rings, independent, reference_depth, base_depth)
        )
    else:
        result.strata.extend(
            build_layered_solid(
                outer, reference_rings, independent, reference_depth, base_depth, min_floor
            )
        )

    body = [s for s in result.strata if s.role != "skirt"]
    if skirt > 0:
        result.exportable.append(
            SolidPart(name="skirt", mesh=edge_skirt(outer, skirt, tray.edge_profile), role="skirt")
        )
    result.exportable.extend(_strata_parts(body, primary, extras, result))
    result.preview.extend(_preview_parts(primary, extras, notches, base_depth + reference_depth))
    return result


# ─── Gridfinity mode ─────────────────────────────────────────────────────────

def _build_gridfinity(points: Sequence, config: InsertConfig, mode: GridfinityMode) -> BuildResult:
    grid = mode.grid
    profile = GRIDFINITY
    result = BuildResult()

    units_x = max(1, int(grid.grid_units_x))
    units_y = max(1, int(grid.grid_units_y))
    wall_height = float(grid.wall_height_mm)
    max_cavity = max(wall_height - profile.min_floor, 0.0)
    requested = config.primary.depth if config.primary.depth and config.primary.depth > 0 else max_cavity
    reference_depth = max(0.0, min(requested, max_cavity))
    floor_depth = wall_height - reference_depth
    bin_w, bin_h = profile.bin_size(units_x, units_y)
    outer = rounded_rect_ring(bin_w, bin_h, profile.corner_radius)
    z0 = profile.base_height

    cells, cell_meshes = gridfinity_base(units_x, units_y, profile)
    result.base_cells.extend(cells)
    for i, mesh in enumerate(cell_meshes):
        result.exportable.append(SolidPart(name=f"base_cell_{i}", mesh=mesh, role="base"))

    primary, extras, notches = _place_all(
        points, config, reference_depth, result,
        fit=(bin_w - GRIDFINITY_TOOL_MARGIN_MM, bin_h - GRIDFINITY_TOOL_MARGIN_MM),
        fit_primary=False,
    )
    reference_rings, independent = _compose_openings(primary, extras, notches, reference_depth)

    result.strata.extend(
        build_layered_solid(
            outer, reference_rings, independent, reference_depth, floor_depth,
            profile.min_floor, z0=z0,
        )
    )
    result.exportable.extend(_strata_parts(result.strata, primary, extras, result))

    lip_z = z0 + wall_height
    lip_inner = rounded_rect_ring(
        bin_w - 2 * profile.lip_wall,
        bin_h - 2 * profile.lip_wall,
        profile.corner_radius - profile.lip_wall,
    )
    result.strata.append(Stratum(lip_z, lip_z + profile.lip_height, outer, [lip_inner], role="lip"))
    result.exportable.append(
        SolidPart(name="lip", mesh=stacking_lip(bin_w, bin_h, lip_z, profile), role="lip")
    )
    result.preview.extend(_preview_parts(primary, extras, notches, lip_z, clip=outer))
    return result
