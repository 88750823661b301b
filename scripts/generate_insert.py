#!/usr/bin/env python3
"""
Turn a traced outline into a printable STL insert.

Usage:
    python scripts/generate_insert.py --contour wrench.json --output wrench.stl
    python scripts/generate_insert.py --contour wrench.json --config tray.json --output tray.stl --svg tray.svg
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from outline_forge import (
    InsertConfig,
    OutlineForgeError,
    build_insert,
    outline_to_dxf,
    outline_to_svg,
)
from outline_forge.assembly import merge_triangles
from outline_forge.contracts import to_ring
from outline_forge.stl_writer import to_binary_stl

logger = logging.getLogger("generate_insert")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate an STL insert (object, tray or Gridfinity bin) from a traced outline"
    )
    parser.add_argument(
        "--contour", required=True,
        help="JSON list of outline points: [[x, y], ...] or [{\"x\": .., \"y\": ..}, ...]",
    )
    parser.add_argument(
        "--config", default=None,
        help="JSON insert config (mode, tray/gridfinity params, cutouts); defaults to object mode",
    )
    parser.add_argument("--output", required=True, help="Output STL path")
    parser.add_argument("--dxf", default=None, help="Also write the top outline as DXF")
    parser.add_argument("--svg", default=None, help="Also write the top outline as SVG")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def _read_json(path: str):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    contour_path = Path(args.contour)
    if not contour_path.is_file():
        parser.error(f"Contour file not found: {contour_path}")
    points = to_ring(_read_json(str(contour_path)))
    config = InsertConfig.from_dict(_read_json(args.config)) if args.config else InsertConfig()

    result = build_insert(points, config)
    try:
        data = to_binary_stl(merge_triangles(result.exportable), header=config.stl_header)
    except OutlineForgeError as exc:
        logger.error("Export failed: %s", exc)
        return 1

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    print(f"Wrote {output} ({len(data)} bytes, {len(result.exportable)} parts)")

    if args.dxf:
        Path(args.dxf).write_text(outline_to_dxf(result), encoding="utf-8")
        print(f"Wrote {args.dxf}")
    if args.svg:
        Path(args.svg).write_text(outline_to_svg(result), encoding="utf-8")
        print(f"Wrote {args.svg}")

    for warning in result.warnings:
        print(f"  warning: {warning}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
