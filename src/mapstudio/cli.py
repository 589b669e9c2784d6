"""CLI entrypoint for mapstudio."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from .config import AppConfig, load_config
from .custom_map import ensure_paths_closed, validate_custom_svg
from .models import DataRow
from .render import MapRenderer, RenderRequest, format_render_lines
from .settings import load_map_settings
from .topology import Topology
from .util import setup_logging, topology_cache_key, write_report_json, write_text

LOGGER = logging.getLogger("mapstudio.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mapstudio",
        description="Render data-driven SVG maps.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default=None, help="Path to YAML config (defaults apply when omitted).")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    render_p = subparsers.add_parser("render", help="Render one map scene to SVG.")
    add_common(render_p)
    render_p.add_argument("--settings", required=True, help="Map settings YAML/JSON file.")
    render_p.add_argument(
        "--data",
        default=None,
        help="JSON rows: a list, or an object with 'symbol' and/or 'region' lists.",
    )
    render_p.add_argument("--topology", default=None, help="TopoJSON file for the selected geography.")
    render_p.add_argument("--custom-map", default=None, help="Custom SVG map used instead of the topology.")
    render_p.add_argument("--out", required=True, help="Output SVG path.")
    render_p.add_argument("--report", default=None, help="Optional JSON file for the render report.")

    svg_p = subparsers.add_parser("validate-svg", help="Check a custom SVG map document.")
    add_common(svg_p)
    svg_p.add_argument("file", help="SVG file to check.")
    svg_p.add_argument(
        "--write-closed",
        default=None,
        help="Write a copy with every open path closed to this path.",
    )

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config) if args.config else AppConfig.default()
    setup_logging(cfg.logging.log_file, verbose=args.verbose)
    return cfg


def load_rows(path: Path) -> tuple[tuple[DataRow, ...], tuple[DataRow, ...]]:
    """Read (symbol_rows, region_rows); a plain list feeds both layers."""
    with path.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    if isinstance(raw, list):
        rows = _rows(raw, "data")
        return (rows, rows)
    if isinstance(raw, Mapping):
        return (_rows(raw.get("symbol", []), "data.symbol"), _rows(raw.get("region", []), "data.region"))
    raise ValueError("Expected list or mapping at top level of data file")


def _rows(value: Any, field_name: str) -> tuple[DataRow, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Expected list for '{field_name}'")
    for idx, item in enumerate(value):
        if not isinstance(item, Mapping):
            raise ValueError(f"Expected mapping for '{field_name}[{idx}]'")
    return tuple(value)


def _run_render(cfg: AppConfig, args: argparse.Namespace) -> int:
    try:
        settings = load_map_settings(Path(args.settings))
        symbol_rows, region_rows = load_rows(Path(args.data)) if args.data else ((), ())
        topology: Topology | None = None
        topology_key: str | None = None
        if args.topology:
            topology_path = Path(args.topology)
            topology = Topology.from_path(topology_path)
            topology_key = topology_cache_key(topology_path)
        custom_svg = Path(args.custom_map).read_text(encoding="utf-8") if args.custom_map else None
    except (OSError, ValueError, yaml.YAMLError) as exc:
        LOGGER.error("Invalid input: %s", exc)
        return 2

    if topology is None and custom_svg is None:
        LOGGER.error("Invalid input: one of --topology or --custom-map is required")
        return 2

    scene, report = MapRenderer(cfg).render(
        RenderRequest(
            settings=settings,
            symbol_rows=symbol_rows,
            region_rows=region_rows,
            topology=topology,
            topology_key=topology_key,
            custom_map_svg=custom_svg,
        )
    )
    out_path = Path(args.out)
    write_text(out_path, scene.to_svg() + "\n")
    report.add_info(f"SVG written to {out_path}")
    if args.report:
        write_report_json(
            Path(args.report),
            {
                "ok": report.ok,
                "errors": report.errors,
                "warnings": report.warnings,
                "infos": report.infos,
                "summary": report.summary,
            },
        )
    for line in format_render_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_validate_svg(args: argparse.Namespace) -> int:
    path = Path(args.file)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        LOGGER.error("Invalid input: %s", exc)
        return 2
    valid, message = validate_custom_svg(text)
    closed_text, closed_count = ensure_paths_closed(text)
    if not valid:
        LOGGER.error("[ERROR] %s", message)
        return 1
    LOGGER.info("[INFO] %s", message)
    LOGGER.info("[INFO] %d open paths would be closed.", closed_count)
    if args.write_closed:
        write_text(Path(args.write_closed), closed_text)
        LOGGER.info("[INFO] Closed copy written to %s", args.write_closed)
    LOGGER.info("[OK] Custom map validation completed with no errors.")
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    try:
        cfg = _load_and_setup(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        setup_logging(verbose=bool(args.verbose))
        LOGGER.error("Invalid config: %s", exc)
        return 2
    command = str(args.command)
    if command == "render":
        return _run_render(cfg, args)
    if command == "validate-svg":
        return _run_validate_svg(args)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
