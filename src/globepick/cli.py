"""CLI entrypoint for globepick."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .config import AppConfig, load_config
from .enrichment import EnrichmentCache
from .geo import region_segments
from .io_dataset import DatasetRepository
from .models import GeoPoint
from .polygon_index import DatasetError, PolygonIndex
from .session import SelectionController, SelectionSession, SelectionState
from .sink import LoggingSink
from .util import setup_logging, write_json
from .validate import DatasetValidator, format_report_lines

LOGGER = logging.getLogger("globepick.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="globepick",
        description="Resolve globe picks to countries and enrich them with local time and a summary.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    validate_p = subparsers.add_parser("validate", help="Validate config and polygon dataset.")
    add_common(validate_p)
    validate_p.add_argument(
        "--check-overlaps",
        action="store_true",
        help="Flag regions whose bounding boxes overlap.",
    )

    locate_p = subparsers.add_parser("locate", help="Resolve a coordinate to a region (no network).")
    add_common(locate_p)
    locate_p.add_argument("--lat", type=float, required=True, help="Latitude in degrees.")
    locate_p.add_argument("--lon", type=float, required=True, help="Longitude in degrees.")

    pick_p = subparsers.add_parser(
        "pick",
        help="Run a full pick: resolve the region, then look up local time and summary.",
    )
    add_common(pick_p)
    target = pick_p.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--vector",
        type=float,
        nargs=3,
        metavar=("X", "Y", "Z"),
        help="Globe surface vector of the pick.",
    )
    target.add_argument("--lat", type=float, help="Latitude in degrees (requires --lon).")
    pick_p.add_argument("--lon", type=float, help="Longitude in degrees.")
    pick_p.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for the time zone and summary lookups.",
    )

    outline_p = subparsers.add_parser("outline", help="Write a region's border segments as JSON.")
    add_common(outline_p)
    outline_p.add_argument("--name", required=True, help="Region display name.")
    outline_p.add_argument("--output", default=None, help="Output JSON path (default: logs only).")
    outline_p.add_argument(
        "--radius",
        type=float,
        default=None,
        help="Shell radius for the outline (default: globe.shell_radius).",
    )

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    setup_logging(cfg.paths.logs_dir / "globepick.log", verbose=args.verbose)
    return cfg


def _load_index(cfg: AppConfig) -> PolygonIndex:
    repo = DatasetRepository(
        cfg.paths.dataset,
        dataset_format=cfg.dataset.format,
        name_fields=cfg.dataset.name_fields,
    )
    return repo.load_index(check_overlaps=cfg.dataset.check_overlaps)


def _run_validate(cfg: AppConfig, *, check_overlaps: bool) -> int:
    report = DatasetValidator(cfg).run(check_overlaps=check_overlaps or None)
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_locate(cfg: AppConfig, *, lat: float, lon: float) -> int:
    point = GeoPoint(lat=lat, lon=lon)
    region = _load_index(cfg).find_region(point)
    if region is None:
        LOGGER.info("No region contains %s", point.label())
        return 1
    LOGGER.info("%s is in %s", point.label(), region.name)
    return 0


def _run_pick(
    cfg: AppConfig,
    *,
    vector: Sequence[float] | None,
    lat: float | None,
    lon: float | None,
    timeout: float,
) -> int:
    point: GeoPoint | None = None
    if vector is None:
        if lat is None or lon is None:
            LOGGER.error("--lat requires --lon")
            return 2
        point = GeoPoint(lat=lat, lon=lon)

    index = _load_index(cfg)
    session = SelectionSession(EnrichmentCache.from_config(cfg.enrichment))
    with SelectionController(
        session,
        index,
        LoggingSink(),
        shell_radius=cfg.globe.shell_radius,
        max_workers=cfg.enrichment.max_workers,
    ) as controller:
        if point is not None:
            selection = controller.pick_geo(point)
        else:
            x, y, z = vector
            selection = controller.pick((x, y, z))
        if selection.region is None:
            return 1
        if not controller.wait(timeout):
            LOGGER.warning("Lookups for pick %d did not finish within %.1fs", selection.token, timeout)
            return 1
        LOGGER.debug("Enrichment cache stats: %s", session.cache.stats())
        return 0 if controller.state is SelectionState.SETTLED else 1


def _run_outline(cfg: AppConfig, *, name: str, output: str | None, radius: float | None) -> int:
    region = _load_index(cfg).get(name)
    if region is None:
        LOGGER.error("Region '%s' not found in %s", name, cfg.paths.dataset)
        return 1
    segments = region_segments(region, radius if radius is not None else cfg.globe.shell_radius)
    LOGGER.info("%s: %d outline segments", region.name, len(segments))
    if output:
        payload = {
            "name": region.name,
            "segments": [[list(start), list(end)] for start, end in segments],
        }
        write_json(Path(output), payload)
        LOGGER.info("Outline written to %s", output)
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    try:
        if command == "validate":
            return _run_validate(cfg, check_overlaps=bool(args.check_overlaps))
        if command == "locate":
            return _run_locate(cfg, lat=args.lat, lon=args.lon)
        if command == "pick":
            return _run_pick(
                cfg,
                vector=args.vector,
                lat=args.lat,
                lon=args.lon,
                timeout=float(args.timeout),
            )
        if command == "outline":
            return _run_outline(cfg, name=str(args.name), output=args.output, radius=args.radius)
    except DatasetError as exc:
        LOGGER.error("Polygon dataset is invalid: %s", exc)
        return 1
    except ValueError as exc:
        LOGGER.error("%s", exc)
        return 2
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
