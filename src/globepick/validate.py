"""Validation layer for config and the polygon dataset."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Sequence

from .config import AppConfig
from .io_dataset import DatasetRepository
from .polygon_index import UNKNOWN_REGION_NAME, DatasetError, PolygonIndex


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class DatasetValidator:
    """Loads the configured dataset and reports structural problems."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self, *, check_overlaps: bool | None = None) -> ValidationReport:
        report = ValidationReport()
        index = self._load_index(report)
        if index is None:
            return report
        self._validate_names(report, index)
        overlaps = self.cfg.dataset.check_overlaps if check_overlaps is None else check_overlaps
        if overlaps:
            self._validate_overlaps(report, index)
        report.summary = {
            "regions": len(index),
            "polygons": sum(len(region.polygons) for region in index),
            "holes": sum(len(polygon.holes) for region in index for polygon in region.polygons),
            "vertices": sum(len(ring) for region in index for ring in region.rings),
        }
        report.add_info(
            "Dataset summary: "
            + ", ".join(f"{key}={value}" for key, value in report.summary.items())
        )
        return report

    def _load_index(self, report: ValidationReport) -> PolygonIndex | None:
        path = self.cfg.paths.dataset
        if not path.exists():
            report.add_error(f"Missing polygon dataset: {path}")
            return None
        repo = DatasetRepository(
            path,
            dataset_format=self.cfg.dataset.format,
            name_fields=self.cfg.dataset.name_fields,
        )
        try:
            index = repo.load_index()
        except DatasetError as exc:
            report.add_error(f"Invalid polygon dataset '{path}': {exc}")
            return None
        except Exception as exc:
            report.add_error(f"Failed reading polygon dataset '{path}': {exc}")
            return None
        if len(index) == 0:
            report.add_error(f"Polygon dataset has no regions: {path}")
            return None
        report.add_info(f"Loaded {len(index)} regions from {path}")
        return index

    def _validate_names(self, report: ValidationReport, index: PolygonIndex) -> None:
        counts = Counter(region.name for region in index)
        unknown = counts.pop(UNKNOWN_REGION_NAME, 0)
        if unknown:
            report.add_warning(f"{unknown} regions have no usable name and show as '{UNKNOWN_REGION_NAME}'")
        duplicates = sorted(name for name, count in counts.items() if count > 1)
        if duplicates:
            report.add_warning("Duplicate region names: " + _format_name_list(duplicates))

    def _validate_overlaps(self, report: ValidationReport, index: PolygonIndex) -> None:
        pairs = index.overlapping_bounding_boxes()
        if not pairs:
            report.add_info("No overlapping region bounding boxes found.")
            return
        report.add_warning(
            f"{len(pairs)} region pairs have overlapping bounding boxes; "
            "first match in dataset order wins: "
            + _format_name_list([f"{left}/{right}" for left, right in pairs])
        )


def format_report_lines(report: ValidationReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.ok:
        lines.append("[OK] Validation completed with no errors.")
    return lines


def _format_name_list(values: list[str], limit: int = 12) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    shown = ", ".join(values[:limit])
    return f"{shown}, ... (+{len(values) - limit} more)"
