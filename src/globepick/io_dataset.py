"""Polygon dataset loading interfaces."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Sequence

from .polygon_index import DatasetError, PolygonIndex

_LOGGER = logging.getLogger("globepick.io_dataset")

DATASET_FORMATS = ("geojson", "natural_earth")


def _first_existing_column(columns: Iterable[str], candidates: Sequence[str]) -> str | None:
    existing = {col.lower(): col for col in columns}
    for candidate in candidates:
        match = existing.get(candidate.lower())
        if match:
            return match
    return None


class DatasetRepository:
    """Reads country polygons from disk into a :class:`PolygonIndex`.

    GeoJSON FeatureCollections are read directly.  Natural Earth shapefiles
    (or anything else GeoPandas can open) are converted feature by feature
    through the ``__geo_interface__`` of each geometry.
    """

    NAME_COLUMNS = ("NAME", "ADMIN", "NAME_EN", "NAME_LONG", "SOVEREIGNT", "name")

    def __init__(
        self,
        path: Path,
        *,
        dataset_format: str = "geojson",
        name_fields: Sequence[str] = ("name", "NAME", "ADMIN", "name_en"),
    ) -> None:
        if dataset_format not in DATASET_FORMATS:
            raise ValueError(
                f"Unknown dataset format '{dataset_format}'; expected one of: "
                + ", ".join(DATASET_FORMATS)
            )
        self.path = path
        self.dataset_format = dataset_format
        self.name_fields = tuple(name_fields)

    def load_raw(self) -> dict[str, Any]:
        if not self.path.exists():
            raise FileNotFoundError(f"Polygon dataset not found: {self.path}")
        if self.dataset_format == "natural_earth":
            return self._load_natural_earth()
        return self._load_geojson()

    def load_index(self, *, check_overlaps: bool = False) -> PolygonIndex:
        raw = self.load_raw()
        # Natural Earth rows are normalized onto a plain "name" property.
        name_fields = ("name",) if self.dataset_format == "natural_earth" else self.name_fields
        return PolygonIndex.load(raw, name_fields=name_fields, check_overlaps=check_overlaps)

    def _load_geojson(self) -> dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except json.JSONDecodeError as exc:
            raise DatasetError(f"Polygon dataset {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise DatasetError(f"Expected a GeoJSON object in {self.path}")
        return raw

    def _load_natural_earth(self) -> dict[str, Any]:
        gpd = self._require_geopandas()
        frame = gpd.read_file(self.path)
        if frame.crs is not None and frame.crs.to_epsg() not in (None, 4326):
            _LOGGER.info("Reprojecting %s from %s to EPSG:4326", self.path, frame.crs)
            frame = frame.to_crs(epsg=4326)

        name_col = _first_existing_column(frame.columns, (*self.name_fields, *self.NAME_COLUMNS))
        if name_col is None:
            cols = ", ".join(str(c) for c in frame.columns)
            raise DatasetError(
                f"Could not detect a region name column in {self.path}. Available columns: {cols}"
            )

        features: list[dict[str, Any]] = []
        for row in frame.itertuples(index=False):
            row_dict = row._asdict()
            geometry = row_dict.get("geometry")
            name_val = row_dict.get(name_col)
            features.append(
                {
                    "type": "Feature",
                    "properties": {"name": str(name_val).strip() if name_val is not None else ""},
                    "geometry": _geo_interface(geometry),
                }
            )
        _LOGGER.info("Read %d features from %s (name column %s)", len(features), self.path, name_col)
        return {"type": "FeatureCollection", "features": features}

    @staticmethod
    def _require_geopandas() -> Any:
        try:
            import geopandas as gpd
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "geopandas is required for Natural Earth data loading; "
                "install the 'natural-earth' extra"
            ) from exc
        return gpd


def _geo_interface(geometry: Any) -> dict[str, Any] | None:
    if geometry is None:
        return None
    interface = getattr(geometry, "__geo_interface__", None)
    if not isinstance(interface, dict):
        return None
    # Shapely emits nested tuples; the index expects JSON-style lists.
    return json.loads(json.dumps(interface))
