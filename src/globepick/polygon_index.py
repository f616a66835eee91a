"""Country polygon index answering point-in-region queries."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping, Sequence

from .models import BoundingBox, GeoPoint, Polygon, Region, Ring

_LOGGER = logging.getLogger("globepick.polygon_index")

_EDGE_EPSILON = 1e-12
_DEFAULT_NAME_FIELDS = ("name", "NAME", "ADMIN", "name_en")
UNKNOWN_REGION_NAME = "Unknown"


class DatasetError(ValueError):
    """Raised when the polygon dataset is structurally invalid."""


def point_in_ring(lon: float, lat: float, ring: Ring) -> bool:
    """Ray-casting test with a ray extending toward +longitude."""
    vertices = ring.vertices
    inside = False
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i]
        xj, yj = vertices[j]
        if (yi > lat) != (yj > lat):
            denominator = (yj - yi) or _EDGE_EPSILON
            if lon < (xj - xi) * (lat - yi) / denominator + xi:
                inside = not inside
        j = i
    return inside


def point_in_polygon(lon: float, lat: float, polygon: Polygon) -> bool:
    if not point_in_ring(lon, lat, polygon.outer):
        return False
    return not any(point_in_ring(lon, lat, hole) for hole in polygon.holes)


def point_in_region(lon: float, lat: float, region: Region) -> bool:
    if not region.bbox.contains(lon, lat):
        return False
    return any(point_in_polygon(lon, lat, polygon) for polygon in region.polygons)


class PolygonIndex:
    """Immutable, load-once collection of regions scanned in dataset order.

    Regions are assumed not to overlap, so the first match is the best
    match.  ``overlapping_bounding_boxes`` can flag suspicious pairs but
    nothing enforces disjointness.
    """

    def __init__(self, regions: Sequence[Region]) -> None:
        self._regions: tuple[Region, ...] = tuple(regions)
        self._by_name: dict[str, Region] = {}
        for region in self._regions:
            self._by_name.setdefault(region.name.casefold(), region)

    @classmethod
    def load(
        cls,
        dataset: Any,
        *,
        name_fields: Sequence[str] = _DEFAULT_NAME_FIELDS,
        check_overlaps: bool = False,
    ) -> PolygonIndex:
        """Build an index from a GeoJSON-like FeatureCollection mapping."""
        if not isinstance(dataset, Mapping):
            raise DatasetError("Polygon dataset must be a mapping with a 'features' list")
        features = dataset.get("features")
        if not isinstance(features, list):
            raise DatasetError("Polygon dataset is missing its 'features' list")

        regions = [
            _parse_feature(feature, idx, name_fields) for idx, feature in enumerate(features)
        ]
        index = cls(regions)
        _LOGGER.info("Loaded polygon index with %d regions", len(index))
        if check_overlaps:
            for left, right in index.overlapping_bounding_boxes():
                _LOGGER.warning(
                    "Bounding boxes of '%s' and '%s' overlap; first match in dataset order wins",
                    left,
                    right,
                )
        return index

    def find_region(self, point: GeoPoint) -> Region | None:
        for region in self._regions:
            if point_in_region(point.lon, point.lat, region):
                return region
        return None

    def get(self, name: str) -> Region | None:
        return self._by_name.get(name.casefold())

    def overlapping_bounding_boxes(self) -> list[tuple[str, str]]:
        pairs: list[tuple[str, str]] = []
        for i, left in enumerate(self._regions):
            for right in self._regions[i + 1 :]:
                if left.bbox.intersects(right.bbox):
                    pairs.append((left.name, right.name))
        return pairs

    @property
    def regions(self) -> tuple[Region, ...]:
        return self._regions

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[Region]:
        return iter(self._regions)


def _parse_feature(feature: Any, idx: int, name_fields: Sequence[str]) -> Region:
    where = f"features[{idx}]"
    if not isinstance(feature, Mapping):
        raise DatasetError(f"Expected mapping at {where}")
    properties_raw = feature.get("properties")
    properties: Mapping[str, Any] = properties_raw if isinstance(properties_raw, Mapping) else {}
    name = _region_name(properties, name_fields)

    geometry = feature.get("geometry")
    if not isinstance(geometry, Mapping):
        raise DatasetError(f"{where} ({name}) has no geometry")
    geom_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if not isinstance(geom_type, str) or not geom_type:
        raise DatasetError(f"{where} ({name}) geometry is missing its type")
    if not isinstance(coordinates, list) or not coordinates:
        raise DatasetError(f"{where} ({name}) geometry has no coordinates")

    if geom_type == "Polygon":
        polygons = (_parse_polygon(coordinates, f"{where}.geometry"),)
    elif geom_type == "MultiPolygon":
        polygons = tuple(
            _parse_polygon(poly, f"{where}.geometry[{p_idx}]")
            for p_idx, poly in enumerate(coordinates)
        )
    else:
        raise DatasetError(f"{where} ({name}) has unsupported geometry type '{geom_type}'")

    boxes = [polygon.outer.bounding_box() for polygon in polygons]
    bbox = BoundingBox(
        min_lon=min(box.min_lon for box in boxes),
        min_lat=min(box.min_lat for box in boxes),
        max_lon=max(box.max_lon for box in boxes),
        max_lat=max(box.max_lat for box in boxes),
    )
    return Region(name=name, polygons=polygons, bbox=bbox, properties=dict(properties))


def _region_name(properties: Mapping[str, Any], name_fields: Sequence[str]) -> str:
    for field_name in name_fields:
        value = properties.get(field_name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return UNKNOWN_REGION_NAME


def _parse_polygon(raw: Any, where: str) -> Polygon:
    if not isinstance(raw, list) or not raw:
        raise DatasetError(f"{where} polygon has no rings")
    rings = [_parse_ring(ring, f"{where}[{r_idx}]") for r_idx, ring in enumerate(raw)]
    return Polygon(outer=rings[0], holes=tuple(rings[1:]))


def _parse_ring(raw: Any, where: str) -> Ring:
    if not isinstance(raw, list) or not raw:
        raise DatasetError(f"{where} ring is empty")
    vertices: list[tuple[float, float]] = []
    for v_idx, pair in enumerate(raw):
        if not isinstance(pair, (list, tuple)) or len(pair) < 2:
            raise DatasetError(f"{where}[{v_idx}] is not a (lon, lat) pair")
        lon, lat = pair[0], pair[1]
        if isinstance(lon, bool) or isinstance(lat, bool):
            raise DatasetError(f"{where}[{v_idx}] has non-numeric coordinates")
        if not isinstance(lon, (int, float)) or not isinstance(lat, (int, float)):
            raise DatasetError(f"{where}[{v_idx}] has non-numeric coordinates")
        if not -180.0 <= lon <= 180.0 or not -90.0 <= lat <= 90.0:
            raise DatasetError(f"{where}[{v_idx}] is out of range: ({lon}, {lat})")
        vertices.append((float(lon), float(lat)))

    # Closure is implied; drop a repeated closing vertex.
    if len(vertices) > 1 and vertices[0] == vertices[-1]:
        vertices.pop()
    if len(set(vertices)) < 3:
        raise DatasetError(f"{where} ring needs at least 3 distinct vertices")
    return Ring(vertices=tuple(vertices))
