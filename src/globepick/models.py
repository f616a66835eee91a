"""Domain models shared across the pick and enrichment pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

Vector3 = tuple[float, float, float]
Segment = tuple[Vector3, Vector3]


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """Geographic coordinate in degrees."""

    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"latitude must be between -90 and 90: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"longitude must be between -180 and 180: {self.lon}")

    def rounded_key(self, precision: int) -> str:
        return f"{self.lat:.{precision}f},{self.lon:.{precision}f}"

    def label(self) -> str:
        return f"Latitude {self.lat:.2f}, Longitude {self.lon:.2f}"


@dataclass(frozen=True, slots=True)
class BoundingBox:
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def contains(self, lon: float, lat: float) -> bool:
        return self.min_lon <= lon <= self.max_lon and self.min_lat <= lat <= self.max_lat

    def intersects(self, other: BoundingBox) -> bool:
        return not (
            other.min_lon > self.max_lon
            or other.max_lon < self.min_lon
            or other.min_lat > self.max_lat
            or other.max_lat < self.min_lat
        )


@dataclass(frozen=True, slots=True)
class Ring:
    """Closed ring of (lon, lat) vertices; the closing edge is implied."""

    vertices: tuple[tuple[float, float], ...]

    def __len__(self) -> int:
        return len(self.vertices)

    def __iter__(self) -> Iterator[tuple[float, float]]:
        return iter(self.vertices)

    def bounding_box(self) -> BoundingBox:
        lons = [lon for lon, _ in self.vertices]
        lats = [lat for _, lat in self.vertices]
        return BoundingBox(min(lons), min(lats), max(lons), max(lats))


@dataclass(frozen=True, slots=True)
class Polygon:
    outer: Ring
    holes: tuple[Ring, ...] = ()

    @property
    def rings(self) -> tuple[Ring, ...]:
        return (self.outer, *self.holes)


@dataclass(frozen=True, slots=True)
class Region:
    """Named area made of one or more disjoint polygons."""

    name: str
    polygons: tuple[Polygon, ...]
    bbox: BoundingBox
    properties: Mapping[str, Any] = field(default_factory=dict)

    @property
    def rings(self) -> tuple[Ring, ...]:
        return tuple(ring for polygon in self.polygons for ring in polygon.rings)


@dataclass(frozen=True, slots=True)
class Selection:
    """The live pick: one generation of the selection token."""

    token: int
    point: GeoPoint
    region: Region | None
    surface_point: Vector3 | None = None

    @property
    def region_name(self) -> str | None:
        return self.region.name if self.region is not None else None


@dataclass(frozen=True, slots=True)
class TimeReading:
    """Local wall-clock time at a point, exact (zone-based) or approximate."""

    time_label: str
    zone: str | None
    approximate: bool

    @property
    def zone_label(self) -> str:
        return f"({self.zone})" if self.zone and not self.approximate else "(approx)"


@dataclass(frozen=True, slots=True)
class SummaryText:
    text: str
    available: bool


@dataclass(frozen=True, slots=True)
class ProvisionalPayload:
    token: int
    region_name: str
    point: GeoPoint
    approx_time: str
    outline: tuple[Segment, ...] = ()

    def to_text(self) -> str:
        return f"{self.region_name} | Time calculating... | {self.point.label()}"


@dataclass(frozen=True, slots=True)
class TimePayload:
    token: int
    region_name: str
    point: GeoPoint
    reading: TimeReading

    def to_text(self) -> str:
        return (
            f"{self.region_name} | Time {self.reading.time_label} {self.reading.zone_label} | "
            f"{self.point.label()}"
        )


@dataclass(frozen=True, slots=True)
class SummaryPayload:
    token: int
    region_name: str
    summary: SummaryText

    def to_text(self) -> str:
        return f"{self.region_name}: {self.summary.text}"
