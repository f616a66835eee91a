"""Mapping between globe surface vectors and geographic coordinates.

The globe uses a fixed spherical convention: +Y is the north pole and
longitude is measured around the XZ plane from the -X axis.  Border and
highlight geometry is drawn on a shell slightly above the unit sphere so
it does not z-fight with the surface texture.
"""

from __future__ import annotations

import math
from typing import Iterable

from .models import GeoPoint, Region, Ring, Segment, Vector3

DEFAULT_SHELL_RADIUS = 1.002


def to_geo(point: Vector3) -> GeoPoint:
    """Convert a non-zero surface vector into latitude/longitude."""
    x, y, z = (float(c) for c in point)
    length = math.sqrt(x * x + y * y + z * z)
    if length == 0.0:
        raise ValueError("Cannot map the zero vector to a geographic point")
    x, y, z = x / length, y / length, z / length

    lat = math.degrees(math.asin(max(-1.0, min(1.0, y))))
    lon = math.degrees(math.atan2(z, -x)) - 180.0
    if lon < -180.0:
        lon += 360.0
    if lon > 180.0:
        lon -= 360.0
    return GeoPoint(lat=lat, lon=lon)


def to_point(geo: GeoPoint, radius: float = DEFAULT_SHELL_RADIUS) -> Vector3:
    """Inverse of :func:`to_geo`, scaled to ``radius``."""
    phi = math.radians(90.0 - geo.lat)
    theta = math.radians(geo.lon + 180.0)
    x = -radius * math.sin(phi) * math.cos(theta)
    y = radius * math.cos(phi)
    z = radius * math.sin(phi) * math.sin(theta)
    return (x, y, z)


def _vertex_point(lon: float, lat: float, radius: float) -> Vector3:
    # Dataset vertices may sit a hair outside the valid range after float noise.
    return to_point(
        GeoPoint(lat=max(-90.0, min(90.0, lat)), lon=max(-180.0, min(180.0, lon))),
        radius,
    )


def ring_segments(ring: Ring, radius: float = DEFAULT_SHELL_RADIUS) -> list[Segment]:
    """Line segments outlining ``ring``, including the implied closing edge."""
    points = [_vertex_point(lon, lat, radius) for lon, lat in ring]
    if len(points) < 2:
        return []
    return [(points[i], points[(i + 1) % len(points)]) for i in range(len(points))]


def region_segments(region: Region, radius: float = DEFAULT_SHELL_RADIUS) -> list[Segment]:
    return segments_for_rings(region.rings, radius)


def segments_for_rings(rings: Iterable[Ring], radius: float = DEFAULT_SHELL_RADIUS) -> list[Segment]:
    segments: list[Segment] = []
    for ring in rings:
        segments.extend(ring_segments(ring, radius))
    return segments
