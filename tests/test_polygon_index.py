from __future__ import annotations

import json
import logging

import pytest

from globepick.io_dataset import DatasetRepository
from globepick.models import GeoPoint, Ring
from globepick.polygon_index import DatasetError, PolygonIndex, point_in_ring

from conftest import SAMPLE_DATASET, collection, feature, rect


@pytest.mark.parametrize(
    ("lat", "lon"),
    [(5.0, 5.0), (0.5, 0.5), (9.5, 9.5), (1.0, 9.0), (9.0, 1.0)],
)
def test_points_inside_rectangle_resolve(lat, lon):
    index = PolygonIndex.load(collection(feature("Square", "Polygon", [rect(0.0, 0.0, 10.0, 10.0)])))
    region = index.find_region(GeoPoint(lat=lat, lon=lon))
    assert region is not None
    assert region.name == "Square"


@pytest.mark.parametrize(
    ("lat", "lon"),
    [(-1.0, 5.0), (11.0, 5.0), (5.0, -1.0), (5.0, 11.0), (50.0, 120.0)],
)
def test_points_outside_rectangle_miss(lat, lon):
    index = PolygonIndex.load(collection(feature("Square", "Polygon", [rect(0.0, 0.0, 10.0, 10.0)])))
    assert index.find_region(GeoPoint(lat=lat, lon=lon)) is None


def test_hole_excludes_points():
    index = PolygonIndex.load(
        collection(
            feature("Ring", "Polygon", [rect(0.0, 0.0, 10.0, 10.0), rect(4.0, 4.0, 6.0, 6.0)])
        )
    )
    assert index.find_region(GeoPoint(lat=5.0, lon=5.0)) is None
    assert index.find_region(GeoPoint(lat=2.0, lon=2.0)).name == "Ring"
    assert index.find_region(GeoPoint(lat=5.0, lon=8.0)).name == "Ring"


def test_multipolygon_parts_and_gap():
    index = PolygonIndex.load(
        collection(
            feature(
                "Twins",
                "MultiPolygon",
                [[rect(0.0, 0.0, 4.0, 4.0)], [rect(10.0, 0.0, 14.0, 4.0)]],
            )
        )
    )
    assert index.find_region(GeoPoint(lat=2.0, lon=2.0)).name == "Twins"
    assert index.find_region(GeoPoint(lat=2.0, lon=12.0)).name == "Twins"
    assert index.find_region(GeoPoint(lat=2.0, lon=7.0)) is None


def test_first_region_in_dataset_order_wins():
    index = PolygonIndex.load(
        collection(
            feature("First", "Polygon", [rect(0.0, 0.0, 10.0, 10.0)]),
            feature("Second", "Polygon", [rect(5.0, 5.0, 15.0, 15.0)]),
        )
    )
    assert index.find_region(GeoPoint(lat=7.0, lon=7.0)).name == "First"
    assert index.find_region(GeoPoint(lat=12.0, lon=12.0)).name == "Second"


def test_hole_region_falls_through_to_enclave():
    index = PolygonIndex.load(
        collection(
            feature("Outer", "Polygon", [rect(0.0, 0.0, 10.0, 10.0), rect(4.0, 4.0, 6.0, 6.0)]),
            feature("Enclave", "Polygon", [rect(4.0, 4.0, 6.0, 6.0)]),
        )
    )
    assert index.find_region(GeoPoint(lat=5.0, lon=5.0)).name == "Enclave"


def test_triangle_ring():
    ring = Ring(vertices=((0.0, 0.0), (10.0, 0.0), (5.0, 10.0)))
    assert point_in_ring(5.0, 5.0, ring)
    assert not point_in_ring(1.0, 8.0, ring)
    assert not point_in_ring(9.0, 8.0, ring)


def test_horizontal_edge_at_query_latitude_does_not_divide_by_zero():
    ring = Ring(vertices=((0.0, 0.0), (10.0, 0.0), (10.0, 5.0), (5.0, 5.0), (5.0, 10.0), (0.0, 10.0)))
    assert isinstance(point_in_ring(2.0, 5.0, ring), bool)
    assert point_in_ring(2.0, 7.0, ring)
    assert not point_in_ring(8.0, 7.0, ring)


def test_closing_vertex_is_not_stored_twice():
    closed = rect(0.0, 0.0, 10.0, 10.0) + [[0.0, 0.0]]
    index = PolygonIndex.load(collection(feature("Square", "Polygon", [closed])))
    assert len(index.regions[0].polygons[0].outer) == 4


def test_missing_name_becomes_unknown():
    index = PolygonIndex.load(
        {"features": [{"properties": {}, "geometry": {"type": "Polygon", "coordinates": [rect(0, 0, 1, 1)]}}]}
    )
    assert index.regions[0].name == "Unknown"


def test_alternate_name_fields():
    raw = {
        "features": [
            {
                "properties": {"ADMIN": "Atlantis"},
                "geometry": {"type": "Polygon", "coordinates": [rect(0, 0, 1, 1)]},
            }
        ]
    }
    assert PolygonIndex.load(raw).regions[0].name == "Atlantis"


@pytest.mark.parametrize(
    "dataset",
    [
        [],
        {"type": "FeatureCollection"},
        collection({"properties": {"name": "NoGeometry"}}),
        collection({"properties": {"name": "NoType"}, "geometry": {"coordinates": [rect(0, 0, 1, 1)]}}),
        collection(feature("Line", "LineString", [[0, 0], [1, 1]])),
        collection(feature("Empty", "Polygon", [])),
        collection(feature("EmptyRing", "Polygon", [[]])),
        collection(feature("EmptyPart", "MultiPolygon", [[]])),
        collection(feature("Degenerate", "Polygon", [[[0, 0], [1, 1], [0, 0]]])),
        collection(feature("Text", "Polygon", [[["a", 0], [1, 0], [1, 1]]])),
        collection(feature("OutOfRange", "Polygon", [[[0, 0], [200, 0], [0, 1]]])),
    ],
)
def test_invalid_datasets_raise(dataset):
    with pytest.raises(DatasetError):
        PolygonIndex.load(dataset)


def test_dataset_error_is_value_error():
    assert issubclass(DatasetError, ValueError)


def test_overlapping_bounding_boxes(caplog):
    dataset = collection(
        feature("A", "Polygon", [rect(0.0, 0.0, 10.0, 10.0)]),
        feature("B", "Polygon", [rect(9.0, 9.0, 20.0, 20.0)]),
        feature("C", "Polygon", [rect(50.0, 50.0, 60.0, 60.0)]),
    )
    with caplog.at_level(logging.WARNING, logger="globepick.polygon_index"):
        index = PolygonIndex.load(dataset, check_overlaps=True)
    assert index.overlapping_bounding_boxes() == [("A", "B")]
    assert any("'A' and 'B'" in record.getMessage() for record in caplog.records)


def test_get_is_case_insensitive(europe_index):
    assert europe_index.get("france").name == "France"
    assert europe_index.get("Atlantis") is None
    assert len(europe_index) == 2
    assert [region.name for region in europe_index] == ["France", "Italy"]


def test_sample_dataset_from_disk():
    index = DatasetRepository(SAMPLE_DATASET).load_index()
    assert index.find_region(GeoPoint(lat=48.85, lon=2.35)).name == "France"
    assert index.find_region(GeoPoint(lat=42.0, lon=9.0)).name == "France"
    assert index.find_region(GeoPoint(lat=37.6, lon=14.0)).name == "Italy"
    assert index.find_region(GeoPoint(lat=-29.5, lon=28.2)).name == "Lesotho"
    assert index.find_region(GeoPoint(lat=-26.2, lon=28.0)).name == "South Africa"
    assert index.find_region(GeoPoint(lat=-16.1, lon=-179.9)).name == "Fiji"
    assert index.find_region(GeoPoint(lat=-17.8, lon=178.0)).name == "Fiji"
    assert index.find_region(GeoPoint(lat=30.0, lon=-40.0)) is None


def test_repository_rejects_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        DatasetRepository(tmp_path / "x.json", dataset_format="kml")


def test_repository_reports_bad_json(tmp_path):
    path = tmp_path / "broken.geo.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(DatasetError):
        DatasetRepository(path).load_index()


def test_repository_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        DatasetRepository(tmp_path / "missing.geo.json").load_index()


def test_repository_reads_custom_name_field(tmp_path):
    path = tmp_path / "custom.geo.json"
    raw = {
        "features": [
            {
                "properties": {"label": "Utopia"},
                "geometry": {"type": "Polygon", "coordinates": [rect(0, 0, 1, 1)]},
            }
        ]
    }
    path.write_text(json.dumps(raw), encoding="utf-8")
    index = DatasetRepository(path, name_fields=("label",)).load_index()
    assert index.regions[0].name == "Utopia"
