from __future__ import annotations

from datetime import datetime, timezone

import pytest

from globepick.clock import format_time_at_longitude, format_time_at_zone

NOON_UTC = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("lon", "expected"),
    [(0.0, "12:00"), (15.0, "13:00"), (-15.0, "11:00"), (180.0, "00:00"), (-180.0, "00:00"), (7.5, "12:30")],
)
def test_longitude_estimate(lon, expected):
    assert format_time_at_longitude(lon, NOON_UTC) == expected


def test_naive_datetimes_are_treated_as_utc():
    assert format_time_at_longitude(0.0, datetime(2024, 1, 15, 12, 0)) == "12:00"


def test_zone_time():
    assert format_time_at_zone("Asia/Tokyo", NOON_UTC) == "21:00"
    assert format_time_at_zone("UTC", NOON_UTC) == "12:00"


@pytest.mark.parametrize("zone", ["Nowhere/Special", "Mars/Olympus_Mons"])
def test_unknown_zone_returns_none(zone):
    assert format_time_at_zone(zone, NOON_UTC) is None
