from __future__ import annotations

import threading
from concurrent.futures import Executor, Future
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from globepick.enrichment import EnrichmentCache, SummaryUnavailable, TimeZoneUnavailable
from globepick.polygon_index import PolygonIndex
from globepick.session import SelectionController, SelectionSession
from globepick.sink import RecordingSink

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
SAMPLE_DATASET = Path(__file__).resolve().parents[1] / "data" / "countries.sample.geo.json"


def rect(min_lon: float, min_lat: float, max_lon: float, max_lat: float) -> list[list[float]]:
    return [[min_lon, min_lat], [max_lon, min_lat], [max_lon, max_lat], [min_lon, max_lat]]


def feature(name: str, geom_type: str, coordinates: Any) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {"name": name},
        "geometry": {"type": geom_type, "coordinates": coordinates},
    }


def collection(*features: dict[str, Any]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


class FakeTimeZoneClient:
    def __init__(self, zone: str | None = "Europe/Paris") -> None:
        self.zone = zone
        self.calls: list[tuple[float, float]] = []
        self.fail = False
        self.gate: threading.Event | None = None

    def lookup(self, lat: float, lon: float) -> str:
        self.calls.append((lat, lon))
        if self.gate is not None:
            self.gate.wait(5)
        if self.fail:
            raise TimeZoneUnavailable("Time zone lookup failed (503)")
        if self.zone is None:
            raise TimeZoneUnavailable("No time zone returned")
        return self.zone


class FakeSummaryClient:
    def __init__(self, texts: dict[str, str] | None = None) -> None:
        self.texts = texts or {}
        self.calls: list[str] = []
        self.fail = False

    def lookup(self, name: str) -> str:
        self.calls.append(name)
        if self.fail:
            raise SummaryUnavailable(f"Summary fetch failed for '{name}'")
        return self.texts.get(name, f"{name} is a country.")


class ManualExecutor(Executor):
    """Queues submitted work until the test decides to run it."""

    def __init__(self) -> None:
        self.queue: list[tuple[Future[Any], Callable[..., Any], tuple[Any, ...], dict[str, Any]]] = []

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future[Any]:
        future: Future[Any] = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_next(self) -> None:
        future, fn, args, kwargs = self.queue.pop(0)
        future.set_result(fn(*args, **kwargs))

    def run_all(self) -> None:
        while self.queue:
            self.run_next()

    def run_for_token(self, token: int) -> None:
        keep = []
        for item in self.queue:
            future, fn, args, kwargs = item
            if args and getattr(args[0], "token", None) == token:
                future.set_result(fn(*args, **kwargs))
            else:
                keep.append(item)
        self.queue = keep

    def run_last(self) -> None:
        future, fn, args, kwargs = self.queue.pop()
        future.set_result(fn(*args, **kwargs))


@pytest.fixture
def europe_dataset() -> dict[str, Any]:
    return collection(
        feature("France", "Polygon", [rect(-5.0, 42.0, 8.0, 51.0)]),
        feature("Italy", "Polygon", [rect(8.5, 37.0, 18.5, 46.5)]),
    )


@pytest.fixture
def europe_index(europe_dataset: dict[str, Any]) -> PolygonIndex:
    return PolygonIndex.load(europe_dataset)


@pytest.fixture
def tz_client() -> FakeTimeZoneClient:
    return FakeTimeZoneClient()


@pytest.fixture
def summary_client() -> FakeSummaryClient:
    return FakeSummaryClient({"France": "France is a country in Western Europe."})


@pytest.fixture
def cache(tz_client: FakeTimeZoneClient, summary_client: FakeSummaryClient) -> EnrichmentCache:
    return EnrichmentCache(tz_client, summary_client, precision=2, clock=lambda: FIXED_NOW)


@pytest.fixture
def executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def controller(
    cache: EnrichmentCache,
    europe_index: PolygonIndex,
    sink: RecordingSink,
    executor: ManualExecutor,
) -> SelectionController:
    return SelectionController(
        SelectionSession(cache),
        europe_index,
        sink,
        executor=executor,
        clock=lambda: FIXED_NOW,
    )
