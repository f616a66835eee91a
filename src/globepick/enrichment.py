"""Remote time-zone and summary lookups with a memoizing fallback cache."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, TypeVar
from urllib.parse import quote

import requests

from .clock import Clock, format_time_at_longitude, format_time_at_zone, utc_now
from .config import EnrichmentConfig
from .models import GeoPoint, SummaryText, TimeReading


NO_SUMMARY_TEXT = "No summary available."
UNAVAILABLE_SUMMARY = "Summary unavailable."

_LOGGER = logging.getLogger("globepick.enrichment")

T = TypeVar("T")


class LookupUnavailable(RuntimeError):
    """A remote enrichment lookup produced no usable value."""


class TimeZoneUnavailable(LookupUnavailable):
    pass


class SummaryUnavailable(LookupUnavailable):
    pass


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Which HTTP statuses a service may recover from, and how long to wait."""

    statuses: frozenset[int]
    max_retries: int
    backoff_s: float
    max_delay_s: float = 30.0

    def should_retry(self, status_code: int, attempt: int) -> bool:
        return status_code in self.statuses and attempt < self.max_retries

    def delay_s(self, attempt: int, retry_after: str | None = None) -> float:
        # Server hints win over the backoff curve, up to the cap.
        hinted_s = _parse_retry_after_seconds(retry_after)
        return min(max(self.backoff_s * (2**attempt), hinted_s), self.max_delay_s)


class _HttpClient:
    """Shared session plumbing; subclasses pick the statuses worth retrying."""

    retry_statuses: frozenset[int] = frozenset({429, 500, 502, 503, 504})
    service = "remote service"

    def __init__(self, cfg: EnrichmentConfig, session: requests.Session | None = None) -> None:
        self.cfg = cfg
        self._session = session if session is not None else requests.Session()
        self._session.headers.update({"User-Agent": cfg.user_agent})
        self.retry_policy = RetryPolicy(
            statuses=self.retry_statuses,
            max_retries=max(int(cfg.max_retries), 0),
            backoff_s=max(float(cfg.retry_backoff_s), 0.01),
        )

    def _get(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> requests.Response:
        attempt = 0
        while True:
            response = self._session.get(
                url, params=params, headers=headers, timeout=self.cfg.request_timeout_s
            )
            if not self.retry_policy.should_retry(response.status_code, attempt):
                response.raise_for_status()
                return response
            wait_s = self.retry_policy.delay_s(attempt, response.headers.get("Retry-After"))
            attempt += 1
            _LOGGER.warning(
                "%s answered %s; retry %d/%d in %.1fs",
                self.service,
                response.status_code,
                attempt,
                self.retry_policy.max_retries,
                wait_s,
            )
            response.close()
            time.sleep(wait_s)


class TimeZoneClient(_HttpClient):
    """Resolves an IANA zone for a coordinate via Open-Meteo (`timezone=auto`)."""

    service = "Open-Meteo"

    def lookup(self, lat: float, lon: float) -> str:
        params = {
            "latitude": f"{lat:.4f}",
            "longitude": f"{lon:.4f}",
            "current": "temperature_2m",
            "timezone": "auto",
        }
        try:
            payload = self._get(self.cfg.time_zone_url, params=params).json()
        except (requests.RequestException, ValueError) as exc:
            raise TimeZoneUnavailable(f"Time zone lookup failed for ({lat:.4f}, {lon:.4f}): {exc}") from exc
        zone = payload.get("timezone") if isinstance(payload, dict) else None
        if not isinstance(zone, str) or not zone.strip():
            raise TimeZoneUnavailable(f"No time zone returned for ({lat:.4f}, {lon:.4f})")
        return zone.strip()


class SummaryClient(_HttpClient):
    """Fetches the lead paragraph of a Wikipedia article by title."""

    # The REST gateway signals overload with 429 or 503 only.
    retry_statuses = frozenset({429, 503})
    service = "Wikipedia"

    def lookup(self, name: str) -> str:
        url = self.cfg.summary_url + quote(name, safe="")
        try:
            response = self._get(url, headers={"Accept": "application/json"})
            payload = response.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status == 404:
                raise SummaryUnavailable(f"No Wikipedia article titled '{name}'") from exc
            raise SummaryUnavailable(f"Summary fetch failed for '{name}': {exc}") from exc
        except (requests.RequestException, ValueError) as exc:
            raise SummaryUnavailable(f"Summary fetch failed for '{name}': {exc}") from exc
        extract = payload.get("extract") if isinstance(payload, dict) else None
        if isinstance(extract, str) and extract.strip():
            return extract.strip()
        return NO_SUMMARY_TEXT


@dataclass(slots=True)
class LookupStats:
    hits: int = 0
    misses: int = 0
    failures: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "failures": self.failures}


@dataclass(slots=True)
class _Memo:
    values: dict[str, Any] = field(default_factory=dict)
    inflight: dict[str, Future[Any]] = field(default_factory=dict)
    stats: LookupStats = field(default_factory=LookupStats)


class EnrichmentCache:
    """Two append-only memoized lookups: zone by rounded coordinate, summary by name.

    Only successful lookups are stored, so a failed key is retried on the
    next pick.  Concurrent misses on the same key share one remote call.
    Failures never escape: callers always receive a value, falling back to
    an approximate time or an "unavailable" marker.
    """

    def __init__(
        self,
        time_zone_client: Any,
        summary_client: Any,
        *,
        precision: int = 2,
        clock: Clock | None = None,
    ) -> None:
        self._time_zone_client = time_zone_client
        self._summary_client = summary_client
        self.precision = precision
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self._zones = _Memo()
        self._summaries = _Memo()

    @classmethod
    def from_config(cls, cfg: EnrichmentConfig, *, clock: Clock | None = None) -> EnrichmentCache:
        return cls(
            TimeZoneClient(cfg),
            SummaryClient(cfg),
            precision=cfg.coordinate_precision,
            clock=clock,
        )

    def time_key(self, point: GeoPoint) -> str:
        return point.rounded_key(self.precision)

    def time_at(self, point: GeoPoint, when: datetime | None = None) -> TimeReading:
        now = when if when is not None else self._clock()
        try:
            zone = self._memoized(
                self._zones,
                self.time_key(point),
                lambda: self._time_zone_client.lookup(point.lat, point.lon),
            )
        except LookupUnavailable as exc:
            _LOGGER.warning("%s; using longitude estimate", exc)
            return approximate_reading(point, now)

        label = format_time_at_zone(zone, now)
        if label is None:
            _LOGGER.warning("Unknown time zone '%s'; using longitude estimate", zone)
            return TimeReading(
                time_label=format_time_at_longitude(point.lon, now), zone=zone, approximate=True
            )
        return TimeReading(time_label=label, zone=zone, approximate=False)

    def summary_for(self, name: str) -> SummaryText:
        try:
            text = self._memoized(self._summaries, name, lambda: self._summary_client.lookup(name))
        except LookupUnavailable as exc:
            _LOGGER.warning("%s", exc)
            return SummaryText(text=UNAVAILABLE_SUMMARY, available=False)
        return SummaryText(text=text, available=True)

    def cached_zone(self, point: GeoPoint) -> str | None:
        with self._lock:
            return self._zones.values.get(self.time_key(point))

    def cached_summary(self, name: str) -> str | None:
        with self._lock:
            return self._summaries.values.get(name)

    def stats(self) -> dict[str, dict[str, int]]:
        with self._lock:
            return {
                "time_zone": self._zones.stats.to_dict(),
                "summary": self._summaries.stats.to_dict(),
            }

    def _memoized(self, memo: _Memo, key: str, fetch: Callable[[], T]) -> T:
        with self._lock:
            if key in memo.values:
                memo.stats.hits += 1
                return memo.values[key]
            pending = memo.inflight.get(key)
            owner = pending is None
            if pending is None:
                pending = Future()
                memo.inflight[key] = pending
                memo.stats.misses += 1

        if not owner:
            return pending.result()

        try:
            value = fetch()
        except LookupUnavailable as exc:
            with self._lock:
                memo.inflight.pop(key, None)
                memo.stats.failures += 1
            pending.set_exception(exc)
            raise
        except Exception as exc:
            with self._lock:
                memo.inflight.pop(key, None)
                memo.stats.failures += 1
            wrapped = LookupUnavailable(f"Lookup for '{key}' failed: {exc}")
            pending.set_exception(wrapped)
            raise wrapped from exc

        with self._lock:
            memo.values[key] = value
            memo.inflight.pop(key, None)
        pending.set_result(value)
        return value


def approximate_reading(point: GeoPoint, when: datetime) -> TimeReading:
    return TimeReading(
        time_label=format_time_at_longitude(point.lon, when), zone=None, approximate=True
    )


def _parse_retry_after_seconds(raw: str | None) -> float:
    if raw is None:
        return 0.0
    value = raw.strip()
    if not value:
        return 0.0
    try:
        parsed = float(value)
    except ValueError:
        return 0.0
    return max(parsed, 0.0)
