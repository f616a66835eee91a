"""Selection session and controller coordinating picks with async enrichment."""

from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable

from .clock import Clock, format_time_at_longitude, utc_now
from .enrichment import EnrichmentCache
from .geo import DEFAULT_SHELL_RADIUS, region_segments, to_geo
from .models import (
    GeoPoint,
    ProvisionalPayload,
    Selection,
    SummaryPayload,
    TimePayload,
    Vector3,
)
from .polygon_index import PolygonIndex
from .sink import PresentationSink

_LOGGER = logging.getLogger("globepick.session")

_TIME_LOOKUP = "time"
_SUMMARY_LOOKUP = "summary"


class SelectionState(enum.Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    ENRICHING = "enriching"
    SETTLED = "settled"


class SelectionSession:
    """Application-lifetime state: the selection token and the enrichment cache.

    One instance is created per application and passed to whatever needs it.
    """

    def __init__(self, cache: EnrichmentCache, *, initial_token: int = 0) -> None:
        self.cache = cache
        self.lock = threading.RLock()
        self._token = initial_token

    @property
    def current_token(self) -> int:
        with self.lock:
            return self._token

    def next_token(self) -> int:
        with self.lock:
            self._token += 1
            return self._token

    def is_current(self, token: int) -> bool:
        with self.lock:
            return token == self._token


class SelectionController:
    """Runs the pick state machine: resolve, show provisional, enrich, settle.

    Every pick supersedes the previous one by taking a new token.  In-flight
    lookups are never aborted; their results are dropped on completion when
    the token they captured is no longer the session's live token.  The token
    check and the sink dispatch happen under the session lock, so a pick
    cannot slip in between them.
    """

    def __init__(
        self,
        session: SelectionSession,
        index: PolygonIndex,
        sink: PresentationSink,
        *,
        executor: Executor | None = None,
        clock: Clock | None = None,
        shell_radius: float = DEFAULT_SHELL_RADIUS,
        max_workers: int = 2,
    ) -> None:
        self.session = session
        self.index = index
        self.sink = sink
        self.shell_radius = shell_radius
        self._clock = clock or utc_now
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="globepick-enrich"
        )
        self._state = SelectionState.IDLE
        self._selection: Selection | None = None
        self._pending: set[str] = set()
        self._settled = threading.Condition(session.lock)

    @property
    def state(self) -> SelectionState:
        with self.session.lock:
            return self._state

    @property
    def selection(self) -> Selection | None:
        with self.session.lock:
            return self._selection

    @property
    def current_token(self) -> int:
        return self.session.current_token

    def pick(self, surface_point: Vector3) -> Selection:
        """Handle a pick on the globe surface."""
        return self._select(to_geo(surface_point), surface_point)

    def pick_geo(self, point: GeoPoint) -> Selection:
        return self._select(point, None)

    def clear(self) -> int:
        """Drop the current selection, e.g. after a click on empty space."""
        with self.session.lock:
            token = self.session.next_token()
            self._selection = None
            self._finish_idle(token)
        return token

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the current pick has no lookups outstanding."""
        with self._settled:
            return self._settled.wait_for(lambda: not self._pending, timeout)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> SelectionController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _select(self, point: GeoPoint, surface_point: Vector3 | None) -> Selection:
        with self.session.lock:
            token = self.session.next_token()
            self._state = SelectionState.RESOLVING
            region = self.index.find_region(point)
            selection = Selection(token=token, point=point, region=region, surface_point=surface_point)
            self._selection = selection
            if region is None:
                _LOGGER.debug("Pick %d at %s matched no region", token, point.label())
                self._finish_idle(token)
                return selection

            payload = ProvisionalPayload(
                token=token,
                region_name=region.name,
                point=point,
                approx_time=format_time_at_longitude(point.lon, self._clock()),
                outline=tuple(region_segments(region, self.shell_radius)),
            )
            self.sink.show_provisional(payload)
            self._pending = {_TIME_LOOKUP, _SUMMARY_LOOKUP}
            self._state = SelectionState.ENRICHING

        self._executor.submit(self._run_time_lookup, selection, region.name)
        self._executor.submit(self._run_summary_lookup, selection, region.name)
        return selection

    def _finish_idle(self, token: int) -> None:
        self._pending = set()
        self.sink.clear(token)
        self._state = SelectionState.IDLE
        self._settled.notify_all()

    def _superseded(self, token: int, lookup: str) -> bool:
        if self.session.is_current(token):
            return False
        _LOGGER.debug("Skipping %s lookup for superseded pick %d", lookup, token)
        return True

    def _run_time_lookup(self, selection: Selection, region_name: str) -> None:
        if self._superseded(selection.token, _TIME_LOOKUP):
            return
        try:
            reading = self.session.cache.time_at(selection.point, self._clock())
        except Exception:
            _LOGGER.exception("Time lookup crashed for pick %d", selection.token)
            self._complete(selection.token, _TIME_LOOKUP, None)
            return
        payload = TimePayload(
            token=selection.token,
            region_name=region_name,
            point=selection.point,
            reading=reading,
        )
        self._complete(selection.token, _TIME_LOOKUP, lambda: self.sink.show_time(payload))

    def _run_summary_lookup(self, selection: Selection, region_name: str) -> None:
        if self._superseded(selection.token, _SUMMARY_LOOKUP):
            return
        try:
            summary = self.session.cache.summary_for(region_name)
        except Exception:
            _LOGGER.exception("Summary lookup crashed for pick %d", selection.token)
            self._complete(selection.token, _SUMMARY_LOOKUP, None)
            return
        payload = SummaryPayload(token=selection.token, region_name=region_name, summary=summary)
        self._complete(selection.token, _SUMMARY_LOOKUP, lambda: self.sink.show_summary(payload))

    def _complete(self, token: int, lookup: str, dispatch: Callable[[], None] | None) -> None:
        with self.session.lock:
            if not self.session.is_current(token):
                _LOGGER.debug(
                    "Dropping %s result for superseded pick %d (current %d)",
                    lookup,
                    token,
                    self.session.current_token,
                )
                return
            try:
                if dispatch is not None:
                    dispatch()
            except Exception:
                _LOGGER.exception("Presentation sink failed to show %s for pick %d", lookup, token)
            finally:
                self._pending.discard(lookup)
                if not self._pending:
                    self._state = SelectionState.SETTLED
                    self._settled.notify_all()
