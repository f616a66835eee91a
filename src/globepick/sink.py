"""Presentation sinks receiving display payloads from the selection controller."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Protocol, Union

from .models import ProvisionalPayload, SummaryPayload, TimePayload

_LOGGER = logging.getLogger("globepick.sink")


class PresentationSink(Protocol):
    def show_provisional(self, payload: ProvisionalPayload) -> None: ...

    def show_time(self, payload: TimePayload) -> None: ...

    def show_summary(self, payload: SummaryPayload) -> None: ...

    def clear(self, token: int) -> None: ...


@dataclass(frozen=True, slots=True)
class Cleared:
    token: int


Event = Union[ProvisionalPayload, TimePayload, SummaryPayload, Cleared]


class LoggingSink:
    """Writes each display update to the log; used by the CLI."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _LOGGER

    def show_provisional(self, payload: ProvisionalPayload) -> None:
        self._logger.info(
            "[pick %d] %s (approx %s, %d outline segments)",
            payload.token,
            payload.to_text(),
            payload.approx_time,
            len(payload.outline),
        )

    def show_time(self, payload: TimePayload) -> None:
        self._logger.info("[pick %d] %s", payload.token, payload.to_text())

    def show_summary(self, payload: SummaryPayload) -> None:
        self._logger.info("[pick %d] %s", payload.token, payload.to_text())

    def clear(self, token: int) -> None:
        self._logger.info("[pick %d] No country at this location; selection cleared.", token)


@dataclass(slots=True)
class RecordingSink:
    """Keeps every received event in arrival order."""

    events: list[Event] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def show_provisional(self, payload: ProvisionalPayload) -> None:
        self._record(payload)

    def show_time(self, payload: TimePayload) -> None:
        self._record(payload)

    def show_summary(self, payload: SummaryPayload) -> None:
        self._record(payload)

    def clear(self, token: int) -> None:
        self._record(Cleared(token))

    def tokens(self) -> list[int]:
        with self._lock:
            return [event.token for event in self.events]

    def of_type(self, kind: type) -> list[Event]:
        with self._lock:
            return [event for event in self.events if isinstance(event, kind)]

    def _record(self, event: Event) -> None:
        with self._lock:
            self.events.append(event)
