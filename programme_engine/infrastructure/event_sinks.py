"""Event sink implementations and the fail-safe dispatcher."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from typing import Iterable, List, Optional

import requests

from programme_engine.domain.events import EventSink, ProgrammeEvent
from programme_engine.infrastructure import log_utils


class EventDeliveryError(RuntimeError):
    """Raised when a sink could not deliver an event."""


class LoggingEventSink(EventSink):
    """Writes each event to the engine log."""

    def emit(self, event: ProgrammeEvent) -> None:
        log_utils.info(
            f"{event.event_type.value} enrollment={event.enrollment_id} payload={dict(event.payload)}",
            tag="EVENT",
        )


class RecordingEventSink(EventSink):
    """Keeps emitted events in memory."""

    def __init__(self) -> None:
        self.events: List[ProgrammeEvent] = []

    def emit(self, event: ProgrammeEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> List[ProgrammeEvent]:
        return [event for event in self.events if event.event_type == event_type]


class WebhookEventSink(EventSink):
    """POSTs events as JSON to an HTTP endpoint (analytics / CRM hooks).

    With an ``executor`` the request runs in the background and ``emit``
    returns immediately; delivery failures are then only logged.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 2.0,
        session: Optional[requests.Session] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.executor = executor

    def _post(self, event: ProgrammeEvent) -> None:
        try:
            response = self.session.post(self.url, json=event.as_dict(), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise EventDeliveryError(
                f"Failed to deliver {event.event_type.value} to {self.url}: {exc}"
            ) from exc

    def emit(self, event: ProgrammeEvent) -> None:
        if self.executor is None:
            self._post(event)
            return
        future = self.executor.submit(self._post, event)
        future.add_done_callback(_log_background_failure)


def _log_background_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        log_utils.warn(f"Background event delivery failed: {exc}", tag="EVENT")


class CompositeEventSink(EventSink):
    """Fans an event out to several sinks; one failure does not stop the rest."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self.sinks = list(sinks)

    def emit(self, event: ProgrammeEvent) -> None:
        failures: List[str] = []
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception as exc:
                failures.append(f"{sink.__class__.__name__}: {exc}")
        if failures:
            raise EventDeliveryError("; ".join(failures))


class EventDispatcher:
    """Fire-and-forget front for an :class:`EventSink`.

    Sink failures are logged and swallowed so they can never fail or roll
    back the operation that produced the event.
    """

    def __init__(self, sink: Optional[EventSink] = None) -> None:
        self.sink = sink

    def dispatch(self, event: ProgrammeEvent) -> bool:
        if self.sink is None:
            return False
        try:
            self.sink.emit(event)
        except Exception as exc:
            log_utils.error(
                f"Event sink failed for {event.event_type.value} on {event.enrollment_id}: {exc}",
                tag="EVENT",
            )
            return False
        return True
