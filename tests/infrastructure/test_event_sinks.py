from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

from programme_engine.domain.events import EventSink, EventType, ProgrammeEvent
from programme_engine.infrastructure.event_sinks import (
    CompositeEventSink,
    EventDeliveryError,
    EventDispatcher,
    LoggingEventSink,
    RecordingEventSink,
    WebhookEventSink,
)


def _event(**payload) -> ProgrammeEvent:
    return ProgrammeEvent(
        event_type=EventType.DAY_COMPLETED,
        enrollment_id="u1:p1",
        user_id="u1",
        programme_id="p1",
        occurred_at=datetime(2024, 1, 1, 9, 0),
        payload=payload,
    )


class FailingSink(EventSink):
    def emit(self, event):
        raise RuntimeError("boom")


def test_webhook_posts_event_json():
    session = MagicMock()
    sink = WebhookEventSink("https://hooks.example.com/events", timeout=1.5, session=session)

    sink.emit(_event(day_number=1))

    session.post.assert_called_once()
    _, kwargs = session.post.call_args
    assert kwargs["timeout"] == 1.5
    assert kwargs["json"]["event_type"] == "day_completed"
    assert kwargs["json"]["payload"] == {"day_number": 1}
    assert kwargs["json"]["occurred_at"] == "2024-01-01T09:00:00"


def test_webhook_wraps_http_failures():
    session = MagicMock()
    session.post.return_value.raise_for_status.side_effect = requests.HTTPError("502 Bad Gateway")
    sink = WebhookEventSink("https://hooks.example.com/events", session=session)

    with pytest.raises(EventDeliveryError):
        sink.emit(_event())


def test_webhook_background_delivery_does_not_raise():
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("refused")
    with ThreadPoolExecutor(max_workers=1) as executor:
        sink = WebhookEventSink("https://hooks.example.com/events", session=session, executor=executor)
        sink.emit(_event())
    session.post.assert_called_once()


def test_composite_delivers_to_all_and_reports_failures():
    recorder = RecordingEventSink()
    composite = CompositeEventSink([FailingSink(), recorder, LoggingEventSink()])

    with pytest.raises(EventDeliveryError):
        composite.emit(_event())
    assert len(recorder.events) == 1


def test_dispatcher_swallows_sink_failures():
    assert EventDispatcher(FailingSink()).dispatch(_event()) is False
    assert EventDispatcher().dispatch(_event()) is False

    recorder = RecordingEventSink()
    assert EventDispatcher(recorder).dispatch(_event()) is True
    assert recorder.of_type(EventType.DAY_COMPLETED)
