from unittest.mock import MagicMock

from airctl.events import Event, EventEmitter


def test_event_payload_prefers_document():
    event = Event(raw=b"<plist/>", content_type="application/x-apple-plist", document={"state": "playing"})
    assert event.payload == {"state": "playing"}
    assert event.state == "playing"


def test_event_payload_falls_back_to_raw():
    event = Event(raw=b"hello", content_type="text/plain")
    assert event.payload == b"hello"
    assert event.state is None


def test_event_state_requires_dict_document():
    assert Event(raw=b"", document=["state"]).state is None


def test_handlers_called_in_subscription_order():
    emitter = EventEmitter()
    calls = []
    emitter.subscribe(lambda e: calls.append("first"))
    emitter.subscribe(lambda e: calls.append("second"))
    emitter.emit(Event(raw=b""))
    assert calls == ["first", "second"]


def test_unsubscribe():
    emitter = EventEmitter()
    handler = MagicMock()
    emitter.subscribe(handler)
    emitter.unsubscribe(handler)
    emitter.unsubscribe(handler)  # should not raise
    emitter.emit(Event(raw=b""))
    handler.assert_not_called()
    assert len(emitter) == 0


def test_failing_handler_does_not_stop_others():
    emitter = EventEmitter()
    handler = MagicMock()
    emitter.subscribe(MagicMock(side_effect=RuntimeError("boom")))
    emitter.subscribe(handler)
    event = Event(raw=b"x")
    emitter.emit(event)
    handler.assert_called_once_with(event)
