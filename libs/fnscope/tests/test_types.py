"""Tests for fnscope types."""

from datetime import datetime, timedelta, timezone

import pytest

from fnscope.types import (
    Event,
    InvalidEventError,
    Request,
    Response,
    TriggerType,
    parse_timestamp,
)


class TestTriggerType:
    def test_trigger_type_values(self):
        assert TriggerType.HTTP.value == "http"
        assert TriggerType.EVENT.value == "event"


class TestParseTimestamp:
    def test_zulu_suffix(self):
        parsed = parse_timestamp("2024-05-01T12:00:00Z")
        assert parsed == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_offset(self):
        parsed = parse_timestamp("2024-05-01T14:00:00+02:00")
        assert parsed == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        parsed = parse_timestamp("2024-05-01T12:00:00")
        assert parsed.tzinfo == timezone.utc

    def test_invalid(self):
        with pytest.raises(InvalidEventError):
            parse_timestamp("yesterday")

    def test_not_a_string(self):
        with pytest.raises(InvalidEventError):
            parse_timestamp(None)


class TestEvent:
    def test_age_ms(self):
        event = Event(id="1", timestamp="2024-05-01T12:00:00Z")
        now = datetime(2024, 5, 1, 12, 0, 5, tzinfo=timezone.utc)
        assert event.age_ms(now) == 5000

    def test_age_ms_defaults_to_now(self):
        timestamp = (datetime.now(timezone.utc) - timedelta(seconds=15)).isoformat()
        event = Event(id="1", timestamp=timestamp)
        assert 15000 <= event.age_ms() < 16000

    def test_invalid_timestamp_rejected(self):
        with pytest.raises(InvalidEventError):
            Event(id="1", timestamp="not a time")

    def test_from_dict(self):
        event = Event.from_dict({
            "id": "evt-1",
            "timestamp": "2024-05-01T12:00:00Z",
            "type": "google.pubsub.topic.publish",
            "data": {"message": "hi"},
        })
        assert event.id == "evt-1"
        assert event.type == "google.pubsub.topic.publish"
        assert event.data == {"message": "hi"}
        assert event.time.year == 2024

    def test_from_dict_cloudevents_time(self):
        event = Event.from_dict({"id": "evt-2", "time": "2024-05-01T12:00:00Z"})
        assert event.timestamp == "2024-05-01T12:00:00Z"

    def test_from_dict_missing_timestamp(self):
        with pytest.raises(InvalidEventError):
            Event.from_dict({"id": "evt-3"})

    def test_from_dict_not_a_dict(self):
        with pytest.raises(InvalidEventError):
            Event.from_dict(["evt-4"])


class TestResponse:
    def test_text(self):
        response = Response.text("Data: abcd")
        assert response.body == "Data: abcd"
        assert response.status_code == 200

    def test_text_with_status(self):
        response = Response.text("Error: boom", status_code=500)
        assert response.status_code == 500

    def test_error(self):
        response = Response.error("bad", status_code=400)
        assert response.body == {"error": "bad"}
        assert response.status_code == 400


class TestRequest:
    def test_json_body(self):
        request = Request("POST", "/", {}, {}, {"a": 1})
        assert request.json == {"a": 1}

    def test_non_json_body(self):
        request = Request("POST", "/", {}, {}, b"raw")
        assert request.json is None
