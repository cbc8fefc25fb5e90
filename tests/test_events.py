"""
Unit tests for widget usage event ingestion.
"""
import hashlib

import pytest

from chatguus.config import settings
from chatguus.events import UsageEventService, anonymous_id, hash_fingerprint, sanitize_event_data
from chatguus.exceptions import ValidationError
from chatguus.models import UsageEventRequest


@pytest.fixture
def service(store):
    return UsageEventService(store)


def event(**fields):
    payload = {
        "event": "widget_opened",
        "data": {"button": "<b>Chat</b> geopend"},
        "user": {"fingerprint": "abc123def456ghi789", "session": "sess-1", "isReturning": True},
        "context": {"url": "https://cupolaxs.nl/?token=secret&page=2", "userAgent": "Mozilla/5.0"},
    }
    payload.update(fields)
    return UsageEventRequest.model_validate(payload)


class TestFingerprint:

    def test_fingerprint_is_hashed(self):
        expected = "fp_" + hashlib.sha256(b"abc123def456ghi789").hexdigest()[:12]
        assert hash_fingerprint("abc123def456ghi789") == expected

    def test_anonymous_id_is_stable_and_salted(self, monkeypatch):
        first = anonymous_id("abc123def456ghi789")
        assert first == anonymous_id("abc123def456ghi789")
        assert first.startswith("anon_") and len(first) == 21

        monkeypatch.setattr(settings, "analytics_salt", "other_salt")
        assert anonymous_id("abc123def456ghi789") != first

    def test_missing_fingerprint(self):
        assert hash_fingerprint(None) is None
        assert anonymous_id("") is None


class TestEventData:

    def test_sensitive_keys_dropped_at_any_depth(self):
        cleaned = sanitize_event_data({
            "password": "x", "apiKey": "k", "step": 2,
            "form": {"token": "t", "field": "email"},
        })
        assert cleaned == {"step": 2, "form": {"field": "email"}}

    def test_non_object_becomes_empty(self):
        assert sanitize_event_data(["a"]) == {}
        assert sanitize_event_data(None) == {}


class TestTrack:
    """Validation, processing and storage."""

    async def test_event_stored_without_raw_fingerprint(self, service, store):
        result = await service.track(event())
        assert result["success"] is True
        assert result["eventId"].startswith("evt_")

        stored = await store.analytics_events.find("widget_opened")
        assert len(stored) == 1
        doc = stored[0]
        assert doc["_id"] == result["eventId"]
        assert doc["user"]["fingerprint"] == hash_fingerprint("abc123def456ghi789")
        assert doc["user"]["isReturning"] is True
        assert "abc123def456ghi789" not in str(doc)
        assert doc["data"] == {"button": "Chat geopend"}
        assert doc["context"]["url"] == "https://cupolaxs.nl/?page=2"
        assert doc["context"]["timestamp"]

    async def test_event_and_context_required(self, service, store):
        with pytest.raises(ValidationError) as exc:
            await service.track(event(context=None))
        assert exc.value.detail == "Invalid analytics payload"

        with pytest.raises(ValidationError):
            await service.track(event(event=""))
        assert await store.analytics_events.find() == []

    def test_long_user_agent_truncated(self, service):
        doc = service.process(event(context={"userAgent": "x" * 300}))
        assert doc["context"]["userAgent"] == "x" * 200 + "..."
        assert doc["context"]["url"] is None
