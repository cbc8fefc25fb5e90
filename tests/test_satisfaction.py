"""
Unit tests for satisfaction rating analysis, storage and analytics.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from chatguus.config import settings
from chatguus.exceptions import ValidationError
from chatguus.models import SatisfactionRequest
from chatguus.satisfaction import (
    SatisfactionService,
    analyze_rating,
    sanitize_url,
    sanitize_user_agent,
)


def rating_request(rating, **extra):
    return SatisfactionRequest.model_validate({"sessionId": "s1", "rating": rating, "tenantId": "koepel", **extra})


# =============================================================================
# Analysis helpers
# =============================================================================

class TestAnalyzeRating:

    def test_high_rating_is_positive(self):
        analysis = analyze_rating(5, "Great help, thanks!")
        assert analysis.sentiment == "positive"
        assert analysis.action_required is False

    def test_low_rating_needs_action(self):
        analysis = analyze_rating(2)
        assert analysis.sentiment == "negative"
        assert analysis.priority == "high"
        assert analysis.action_required is True

    def test_middle_rating_is_neutral(self):
        analysis = analyze_rating(3, "it was ok")
        assert analysis.sentiment == "neutral"
        assert analysis.priority == "normal"
        assert analysis.keywords == []

    def test_urgent_feedback_escalates(self):
        analysis = analyze_rating(1, "this is urgent, terrible service")
        assert analysis.priority == "urgent"
        assert "urgent" in analysis.keywords

    def test_action_category_flags_neutral_rating(self):
        assert analyze_rating(3, categories=["slow"]).action_required is True


class TestSanitizers:

    def test_sensitive_query_params_removed(self):
        assert sanitize_url("https://cupolaxs.nl/page?token=abc&lang=nl") == "https://cupolaxs.nl/page?lang=nl"

    def test_relative_or_script_url_dropped(self):
        assert sanitize_url("javascript:alert(1)") is None
        assert sanitize_url("/relative") is None

    def test_long_user_agent_truncated(self):
        agent = sanitize_user_agent("x" * 300)
        assert len(agent) == 203
        assert agent.endswith("...")


# =============================================================================
# Service
# =============================================================================

class TestSatisfactionService:

    async def test_missing_fields_rejected(self, store):
        service = SatisfactionService(store)
        with pytest.raises(ValidationError) as exc:
            service.process(SatisfactionRequest(rating=4))
        assert exc.value.detail == "Missing required fields: rating, sessionId"

    async def test_out_of_range_rejected(self, store):
        with pytest.raises(ValidationError):
            SatisfactionService(store).process(rating_request(6))

    async def test_submit_stores_rating(self, store):
        response = await SatisfactionService(store).submit(rating_request(5, feedback="Top!"))
        assert response.success is True
        assert response.rating_id.startswith("rating_")
        assert "excellent" in response.message

        stored = await store.satisfaction.find("koepel")
        assert stored[0]["ratingId"] == response.rating_id
        assert stored[0]["analysis"]["sentiment"] == "positive"

    async def test_slack_failure_does_not_fail_submission(self, store, monkeypatch):
        monkeypatch.setattr(settings, "slack_webhook_url", "https://hooks.slack.test/services/x")
        slack = MagicMock()
        slack.notify_low_rating = AsyncMock(side_effect=RuntimeError("webhook down"))

        response = await SatisfactionService(store, slack=slack).submit(rating_request(1))

        assert response.success is True
        slack.notify_low_rating.assert_awaited_once()
        assert len(await store.satisfaction.find("koepel")) == 1

    async def test_analytics_empty(self, store):
        analytics = await SatisfactionService(store).analytics("koepel", "7d")
        assert analytics["summary"]["totalRatings"] == 0
        assert analytics["metadata"]["dataSource"] == "empty"
        assert analytics["metadata"]["period"] == "7d"

    async def test_analytics_live(self, store):
        service = SatisfactionService(store)
        for score in (5, 4, 1):
            await service.submit(rating_request(score))
        await service.submit(rating_request(5, tenantId="demo-company"))

        analytics = await service.analytics("koepel", "bogus")
        summary = analytics["summary"]
        assert summary["totalRatings"] == 3
        assert summary["averageRating"] == 3.3
        assert summary["satisfactionRate"] == 67
        assert summary["nps"] == 33
        assert analytics["distribution"] == {"5": 1, "4": 1, "3": 0, "2": 0, "1": 1}
        assert analytics["metadata"]["period"] == "30d"
        assert analytics["segmentation"]["byTenant"]["koepel"]["total"] == 3
        assert len(analytics["trends"]["daily"]) == 1
