"""
Unit tests for the Redis document store.
"""
from datetime import timedelta

from chatguus.database import similarity, utcnow
from chatguus.models import MissingAnswerStatus


class TestSimilarity:

    def test_identical(self):
        assert similarity("waar kan ik parkeren", "Waar kan ik parkeren") == 1.0

    def test_disjoint(self):
        assert similarity("openingstijden", "parkeren") == 0.0

    def test_empty(self):
        assert similarity("", "") == 0.0

    def test_non_string_values(self):
        assert similarity(42, "42") == 1.0
        assert similarity(None, "parkeren") == 0.0

    async def test_stored_numeric_question_does_not_block_merging(self, store):
        await store.missing_answers.collection.insert({"userQuestion": 42, "tenantId": "koepel"})
        _, merged, _ = await store.missing_answers.upsert_similar(
            {"userQuestion": "Waar kan ik parkeren", "tenantId": "koepel"}
        )
        assert merged is False


class TestCollections:

    async def test_sessions_append_in_order(self, store):
        await store.sessions.append("s1", "koepel", [{"content": "hoi", "sender": "user"}])
        await store.sessions.append("s1", "koepel", [{"content": "hallo!", "sender": "ai"}],
                                    metadata={"url": "https://cupolaxs.nl"})
        session = await store.sessions.get("s1")
        assert [m["content"] for m in session["messages"]] == ["hoi", "hallo!"]
        assert session["metadata"]["url"] == "https://cupolaxs.nl"

    async def test_find_filters_by_time_window(self, store):
        old = (utcnow() - timedelta(days=40)).isoformat()
        await store.satisfaction.create({"ratingId": "r-old", "tenantId": "koepel", "rating": 2, "createdAt": old})
        await store.satisfaction.create({"ratingId": "r-new", "tenantId": "koepel", "rating": 5})

        recent = await store.satisfaction.find("koepel", since=utcnow() - timedelta(days=30))
        assert [r["_id"] for r in recent] == ["r-new"]
        assert len(await store.satisfaction.find()) == 2

    async def test_ai_ratings_paginate_newest_first(self, store):
        for i in range(5):
            created = (utcnow() - timedelta(minutes=10 - i)).isoformat()
            await store.ai_ratings.create({"n": i, "tenantId": "koepel", "createdAt": created})

        page, total = await store.ai_ratings.find({"tenantId": "koepel"}, page=1, limit=2)
        assert total == 5
        assert [d["n"] for d in page] == [4, 3]

        page, _ = await store.ai_ratings.find({"tenantId": "all"}, page=3, limit=2)
        assert [d["n"] for d in page] == [0]


class TestMissingAnswers:
    """Near-duplicate questions merge within a tenant."""

    async def test_similar_question_merges(self, store):
        first = await store.missing_answers.upsert_similar(
            {"userQuestion": "Waar kan ik parkeren bij de Koepel", "tenantId": "koepel"}
        )
        second = await store.missing_answers.upsert_similar(
            {"userQuestion": "waar kan ik parkeren bij de koepel", "tenantId": "koepel"}
        )
        assert first[1] is False
        assert second == (first[0], True, 2)

        stored = await store.missing_answers.get(first[0])
        assert stored["frequency"] == 2
        assert stored["status"] == "needs_review"

    async def test_other_tenant_does_not_merge(self, store):
        await store.missing_answers.upsert_similar({"userQuestion": "parkeren", "tenantId": "koepel"})
        _, merged, frequency = await store.missing_answers.upsert_similar(
            {"userQuestion": "parkeren", "tenantId": "demo-company"}
        )
        assert merged is False
        assert frequency == 1

    async def test_update_status(self, store):
        missing_id, _, _ = await store.missing_answers.upsert_similar({"userQuestion": "wifi code?"})
        assert await store.missing_answers.update_status(missing_id, MissingAnswerStatus.RESOLVED, "in FAQ")
        assert (await store.missing_answers.get(missing_id))["status"] == "resolved"
        assert not await store.missing_answers.update_status("ghost", MissingAnswerStatus.IGNORED)

    async def test_health_check(self, store):
        health = await store.health_check()
        assert health["status"] == "healthy"
