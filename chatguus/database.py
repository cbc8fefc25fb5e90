"""Document store on Redis.

Each collection is a hash of JSON documents (``<prefix>:<name>``) plus a
sorted set (``<prefix>:<name>:by_time``) scoring document ids by creation
time, which is what the time-window queries of the analytics run on.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import redis.asyncio as redis
import structlog

from .metrics import record_missing_answer
from .models import MissingAnswerStatus
from .utils.redis_pool import execute_redis_command

logger = structlog.get_logger(__name__)

SIMILARITY_THRESHOLD = 0.8

Document = Dict[str, Any]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO string or datetime to an aware datetime; None when unparseable"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def similarity(a: str, b: str) -> float:
    """Word overlap of two texts relative to the longer one"""
    # Stored questions are not guaranteed to be strings
    words_a = set(str(a or "").lower().split())
    words_b = set(str(b or "").lower().split())
    longest = max(len(words_a), len(words_b))
    if longest == 0:
        return 0.0
    return len(words_a & words_b) / longest


class DocumentCollection:
    """JSON documents in a Redis hash with a creation-time index"""

    def __init__(self, client: redis.Redis, name: str, prefix: str = "chatguus"):
        self.client = client
        self.name = name
        self.hash_key = f"{prefix}:{name}"
        self.index_key = f"{prefix}:{name}:by_time"

    async def insert(self, doc: Document, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        now = utcnow()
        created_at = parse_timestamp(doc.get("createdAt")) or now

        stored = {
            **doc,
            "_id": doc_id,
            "createdAt": created_at.isoformat(),
            "updatedAt": now.isoformat(),
        }
        await execute_redis_command(self.client, "hset", self.hash_key, doc_id, json.dumps(stored, default=str))
        await execute_redis_command(self.client, "zadd", self.index_key, {doc_id: created_at.timestamp()})
        return doc_id

    async def get(self, doc_id: str) -> Optional[Document]:
        raw = await execute_redis_command(self.client, "hget", self.hash_key, doc_id)
        return json.loads(raw) if raw else None

    async def replace(self, doc_id: str, doc: Document) -> None:
        """Overwrite a document in place; its position in the time index is kept"""
        stored = {**doc, "_id": doc_id, "updatedAt": utcnow().isoformat()}
        await execute_redis_command(self.client, "hset", self.hash_key, doc_id, json.dumps(stored, default=str))

    async def find(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        predicate: Optional[Callable[[Document], bool]] = None,
        newest_first: bool = True,
    ) -> List[Document]:
        low = since.timestamp() if since else "-inf"
        high = until.timestamp() if until else "+inf"

        if newest_first:
            ids = await execute_redis_command(self.client, "zrevrangebyscore", self.index_key, high, low)
        else:
            ids = await execute_redis_command(self.client, "zrangebyscore", self.index_key, low, high)
        if not ids:
            return []

        raws = await execute_redis_command(self.client, "hmget", self.hash_key, ids)
        docs = [json.loads(raw) for raw in raws if raw]
        if predicate is not None:
            docs = [doc for doc in docs if predicate(doc)]
        return docs

    async def count(self) -> int:
        return await execute_redis_command(self.client, "hlen", self.hash_key)

    async def ping(self) -> bool:
        return bool(await execute_redis_command(self.client, "ping"))


def matches(filters: Dict[str, Any]) -> Callable[[Document], bool]:
    """Equality predicate over the given fields; empty and "all" values are ignored"""
    active = {key: value for key, value in filters.items() if value not in (None, "", "all")}

    def predicate(doc: Document) -> bool:
        return all(doc.get(key) == value for key, value in active.items())

    return predicate


class SessionRepository:
    """Chat sessions, upserted by session id with messages appended in order"""

    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def append(
        self,
        session_id: str,
        tenant_id: str,
        messages: List[Document],
        metadata: Optional[Document] = None,
    ) -> Document:
        now = utcnow().isoformat()
        session = await self.collection.get(session_id)

        if session is None:
            session = {
                "sessionId": session_id,
                "tenantId": tenant_id,
                "messages": list(messages),
                "metadata": metadata or {},
                "lastActivity": now,
            }
            await self.collection.insert(session, doc_id=session_id)
            return session

        session["messages"] = session.get("messages", []) + list(messages)
        session["metadata"] = {**session.get("metadata", {}), **(metadata or {})}
        session["lastActivity"] = now
        await self.collection.replace(session_id, session)
        return session

    async def get(self, session_id: str) -> Optional[Document]:
        return await self.collection.get(session_id)


class SatisfactionRepository:
    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def create(self, rating: Document) -> str:
        return await self.collection.insert(rating, doc_id=rating.get("ratingId"))

    async def find(self, tenant_id: Optional[str] = None, since: Optional[datetime] = None) -> List[Document]:
        return await self.collection.find(since=since, predicate=matches({"tenantId": tenant_id}))


class AIRatingRepository:
    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def create(self, rating: Document) -> str:
        return await self.collection.insert(rating)

    async def all(self, filters: Optional[Dict[str, Any]] = None, since: Optional[datetime] = None) -> List[Document]:
        return await self.collection.find(since=since, predicate=matches(filters or {}))

    async def find(
        self,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[Document], int]:
        """One page of ratings, newest first, plus the total match count"""
        docs = await self.all(filters)
        page = max(page, 1)
        start = (page - 1) * limit
        return docs[start:start + limit], len(docs)


class MissingAnswerRepository:
    """Questions the assistant could not answer well, merged when near-duplicate"""

    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def upsert_similar(self, record: Document) -> Tuple[str, bool, int]:
        """Store a record or merge it into a similar one of the same tenant.

        Returns (id, merged, frequency).
        """
        question = record.get("userQuestion", "")
        tenant_id = record.get("tenantId")

        candidates = await self.collection.find(predicate=lambda doc: doc.get("tenantId") == tenant_id)
        for existing in candidates:
            if similarity(existing.get("userQuestion", ""), question) >= SIMILARITY_THRESHOLD:
                existing["frequency"] = existing.get("frequency", 1) + 1
                existing["lastRating"] = record.get("rating")
                await self.collection.replace(existing["_id"], existing)
                record_missing_answer(True)
                logger.info("Missing answer merged",
                            missing_answer_id=existing["_id"],
                            tenant=tenant_id,
                            frequency=existing["frequency"])
                return existing["_id"], True, existing["frequency"]

        doc = {
            "status": MissingAnswerStatus.NEEDS_REVIEW.value,
            **record,
            "frequency": 1,
        }
        doc_id = await self.collection.insert(doc)
        record_missing_answer(False)
        return doc_id, False, 1

    async def find(self, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        return await self.collection.find(predicate=matches(filters or {}))

    async def get(self, doc_id: str) -> Optional[Document]:
        return await self.collection.get(doc_id)

    async def update_status(self, doc_id: str, status: MissingAnswerStatus, notes: str = "") -> bool:
        doc = await self.collection.get(doc_id)
        if doc is None:
            return False
        doc["status"] = status.value
        doc["notes"] = notes
        await self.collection.replace(doc_id, doc)
        return True


class AnalyticsEventRepository:
    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def create(self, event: Document) -> str:
        return await self.collection.insert(event, doc_id=event.get("id"))

    async def find(self, event: Optional[str] = None, since: Optional[datetime] = None) -> List[Document]:
        return await self.collection.find(since=since, predicate=matches({"event": event}))


class DocumentStore:
    """All repositories over one Redis client"""

    def __init__(self, client: redis.Redis, prefix: str = "chatguus"):
        self.client = client
        self.sessions = SessionRepository(DocumentCollection(client, "chat_sessions", prefix))
        self.satisfaction = SatisfactionRepository(DocumentCollection(client, "satisfaction_ratings", prefix))
        self.ai_ratings = AIRatingRepository(DocumentCollection(client, "ai_ratings", prefix))
        self.missing_answers = MissingAnswerRepository(DocumentCollection(client, "missing_answers", prefix))
        self.analytics_events = AnalyticsEventRepository(DocumentCollection(client, "analytics_events", prefix))

    async def health_check(self) -> Dict[str, Any]:
        try:
            await execute_redis_command(self.client, "ping")
            return {"status": "healthy", "timestamp": utcnow().isoformat()}
        except Exception as e:
            logger.error("Document store health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e), "timestamp": utcnow().isoformat()}
