"""AI self-rating analytics: storage, missing answers and the dashboard"""

import json
import math
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import pydantic
import structlog

from .cache import TTLCache
from .database import DocumentStore, utcnow
from .exceptions import NotFoundError, ValidationError
from .models import AIRatingScores, MissingAnswerStatus, Priority
from .self_rating import SelfRater, missing_answer_priority

logger = structlog.get_logger(__name__)

CRITERIA = ["overall", "accuracy", "helpfulness", "completeness", "clarity", "relevance"]
PRIORITY_ORDER = {Priority.HIGH.value: 3, Priority.MEDIUM.value: 2, Priority.LOW.value: 1}

TREND_DAYS = 30
DASHBOARD_LIST_SIZE = 20
TOP_QUESTIONS = 10


def require_text(data: Dict[str, Any], *fields: str) -> None:
    """Reject present-but-non-string values for free-text fields"""
    bad = [field for field in fields if data.get(field) is not None and not isinstance(data[field], str)]
    if bad:
        raise ValidationError(f"Fields must be strings: {', '.join(bad)}", errors=bad)


def _round(value: Any, digits: int = 2) -> float:
    """Round a pandas/numpy scalar to a plain float, NaN becoming 0"""
    value = float(value)
    return 0.0 if math.isnan(value) else round(value, digits)


class AIAnalyticsService:
    """Operations behind the ``/ai-analytics`` action endpoint"""

    def __init__(self, store: DocumentStore, cache: TTLCache, rater: Optional[SelfRater] = None):
        self.store = store
        self.cache = cache
        self.rater = rater or SelfRater()

    # --- Writes --------------------------------------------------------------

    async def store_ai_rating(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(data.get("rating"), dict):
            raise ValidationError("rating is required")

        require_text(data, "userQuestion", "aiResponse")
        try:
            scores = AIRatingScores.model_validate(data["rating"])
        except pydantic.ValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ValidationError("Invalid rating scores", errors=errors)

        doc = {
            **data,
            "timestamp": data.get("timestamp") or utcnow().isoformat(),
            "context": data.get("context") or {},
            "rating": scores.dump(),
            "category": scores.category,
        }
        rating_id = await self.store.ai_ratings.create(doc)
        self.cache.invalidate()

        if doc.get("userQuestion") and self.rater.needs_missing_answer(scores):
            await self.store_missing_answer({
                "timestamp": doc["timestamp"],
                "userQuestion": doc.get("userQuestion", ""),
                "aiResponse": doc.get("aiResponse", ""),
                "category": scores.category,
                "priority": missing_answer_priority(scores.confidence, scores.helpfulness).value,
                "tenantId": doc.get("tenantId"),
                "sessionId": doc.get("sessionId"),
                "rating": scores.dump(),
            })

        logger.info("AI rating stored", rating_id=rating_id, tenant=doc.get("tenantId"),
                    overall=scores.overall)
        return {"success": True, "ratingId": rating_id, "message": "AI rating stored successfully"}

    async def store_missing_answer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("userQuestion"):
            raise ValidationError("userQuestion is required")
        require_text(data, "userQuestion", "aiResponse")

        record = {
            **data,
            "timestamp": data.get("timestamp") or utcnow().isoformat(),
            "category": data.get("category") or "unknown",
            "priority": data.get("priority") or Priority.MEDIUM.value,
            "status": data.get("status") or MissingAnswerStatus.NEEDS_REVIEW.value,
            "rating": data.get("rating"),
        }
        missing_id, merged, frequency = await self.store.missing_answers.upsert_similar(record)
        self.cache.invalidate()

        return {
            "success": True,
            "missingAnswerId": missing_id,
            "merged": merged,
            "frequency": frequency,
            "message": "Missing answer stored successfully",
        }

    async def rate_interaction(self, question: str, reply: str, context: Dict[str, Any]) -> Dict[str, Any]:
        """Self-rate one chat turn and store the result"""
        scores = self.rater.rate(question, reply, context)
        return await self.store_ai_rating({
            "sessionId": context.get("sessionId"),
            "tenantId": context.get("tenantId"),
            "userQuestion": question,
            "aiResponse": reply,
            "rating": scores.dump(),
            "context": context,
        })

    async def update_missing_answer_status(self, missing_id: Optional[str], status: Optional[str],
                                           notes: str = "") -> Dict[str, Any]:
        try:
            new_status = MissingAnswerStatus(status)
        except ValueError:
            valid = ", ".join(s.value for s in MissingAnswerStatus)
            raise ValidationError(f"Invalid status. Valid statuses: {valid}")

        if not missing_id or not await self.store.missing_answers.update_status(missing_id, new_status, notes or ""):
            raise NotFoundError("Missing answer not found")

        self.cache.invalidate()
        logger.info("Missing answer status updated", missing_answer_id=missing_id, status=new_status.value)
        return {"success": True, "message": "Missing answer status updated successfully"}

    # --- Reads ---------------------------------------------------------------

    async def get_ai_ratings(self, tenant_id: Optional[str] = None, category: Optional[str] = None,
                             page: int = 1, limit: int = 50) -> Dict[str, Any]:
        page = max(page, 1)
        limit = max(limit, 1)
        ratings, total = await self.store.ai_ratings.find(
            {"tenantId": tenant_id, "category": category}, page=page, limit=limit
        )
        return {
            "ratings": ratings,
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
        }

    async def get_missing_answers(self, tenant_id: Optional[str] = None, priority: Optional[str] = None,
                                  status: Optional[str] = None, category: Optional[str] = None) -> Dict[str, Any]:
        answers = await self.store.missing_answers.find({
            "tenantId": tenant_id,
            "priority": priority,
            "status": status,
            "category": category,
        })
        answers = sort_missing_answers(answers)

        return {
            "missingAnswers": answers,
            "total": len(answers),
            "summary": {
                "highPriority": sum(1 for a in answers if a.get("priority") == "high"),
                "mediumPriority": sum(1 for a in answers if a.get("priority") == "medium"),
                "lowPriority": sum(1 for a in answers if a.get("priority") == "low"),
                "needsReview": sum(1 for a in answers if a.get("status") == "needs_review"),
            },
        }

    async def get_dashboard_data(self, tenant_id: Optional[str] = None) -> Dict[str, Any]:
        """Dashboard aggregate, cached per filter for the cache TTL"""
        key = f"dashboard:{tenant_id or 'all'}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        dashboard = await self._build_dashboard(tenant_id)
        self.cache.set(key, dashboard)
        return dashboard

    async def _build_dashboard(self, tenant_id: Optional[str]) -> Dict[str, Any]:
        filters = {"tenantId": tenant_id}
        ratings = await self.store.ai_ratings.all(filters)
        missing = sort_missing_answers(await self.store.missing_answers.find(filters))
        satisfaction = await self.store.satisfaction.find(tenant_id)

        ai_summary = summarize_ai_ratings(ratings)
        satisfaction_summary = summarize_satisfaction(satisfaction)

        return {
            "summary": {
                "totalRatings": ai_summary["total"],
                "averageAIRating": ai_summary["averages"]["overall"],
                "averageConfidence": ai_summary["averages"]["confidence"],
                "userSatisfactionRate": satisfaction_summary["satisfactionRate"],
                "missingAnswersCount": len(missing),
            },
            "aiRatings": ai_summary,
            "missingAnswers": {
                "total": len(missing),
                "highPriority": sum(1 for a in missing if a.get("priority") == "high"),
                "mediumPriority": sum(1 for a in missing if a.get("priority") == "medium"),
                "lowPriority": sum(1 for a in missing if a.get("priority") == "low"),
                "list": missing[:DASHBOARD_LIST_SIZE],
                "categories": missing_answer_categories(missing),
                "topQuestions": top_questions(missing),
            },
            "satisfaction": satisfaction_summary,
            "filters": {"tenantId": tenant_id or "all"},
            "lastUpdated": utcnow().isoformat(),
        }

    async def export_data(self, export_format: str = "json",
                          tenant_id: Optional[str] = None) -> Tuple[str, str, str]:
        """Export body, media type and file name"""
        filters = {"tenantId": tenant_id}
        ratings = await self.store.ai_ratings.all(filters)

        if export_format == "csv":
            frame = ratings_frame(ratings, extra_columns=True)
            return frame.to_csv(index=False), "text/csv", "chatguus-analytics-export.csv"

        missing = await self.store.missing_answers.find(filters)
        body = {
            "aiRatings": ratings,
            "missingAnswers": missing,
            "analytics": await self.get_dashboard_data(tenant_id),
            "exportedAt": utcnow().isoformat(),
            "totalRecords": len(ratings) + len(missing),
        }
        return json.dumps(body, indent=2, default=str), "application/json", "chatguus-analytics-export.json"

    async def health_check(self) -> Dict[str, Any]:
        database = await self.store.health_check()
        return {
            "status": database["status"],
            "database": database,
            "timestamp": utcnow().isoformat(),
        }


def sort_missing_answers(answers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Highest priority first, then most frequent"""
    return sorted(
        answers,
        key=lambda a: (PRIORITY_ORDER.get(a.get("priority"), 0), a.get("frequency", 1)),
        reverse=True,
    )


def ratings_frame(ratings: List[Dict[str, Any]], extra_columns: bool = False) -> pd.DataFrame:
    rows = []
    for doc in ratings:
        scores = doc.get("rating") or {}
        row = {
            "timestamp": doc.get("timestamp") or doc.get("createdAt"),
            "category": scores.get("category", "general"),
            "confidence": scores.get("confidence", 0.0),
        }
        row.update({name: scores.get(name, 0) for name in CRITERIA})
        if extra_columns:
            row.update({
                "id": doc.get("_id"),
                "sessionId": doc.get("sessionId"),
                "tenantId": doc.get("tenantId"),
                "userQuestion": doc.get("userQuestion"),
                "aiResponse": doc.get("aiResponse"),
            })
        rows.append(row)

    columns = ["timestamp", "category", "confidence"] + CRITERIA
    if extra_columns:
        columns = ["id", "sessionId", "tenantId"] + columns + ["userQuestion", "aiResponse"]
    frame = pd.DataFrame(rows, columns=columns)
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True, errors="coerce")
    return frame


def summarize_ai_ratings(ratings: List[Dict[str, Any]]) -> Dict[str, Any]:
    df = ratings_frame(ratings)
    if df.empty:
        averages = {name: 0.0 for name in CRITERIA}
        averages["confidence"] = 0.0
        return {
            "total": 0,
            "averages": averages,
            "categoryBreakdown": {},
            "confidenceDistribution": {"high": 0, "medium": 0, "low": 0},
            "trends": [],
        }

    means = df[CRITERIA].mean()
    averages = {name: _round(means[name]) for name in CRITERIA}
    averages["confidence"] = _round(df["confidence"].mean() * 100, 1)

    breakdown = df.groupby("category")["overall"].agg(["count", "mean"])
    category_breakdown = {
        str(category): {"count": int(row["count"]), "avgRating": _round(row["mean"])}
        for category, row in breakdown.iterrows()
    }

    confidence = df["confidence"]
    distribution = {
        "high": int((confidence >= 0.8).sum()),
        "medium": int(((confidence >= 0.6) & (confidence < 0.8)).sum()),
        "low": int((confidence < 0.6).sum()),
    }

    return {
        "total": int(len(df)),
        "averages": averages,
        "categoryBreakdown": category_breakdown,
        "confidenceDistribution": distribution,
        "trends": daily_trends(df),
    }


def daily_trends(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Per-day count, average overall score and average confidence (percent)"""
    dated = df.dropna(subset=["timestamp"])
    if dated.empty:
        return []

    grouped = dated.groupby(dated["timestamp"].dt.strftime("%Y-%m-%d")).agg(
        count=("overall", "size"),
        avgRating=("overall", "mean"),
        avgConfidence=("confidence", "mean"),
    ).sort_index().tail(TREND_DAYS)

    return [
        {
            "date": date,
            "count": int(row["count"]),
            "avgRating": _round(row["avgRating"]),
            "avgConfidence": _round(row["avgConfidence"] * 100, 1),
        }
        for date, row in grouped.iterrows()
    ]


def missing_answer_categories(answers: List[Dict[str, Any]]) -> Dict[str, Dict[str, int]]:
    categories: Dict[str, Dict[str, int]] = {}
    for answer in answers:
        entry = categories.setdefault(answer.get("category") or "unknown", {"count": 0, "highPriority": 0})
        entry["count"] += 1
        if answer.get("priority") == "high":
            entry["highPriority"] += 1
    return categories


def top_questions(answers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    ranked = sorted(answers, key=lambda a: a.get("frequency", 1), reverse=True)[:TOP_QUESTIONS]
    return [
        {
            "question": a.get("userQuestion"),
            "frequency": a.get("frequency", 1),
            "priority": a.get("priority"),
            "category": a.get("category"),
        }
        for a in ranked
    ]


def summarize_satisfaction(ratings: List[Dict[str, Any]]) -> Dict[str, Any]:
    scores = pd.Series([r.get("rating") for r in ratings if isinstance(r.get("rating"), int)], dtype="float")
    if scores.empty:
        return {"totalRatings": 0, "avgRating": 0.0, "satisfactionRate": 0.0}
    return {
        "totalRatings": int(scores.size),
        "avgRating": _round(scores.mean()),
        "satisfactionRate": _round((scores >= 4).mean() * 100, 1),
    }


def parse_page(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value not in (None, "") else default
    except ValueError:
        raise ValidationError(f"Invalid number: {value}")
