"""Satisfaction ratings: analysis, fan-out storage and analytics"""

import asyncio
import re
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import pandas as pd
import structlog

from . import keywords as kw
from .config import settings
from .database import DocumentStore, utcnow
from .exceptions import ValidationError
from .metrics import record_satisfaction_rating
from .models import RatingAnalysis, SatisfactionRequest, SatisfactionResponse
from .notifications import SheetsLogger, SlackNotifier

logger = structlog.get_logger(__name__)

PERIODS = {"7d": 7, "30d": 30, "90d": 90}
DEFAULT_PERIOD = "30d"

SENSITIVE_PARAMS = ("token", "api_key", "password", "auth")
ACTION_CATEGORIES = ("confusing", "slow")
USER_AGENT_LIMIT = 200
MAX_KEYWORDS = 10

RESPONSE_MESSAGES = {
    5: "Thank you for the excellent rating! We're thrilled we could help! 🌟",
    4: "Thanks for the great feedback! We're glad we could assist you! 😊",
    3: "Thank you for your feedback! We'll keep working to improve! 👍",
    2: "Thanks for your honest feedback. We'll work harder to improve your experience! 💪",
    1: "We're sorry we didn't meet your expectations. Your feedback is valuable and we'll do better! 🙏",
}

IMPROVEMENTS = {
    "technical": "Fix the technical errors users run into during conversations",
    "usability": "Make the widget flow and answers easier to follow",
    "performance": "Reduce response times",
    "content": "Correct and complete the information the assistant gives",
    "service": "Review tone and helpfulness of the replies",
}

_NON_WORD = re.compile(r"[^\w\s]")


def extract_keywords(text: str) -> List[str]:
    words = _NON_WORD.sub(" ", (text or "").lower()).split()
    return [word for word in words if len(word) > 2 and word not in kw.STOPWORDS][:MAX_KEYWORDS]


def categorize_issue(feedback: str) -> str:
    for category, keywords in kw.FEEDBACK_CATEGORIES.items():
        if kw.contains_any(feedback, keywords):
            return category
    return "general"


def analyze_rating(rating: int, feedback: Optional[str] = None,
                   categories: Optional[List[str]] = None) -> RatingAnalysis:
    """Sentiment from the score, issue category and urgency from the feedback"""
    analysis = RatingAnalysis()

    if rating >= 4:
        analysis.sentiment = "positive"
    elif rating <= 2:
        analysis.sentiment = "negative"
        analysis.priority = "high"
        analysis.action_required = True

    if feedback:
        analysis.keywords = extract_keywords(feedback)
        analysis.category = categorize_issue(feedback)
        if kw.contains_any(feedback, kw.FEEDBACK_URGENT):
            analysis.priority = "urgent"
            analysis.action_required = True

    if any(category in ACTION_CATEGORIES for category in categories or []):
        analysis.action_required = True

    return analysis


def sanitize_user_agent(user_agent: Optional[str]) -> Optional[str]:
    if not user_agent:
        return None
    if len(user_agent) > USER_AGENT_LIMIT:
        return user_agent[:USER_AGENT_LIMIT] + "..."
    return user_agent


def sanitize_url(url: Optional[str]) -> Optional[str]:
    """Drop credential-like query parameters; None for anything that is not an absolute URL"""
    if not url:
        return None
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None

    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in SENSITIVE_PARAMS]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def response_message(rating: int) -> str:
    return RESPONSE_MESSAGES.get(rating, "Thank you for your feedback!")


class SatisfactionService:
    """Validate, analyse and store ratings, and report on them"""

    def __init__(self, store: DocumentStore, slack: Optional[SlackNotifier] = None,
                 sheets: Optional[SheetsLogger] = None):
        self.store = store
        self.slack = slack or SlackNotifier()
        self.sheets = sheets or SheetsLogger()

    def process(self, request: SatisfactionRequest) -> Dict[str, Any]:
        if request.rating is None or not request.session_id:
            raise ValidationError("Missing required fields: rating, sessionId")
        if not 1 <= request.rating <= 5:
            raise ValidationError("rating must be between 1 and 5")

        now = utcnow()
        return {
            "id": f"rating_{uuid.uuid4().hex}",
            "sessionId": request.session_id,
            "tenantId": request.tenant_id or settings.default_tenant_id,
            "rating": request.rating,
            "feedback": request.feedback or "",
            "categories": list(request.categories),
            "language": request.language or "en",
            "timestamp": (request.timestamp or now).isoformat(),
            "sessionDuration": request.session_duration,
            "messageCount": request.message_count,
            "wasResolved": request.was_resolved,
            "wasEscalated": request.was_escalated,
            "userAgent": sanitize_user_agent(request.user_agent),
            "url": sanitize_url(request.url),
            "referrer": sanitize_url(request.referrer),
            "analysis": analyze_rating(request.rating, request.feedback, request.categories).dump(),
            "processed": now.isoformat(),
        }

    async def submit(self, request: SatisfactionRequest) -> SatisfactionResponse:
        rating = self.process(request)

        # All-settled: each destination may fail without affecting the others
        destinations = ["store"]
        tasks = [self.store.satisfaction.create({**rating, "ratingId": rating["id"]})]
        if rating["rating"] <= 2 and settings.slack_configured:
            destinations.append("slack")
            tasks.append(self.slack.notify_low_rating(rating))
        if self.sheets.configured:
            destinations.append("sheets")
            tasks.append(self.sheets.append_rating(rating))

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for destination, result in zip(destinations, results):
            if isinstance(result, Exception):
                logger.error("Rating side effect failed",
                             destination=destination,
                             rating_id=rating["id"],
                             error=str(result))

        record_satisfaction_rating(rating["rating"])
        logger.info("📊 Rating submitted",
                    rating=rating["rating"],
                    session_id=rating["sessionId"],
                    tenant=rating["tenantId"],
                    has_feedback=bool(rating["feedback"]),
                    sentiment=rating["analysis"]["sentiment"])

        return SatisfactionResponse(
            success=True,
            rating_id=rating["id"],
            message=response_message(rating["rating"]),
            timestamp=rating["timestamp"],
        )

    async def analytics(self, tenant: Optional[str] = None, period: Optional[str] = None) -> Dict[str, Any]:
        period = period if period in PERIODS else DEFAULT_PERIOD
        since = utcnow() - timedelta(days=PERIODS[period])
        ratings = [
            r for r in await self.store.satisfaction.find(tenant, since=since)
            if isinstance(r.get("rating"), int)
        ]

        metadata = {
            "period": period,
            "tenant": tenant or "all",
            "generatedAt": utcnow().isoformat(),
            "dataSource": "live" if ratings else "empty",
        }
        if not ratings:
            return {
                "summary": {"averageRating": 0, "totalRatings": 0, "satisfactionRate": 0, "nps": 0},
                "distribution": {str(score): 0 for score in range(5, 0, -1)},
                "trends": {"daily": [], "weekly": []},
                "insights": {"topIssues": [], "improvements": [], "strengths": []},
                "segmentation": {"byTenant": {}, "byLanguage": {}},
                "metadata": metadata,
            }

        df = pd.DataFrame({
            "rating": [r["rating"] for r in ratings],
            "timestamp": [r.get("createdAt") or r.get("timestamp") for r in ratings],
            "tenantId": [r.get("tenantId") or settings.default_tenant_id for r in ratings],
            "language": [r.get("language") or "en" for r in ratings],
        })
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")

        total = len(df)
        promoters = int((df["rating"] >= 4).sum())
        detractors = int((df["rating"] <= 2).sum())
        counts = df["rating"].value_counts()

        return {
            "summary": {
                "averageRating": round(float(df["rating"].mean()), 1),
                "totalRatings": total,
                "satisfactionRate": round(promoters / total * 100),
                "nps": round((promoters - detractors) / total * 100),
            },
            "distribution": {str(score): int(counts.get(score, 0)) for score in range(5, 0, -1)},
            "trends": {
                "daily": rating_trend(df, df["timestamp"].dt.strftime("%Y-%m-%d")),
                "weekly": rating_trend(df, week_start(df["timestamp"])),
            },
            "insights": feedback_insights(ratings),
            "segmentation": {
                "byTenant": segment(df, "tenantId"),
                "byLanguage": segment(df, "language"),
            },
            "metadata": metadata,
        }


def week_start(timestamps: pd.Series) -> pd.Series:
    monday = timestamps - pd.to_timedelta(timestamps.dt.weekday, unit="D")
    return monday.dt.strftime("%Y-%m-%d")


def rating_trend(df: pd.DataFrame, buckets: pd.Series) -> List[Dict[str, Any]]:
    dated = df.assign(bucket=buckets).dropna(subset=["bucket"])
    if dated.empty:
        return []

    grouped = dated.groupby("bucket")["rating"].agg(
        averageRating="mean",
        totalRatings="size",
        satisfied=lambda s: int((s >= 4).sum()),
    ).sort_index()

    return [
        {
            "date": bucket,
            "averageRating": round(float(row["averageRating"]), 2),
            "totalRatings": int(row["totalRatings"]),
            "satisfactionRate": round(row["satisfied"] / row["totalRatings"] * 100),
        }
        for bucket, row in grouped.iterrows()
    ]


def segment(df: pd.DataFrame, column: str) -> Dict[str, Dict[str, Any]]:
    grouped = df.groupby(column)["rating"].agg(["size", "sum"])
    return {
        str(key): {
            "total": int(row["size"]),
            "sum": int(row["sum"]),
            "average": round(row["sum"] / row["size"], 1),
        }
        for key, row in grouped.iterrows()
    }


def feedback_insights(ratings: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Issues and strengths derived from the stored feedback analysis"""
    issues: Dict[str, List[int]] = {}
    for rating in ratings:
        category = (rating.get("analysis") or {}).get("category", "general")
        if rating.get("feedback") and category != "general":
            issues.setdefault(category, []).append(rating["rating"])

    ranked = sorted(issues.items(), key=lambda item: len(item[1]), reverse=True)
    top_issues = []
    for category, scores in ranked:
        average = sum(scores) / len(scores)
        impact = "high" if average <= 2 else "medium" if average <= 3.5 else "low"
        top_issues.append({"category": category, "count": len(scores), "impact": impact})

    total = len(ratings)
    positive = [r for r in ratings if r["rating"] >= 4]
    strengths = []
    if positive and len(positive) / total >= 0.5:
        strengths.append(f"{round(len(positive) / total * 100)}% of ratings are positive")
    resolved = [r for r in positive if r.get("wasResolved")]
    if resolved:
        strengths.append(f"{len(resolved)} positively rated sessions were resolved")

    return {
        "topIssues": top_issues,
        "improvements": [IMPROVEMENTS[category] for category, _ in ranked if category in IMPROVEMENTS],
        "strengths": strengths,
    }
