"""Heuristic self-evaluation of assistant replies"""

from typing import Any, Dict, Optional

import structlog

from . import keywords as kw
from .models import AIRatingScores, Priority

logger = structlog.get_logger(__name__)

CONFIDENCE_THRESHOLD = 0.7
SHORT_REPLY = 50
LONG_REPLY = 200


class SelfRater:
    """Score a reply on five 1-5 criteria plus a confidence in [0, 1]"""

    def __init__(self, confidence_threshold: float = CONFIDENCE_THRESHOLD):
        self.confidence_threshold = confidence_threshold

    def rate(self, user_question: str, ai_response: str, context: Optional[Dict[str, Any]] = None) -> AIRatingScores:
        reply = ai_response or ""
        scores = AIRatingScores()

        if kw.contains_any(reply, kw.UNCERTAIN_REPLY):
            scores.helpfulness = 2
            scores.completeness = 2
            scores.confidence = 0.4
            scores.category = "unknown"
            scores.improvement_suggestions = "Needs more specific information or escalation"
            scores.missing_info = "Specific answer to user question"

        if kw.contains_any(reply, kw.CONTACT_REPLY):
            scores.category = "service_request"
            scores.helpfulness = 4

        if kw.contains_any(reply, kw.EVENT_REPLY):
            scores.category = "event_inquiry"

        if len(reply) < SHORT_REPLY:
            scores.completeness = max(2, scores.completeness - 1)
        if len(reply) > LONG_REPLY:
            scores.completeness = min(5, scores.completeness + 1)

        scores.overall = (
            scores.accuracy
            + scores.helpfulness
            + scores.completeness
            + scores.clarity
            + scores.relevance
        ) / 5

        logger.debug("Reply self-rated",
                     overall=scores.overall,
                     confidence=scores.confidence,
                     category=scores.category,
                     session_id=(context or {}).get("sessionId"))
        return scores

    def needs_missing_answer(self, scores: AIRatingScores) -> bool:
        return scores.confidence < self.confidence_threshold or scores.helpfulness < 3


def missing_answer_priority(confidence: float, helpfulness: float) -> Priority:
    if confidence < 0.3 or helpfulness < 2:
        return Priority.HIGH
    if confidence < 0.5 or helpfulness < 3:
        return Priority.MEDIUM
    return Priority.LOW
