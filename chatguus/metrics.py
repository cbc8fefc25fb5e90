from typing import Optional

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Chat pipeline metrics
chat_requests_total = Counter('chatguus_chat_requests_total', 'Total chat requests', ['status', 'tenant'])
chat_duration_seconds = Histogram('chatguus_chat_duration_seconds', 'Chat request duration')
intent_types_detected = Counter('chatguus_intent_types_total', 'Intent types detected', ['intent_type'])
intent_confidence_score = Histogram('chatguus_intent_confidence_score', 'Intent confidence scores')
intent_duration_seconds = Histogram('chatguus_intent_duration_seconds', 'Intent classification duration')

# Language model
llm_requests_total = Counter('chatguus_llm_requests_total', 'Language model calls', ['status'])
llm_duration_seconds = Histogram('chatguus_llm_duration_seconds', 'Language model call duration')

# Routing and feedback
emails_total = Counter('chatguus_emails_total', 'Routed emails', ['department', 'outcome'])
actions_total = Counter('chatguus_actions_total', 'Actions returned to the widget', ['action_type'])
satisfaction_ratings_total = Counter('chatguus_satisfaction_ratings_total', 'Satisfaction ratings', ['rating'])
missing_answers_total = Counter('chatguus_missing_answers_total', 'Missing answers recorded', ['merged'])


def record_chat_request(status: str, duration: float, tenant: str = "unknown"):
    """Record chat request metrics"""
    chat_requests_total.labels(status=status, tenant=tenant).inc()
    chat_duration_seconds.observe(duration)


def record_intent(intent_type: str, confidence: float = None, duration: Optional[float] = None):
    """Record intent classification metrics"""
    intent_types_detected.labels(intent_type=intent_type).inc()
    if confidence is not None:
        intent_confidence_score.observe(confidence)
    if duration is not None:
        intent_duration_seconds.observe(duration)


def record_llm_call(status: str, duration: float):
    llm_requests_total.labels(status=status).inc()
    llm_duration_seconds.observe(duration)


def record_email(department: str, outcome: str):
    emails_total.labels(department=department, outcome=outcome).inc()


def record_action(action_type: str):
    actions_total.labels(action_type=action_type).inc()


def record_satisfaction_rating(rating: int):
    satisfaction_ratings_total.labels(rating=str(rating)).inc()


def record_missing_answer(merged: bool):
    missing_answers_total.labels(merged=str(merged).lower()).inc()


async def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
