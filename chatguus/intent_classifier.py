"""Keyword-driven intent classification.

Classification is total and deterministic: the rules below are evaluated in
order and the first one that matches decides the intent type. Overlapping
vocabularies are resolved purely by that order (a message that is both a
complaint and a compliment is a complaint).
"""

import re
import time
from typing import Callable, List, Optional, Tuple

import structlog

from . import keywords as kw
from .metrics import record_intent
from .models import Intent, IntentType, Priority

logger = structlog.get_logger(__name__)

_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_PHONE_RE = re.compile(r"(?:\+31|0)[\s-]?\d(?:[\s-]?\d){7,9}")

# Types whose details can be handed to a department by email
ROUTABLE_TYPES = (
    IntentType.SERVICE_REQUEST,
    IntentType.EVENT_INQUIRY,
    IntentType.EVENT_MODIFICATION,
    IntentType.COMPLAINT,
)

MIN_WORDS_FOR_COMPLETE_INFO = 8


def _escalated(urgent: bool) -> Priority:
    return Priority.HIGH if urgent else Priority.MEDIUM


class IntentClassifier:
    """Map free text to exactly one Intent"""

    def __init__(self):
        self.total_classifications = 0
        self._rules: List[Tuple[str, Callable[[str, bool], Optional[Intent]]]] = [
            ("complaint", self._complaint),
            ("compliment", self._compliment),
            ("pricing_inquiry", self._pricing),
            ("accessibility_inquiry", self._accessibility),
            ("event_modification", self._event_modification),
            ("service_request", self._service_request),
            ("event_inquiry", self._event_inquiry),
            ("event_info", self._event_info),
            ("faq", self._faq),
            ("greeting", self._greeting),
        ]

    def classify(self, message: str) -> Intent:
        """Classify a (sanitized) user message"""
        start_time = time.perf_counter()
        text = message or ""
        urgent = kw.contains_any(text, kw.URGENCY)

        intent = None
        for _, rule in self._rules:
            intent = rule(text, urgent)
            if intent is not None:
                break

        if intent is None:
            intent = Intent(type=IntentType.GENERAL, confidence=0.5, urgent=urgent)

        intent.has_complete_info = self.has_complete_info(text, intent)

        self.total_classifications += 1
        record_intent(intent.type.value, intent.confidence, time.perf_counter() - start_time)
        logger.debug("Intent classified",
                     intent_type=intent.type.value,
                     confidence=intent.confidence,
                     urgent=intent.urgent,
                     priority=intent.priority.value)
        return intent

    def has_complete_info(self, text: str, intent: Intent) -> bool:
        """Enough detail to hand the request to a person right away.

        The classifier is the only authority for this flag: a routable
        request qualifies when it carries a way to reach the user back and
        is more than a one-liner.
        """
        if intent.type not in ROUTABLE_TYPES:
            return False
        has_contact = bool(_EMAIL_RE.search(text) or _PHONE_RE.search(text))
        return has_contact and len(text.split()) >= MIN_WORDS_FOR_COMPLETE_INFO

    # Rules, in precedence order

    def _complaint(self, text: str, urgent: bool) -> Optional[Intent]:
        found = kw.matched_keywords(text, kw.COMPLAINT)
        if not found:
            return None
        return Intent(type=IntentType.COMPLAINT, confidence=0.9, urgent=urgent,
                      priority=_escalated(urgent), requires_form=True,
                      category="general", keywords=found)

    def _compliment(self, text: str, urgent: bool) -> Optional[Intent]:
        found = kw.matched_keywords(text, kw.COMPLIMENT)
        if not found:
            return None
        return Intent(type=IntentType.COMPLIMENT, confidence=0.8, urgent=urgent,
                      priority=Priority.LOW, keywords=found)

    def _pricing(self, text: str, urgent: bool) -> Optional[Intent]:
        found = kw.matched_keywords(text, kw.PRICING)
        if not found:
            return None
        return Intent(type=IntentType.PRICING_INQUIRY, confidence=0.8, urgent=urgent,
                      priority=Priority.MEDIUM, category="pricing", keywords=found)

    def _accessibility(self, text: str, urgent: bool) -> Optional[Intent]:
        found = kw.matched_keywords(text, kw.ACCESSIBILITY)
        if not found:
            return None
        return Intent(type=IntentType.ACCESSIBILITY_INQUIRY, confidence=0.9, urgent=urgent,
                      priority=Priority.HIGH, category="accessibility", keywords=found)

    def _event_modification(self, text: str, urgent: bool) -> Optional[Intent]:
        found = kw.matched_keywords(text, kw.EVENT_MODIFICATION)
        if not found:
            return None
        return Intent(type=IntentType.EVENT_MODIFICATION, confidence=0.9, urgent=urgent,
                      priority=_escalated(urgent), requires_form=True,
                      category="existing_event", keywords=found)

    def _service_request(self, text: str, urgent: bool) -> Optional[Intent]:
        problems = kw.matched_keywords(text, kw.PROBLEM)
        helps = kw.matched_keywords(text, kw.HELP_ACTION)
        if problems and helps:
            return Intent(type=IntentType.SERVICE_REQUEST, confidence=0.85, urgent=urgent,
                          priority=_escalated(urgent), requires_form=True,
                          category=kw.department_for(text), keywords=problems + helps)

        devices = kw.matched_keywords(text, kw.IT_DEVICES)
        if devices:
            return Intent(type=IntentType.SERVICE_REQUEST, confidence=0.7, urgent=urgent,
                          priority=_escalated(urgent), requires_form=False,
                          category="it", keywords=devices)
        return None

    def _event_inquiry(self, text: str, urgent: bool) -> Optional[Intent]:
        events = kw.matched_keywords(text, kw.EVENT)
        plans = kw.matched_keywords(text, kw.ORGANISE)
        if not (events and plans):
            return None
        return Intent(type=IntentType.EVENT_INQUIRY, confidence=0.9, urgent=urgent,
                      priority=_escalated(urgent), requires_form=True,
                      category="events", keywords=events + plans)

    def _event_info(self, text: str, urgent: bool) -> Optional[Intent]:
        events = kw.matched_keywords(text, kw.EVENT)
        infos = kw.matched_keywords(text, kw.EVENT_INFO)
        if not (events and infos):
            return None
        return Intent(type=IntentType.EVENT_INFO, confidence=0.8, urgent=urgent,
                      priority=Priority.LOW, category="events", keywords=events + infos)

    def _faq(self, text: str, urgent: bool) -> Optional[Intent]:
        topic = kw.faq_topic_for(text)
        if not topic:
            return None
        return Intent(type=IntentType.FAQ, confidence=0.75, urgent=urgent,
                      priority=Priority.LOW, category=topic, keywords=[topic])

    def _greeting(self, text: str, urgent: bool) -> Optional[Intent]:
        found = kw.matched_keywords(text, kw.GREETINGS)
        if not found:
            return None
        return Intent(type=IntentType.GENERAL, confidence=0.8, urgent=urgent,
                      priority=Priority.LOW, keywords=found)
