"""Anonymous usage events posted by the widget.

Fingerprints never reach storage in clear: the stored user carries a short
SHA-256 digest of the fingerprint and a salted anonymous id that stays
stable for the same browser.
"""

import hashlib
import time
import uuid
from typing import Any, Dict, Optional

import structlog

from .config import settings
from .database import DocumentStore, utcnow
from .exceptions import ValidationError
from .models import UsageEventRequest
from .sanitizer import sanitize_user_input
from .satisfaction import sanitize_url, sanitize_user_agent

logger = structlog.get_logger(__name__)

SENSITIVE_KEYS = {"password", "token", "apikey", "api_key", "secret"}
EVENT_VERSION = "1.0"


def hash_fingerprint(fingerprint: Optional[str]) -> Optional[str]:
    if not fingerprint:
        return None
    return "fp_" + hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()[:12]


def anonymous_id(fingerprint: Optional[str]) -> Optional[str]:
    if not fingerprint:
        return None
    salted = f"{fingerprint}{settings.analytics_salt}".encode("utf-8")
    return "anon_" + hashlib.sha256(salted).hexdigest()[:16]


def sanitize_event_data(data: Any) -> Dict[str, Any]:
    """Drop credential-like keys at any depth and clean string values"""
    if not isinstance(data, dict):
        return {}

    cleaned = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_KEYS:
            continue
        if isinstance(value, dict):
            value = sanitize_event_data(value)
        elif isinstance(value, str):
            value = sanitize_user_input(value)
        cleaned[key] = value
    return cleaned


def new_event_id() -> str:
    return f"evt_{uuid.uuid4().hex[:12]}_{int(time.time() * 1000)}"


class UsageEventService:

    def __init__(self, store: DocumentStore):
        self.store = store

    def process(self, body: UsageEventRequest) -> Dict[str, Any]:
        if not body.event or body.context is None:
            raise ValidationError("Invalid analytics payload")

        now = utcnow().isoformat()
        context = body.context
        return {
            "id": new_event_id(),
            "event": body.event,
            "data": sanitize_event_data(body.data),
            "user": {
                "fingerprint": hash_fingerprint(body.user.fingerprint),
                "session": body.user.session,
                "isReturning": body.user.is_returning,
                "anonymousId": anonymous_id(body.user.fingerprint),
            },
            "context": {
                "url": sanitize_url(context.url),
                "referrer": sanitize_url(context.referrer),
                "userAgent": sanitize_user_agent(context.user_agent),
                "timestamp": context.timestamp or now,
                "timezone": context.timezone,
            },
            "metadata": {"processed": now, "version": EVENT_VERSION},
        }

    async def track(self, body: UsageEventRequest) -> Dict[str, Any]:
        event = self.process(body)
        event_id = await self.store.analytics_events.create(event)

        logger.info("📊 Usage event stored",
                    event_id=event_id,
                    event=event["event"],
                    anonymous_id=event["user"]["anonymousId"],
                    url=event["context"]["url"])
        return {"success": True, "eventId": event_id, "timestamp": utcnow().isoformat()}
