"""Data models for the ChatGuusPT service"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import settings


class CamelModel(BaseModel):
    """Base model exchanged with the widget: camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# --- Intents ----------------------------------------------------------------

class IntentType(str, Enum):
    SERVICE_REQUEST = "service_request"
    EVENT_INQUIRY = "event_inquiry"
    EVENT_MODIFICATION = "event_modification"
    EVENT_INFO = "event_info"
    FAQ = "faq"
    COMPLAINT = "complaint"
    COMPLIMENT = "compliment"
    PRICING_INQUIRY = "pricing_inquiry"
    ACCESSIBILITY_INQUIRY = "accessibility_inquiry"
    GENERAL = "general"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Intent(CamelModel):
    """Classified purpose of a single user message"""
    type: IntentType
    confidence: float = Field(ge=0.0, le=1.0)
    category: Optional[str] = None
    urgent: bool = False
    priority: Priority = Priority.LOW
    requires_form: bool = False
    has_complete_info: bool = False
    keywords: List[str] = []


class Action(CamelModel):
    """Structured follow-up hint for the widget"""
    type: str
    category: Optional[str] = None
    priority: Optional[str] = None
    urgent: Optional[bool] = None
    email_sent: Optional[bool] = None
    department: Optional[str] = None


# --- Tenants ----------------------------------------------------------------

class Branding(CamelModel):
    primary_color: str
    secondary_color: str = "#64748b"
    logo: Optional[str] = None
    avatar: str = "🤖"
    company_name: str
    bot_name: str
    welcome_message: str
    font_family: Optional[str] = None
    font_size: Optional[str] = None
    border_radius: Optional[str] = None
    shadow: Optional[str] = None
    position: Optional[str] = None
    favicon: Optional[str] = None
    custom_css: Optional[str] = None


class Personality(CamelModel):
    name: str
    traits: List[str] = []
    tone: str = "vriendelijk"
    language: str = "nl"


class Features(CamelModel):
    service_requests: bool = True
    event_inquiries: bool = True
    faq_system: bool = True
    email_routing: bool = True
    google_sheets: bool = False


class Tenant(CamelModel):
    """One customer configuration sharing the codebase"""
    id: str
    name: str
    domain: str
    active: bool = True
    branding: Branding
    personality: Personality
    routing: Dict[str, str]
    features: Features = Features()
    api_key: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def general_email(self) -> str:
        if self.routing.get("general"):
            return self.routing["general"]
        return next((address for address in self.routing.values() if address), settings.email_general)

    @property
    def is_dutch(self) -> bool:
        return self.personality.language == "nl"


class TenantSummary(CamelModel):
    id: str
    name: str
    domain: str
    active: bool
    features: Features
    created_at: Optional[datetime] = None


# --- Chat -------------------------------------------------------------------

class HistoryTurn(BaseModel):
    """Prior conversation turn as sent by the widget"""
    model_config = ConfigDict(extra="ignore")

    role: str = "user"
    content: str = ""


class ChatRequest(CamelModel):
    """Chat request body; message is validated by the sanitizer, not here"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    message: Any = None
    session_id: Optional[str] = None
    user_agent: Optional[str] = None
    url: Optional[str] = None
    tenant_id: Optional[str] = None
    language: Optional[str] = None
    history: List[HistoryTurn] = []


class ChatResponse(CamelModel):
    message: str
    action: Optional[Action] = None
    session_id: str
    timestamp: datetime


class RequestContext(CamelModel):
    """What a routed email needs to know about the originating request"""
    message: str
    session_id: str
    user_agent: Optional[str] = None
    url: Optional[str] = None


class RoutingResult(CamelModel):
    target_email: str
    department: str
    email_sent: bool
    message_id: Optional[str] = None


class SessionMessage(CamelModel):
    content: str
    sender: str  # user or ai
    timestamp: datetime
    intent: Optional[Dict[str, Any]] = None
    action: Optional[Dict[str, Any]] = None


# --- Satisfaction -----------------------------------------------------------

class SatisfactionRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    session_id: Optional[str] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    categories: List[str] = []
    session_duration: int = 0
    message_count: int = 0
    was_resolved: bool = False
    was_escalated: bool = False
    tenant_id: Optional[str] = None
    language: Optional[str] = None
    user_agent: Optional[str] = None
    url: Optional[str] = None
    referrer: Optional[str] = None
    timestamp: Optional[datetime] = None


class RatingAnalysis(CamelModel):
    sentiment: str = "neutral"
    category: str = "general"
    priority: str = "normal"
    action_required: bool = False
    keywords: List[str] = []


class SatisfactionResponse(CamelModel):
    success: bool
    rating_id: str
    message: str
    timestamp: datetime


# --- Usage events -----------------------------------------------------------

class EventUser(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    fingerprint: Optional[str] = None
    session: Optional[str] = None
    is_returning: bool = False


class EventContext(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    url: Optional[str] = None
    referrer: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: Optional[str] = None
    timezone: Optional[str] = None


class UsageEventRequest(CamelModel):
    """One widget usage event; ``event`` and ``context`` are required"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    event: Optional[str] = None
    data: Any = None
    user: EventUser = EventUser()
    context: Optional[EventContext] = None


# --- AI self-rating ---------------------------------------------------------

class AIRatingScores(CamelModel):
    accuracy: int = 4
    helpfulness: int = 4
    completeness: int = 4
    clarity: int = 4
    relevance: int = 4
    overall: float = 4.0
    confidence: float = 0.8
    category: str = "general"
    improvement_suggestions: str = ""
    missing_info: str = ""
    reasoning: str = "Standard response evaluation"


class MissingAnswerStatus(str, Enum):
    NEEDS_REVIEW = "needs_review"
    RESOLVED = "resolved"
    IGNORED = "ignored"


class HealthResponse(BaseModel):
    """Health check response model"""
    status: str
    service: str
    version: str
    timestamp: datetime
    environment: str
    integrations: Dict[str, bool]
