"""Decide on a follow-up action and on email dispatch for one message"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import structlog

from .email_router import EmailRouter
from .metrics import record_action
from .models import Action, Intent, IntentType, RequestContext, Tenant

logger = structlog.get_logger(__name__)

# Intent type -> (action kind, feature flag that enables it)
ACTION_KINDS: Dict[IntentType, Tuple[str, str]] = {
    IntentType.SERVICE_REQUEST: ("service_request_form", "service_requests"),
    IntentType.COMPLAINT: ("complaint_form", "service_requests"),
    IntentType.EVENT_INQUIRY: ("event_inquiry_form", "event_inquiries"),
    IntentType.EVENT_MODIFICATION: ("event_modification_form", "event_inquiries"),
    IntentType.FAQ: ("faq_suggestions", "faq_system"),
}

DISPATCH_CONFIDENCE_THRESHOLD = 0.8

SERVICE_DISPATCH = "service"
EVENT_DISPATCH = "event"

# Modifications go to event coordination through the service route
DISPATCH_KINDS: Dict[IntentType, str] = {
    IntentType.SERVICE_REQUEST: SERVICE_DISPATCH,
    IntentType.COMPLAINT: SERVICE_DISPATCH,
    IntentType.EVENT_MODIFICATION: SERVICE_DISPATCH,
    IntentType.EVENT_INQUIRY: EVENT_DISPATCH,
}


@dataclass
class RoutingDecision:
    action: Optional[Action] = None
    dispatch: Optional[str] = None


class ActionRouter:
    """Stateless per message: nothing from earlier messages influences routing"""

    def __init__(self, email_router: EmailRouter):
        self.email_router = email_router

    def route(self, intent: Intent, reply: str, tenant: Tenant) -> RoutingDecision:
        kind = ACTION_KINDS.get(intent.type)
        if kind is None:
            return RoutingDecision()

        action_type, feature = kind
        if not getattr(tenant.features, feature):
            logger.debug("Action suppressed by tenant feature",
                         tenant=tenant.id, action_type=action_type, feature=feature)
            return RoutingDecision()

        action = Action(
            type=action_type,
            category=intent.category,
            priority=intent.priority.value,
            urgent=intent.urgent,
        )
        return RoutingDecision(action=action, dispatch=self._dispatch_kind(intent, tenant))

    def _dispatch_kind(self, intent: Intent, tenant: Tenant) -> Optional[str]:
        if not tenant.features.email_routing:
            return None

        confident = (
            intent.type in (IntentType.SERVICE_REQUEST, IntentType.EVENT_INQUIRY)
            and intent.confidence > DISPATCH_CONFIDENCE_THRESHOLD
        )
        if not (intent.has_complete_info or confident):
            return None

        return DISPATCH_KINDS.get(intent.type)

    async def execute(
        self,
        decision: RoutingDecision,
        intent: Intent,
        context: RequestContext,
        tenant: Tenant,
    ) -> Optional[Action]:
        """Run the single dispatch attempt; the action is returned whatever happens"""
        action = decision.action
        if action is None:
            return None

        record_action(action.type)
        if decision.dispatch is None:
            return action

        try:
            if decision.dispatch == EVENT_DISPATCH:
                result = await self.email_router.route_event_inquiry(intent, context, tenant)
            else:
                result = await self.email_router.route_service_request(intent, context, tenant)
        except Exception as e:
            logger.error("Email dispatch failed",
                         tenant=tenant.id,
                         session_id=context.session_id,
                         dispatch=decision.dispatch,
                         error=str(e))
            return action.model_copy(update={"email_sent": False})

        logger.info("Request routed",
                    tenant=tenant.id,
                    session_id=context.session_id,
                    department=result.department,
                    message_id=result.message_id)
        return action.model_copy(update={"email_sent": result.email_sent, "department": result.department})
