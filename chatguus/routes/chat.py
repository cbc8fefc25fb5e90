"""Chat endpoint: the full message pipeline for one widget request"""

import time
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from ..action_router import ActionRouter
from ..ai_analytics import AIAnalyticsService
from ..config import settings
from ..database import DocumentStore, utcnow
from ..dependencies import (
    dashboard_cache,
    get_action_router,
    get_classifier,
    get_generator,
    get_optional_store,
    get_sheets,
    get_tenant_manager,
)
from ..exceptions import ValidationError
from ..intent_classifier import IntentClassifier
from ..metrics import record_chat_request
from ..models import Action, ChatRequest, ChatResponse, Intent, RequestContext, SessionMessage, Tenant
from ..notifications import SheetsLogger
from ..personality import ResponseGenerator
from ..sanitizer import message_sanitizer, sanitize_bot_response, sanitize_user_input, validate_chat_message
from ..tenant_manager import TenantManager

logger = structlog.get_logger(__name__)
router = APIRouter()

ERROR_MESSAGES = {
    "nl": "Sorry, er ging iets mis. Probeer het opnieuw of neem direct contact op via {email}",
    "en": "Sorry, something went wrong. Please try again or contact us directly at {email}",
}


def request_domain(request: Request) -> Optional[str]:
    return request.headers.get("origin") or request.headers.get("host")


@router.post("/chat")
async def chat(
    request: Request,
    body: ChatRequest,
    background_tasks: BackgroundTasks,
    tenants: TenantManager = Depends(get_tenant_manager),
    classifier: IntentClassifier = Depends(get_classifier),
    generator: ResponseGenerator = Depends(get_generator),
    action_router: ActionRouter = Depends(get_action_router),
    sheets: SheetsLogger = Depends(get_sheets),
    store: Optional[DocumentStore] = Depends(get_optional_store),
):
    start_time = time.perf_counter()
    tenant = tenants.resolve(
        tenant_id=body.tenant_id,
        header=request.headers.get("x-tenant-id"),
        domain=request_domain(request),
    )

    try:
        validation = validate_chat_message(body.message)
        if not validation.is_valid:
            raise ValidationError("Invalid message", errors=validation.errors)
        if not body.session_id:
            raise ValidationError("Session ID is required")

        message = sanitize_user_input(body.message)
        logger.info("💬 Chat message received",
                    tenant=tenant.id,
                    session_id=body.session_id,
                    message=message_sanitizer.format_for_logging(message))

        intent = classifier.classify(message)
        raw_reply = await generator.generate(tenant, intent, message, body.history)
        reply = sanitize_bot_response(raw_reply)

        decision = action_router.route(intent, reply, tenant)
        context = RequestContext(
            message=message,
            session_id=body.session_id,
            user_agent=body.user_agent,
            url=body.url,
        )
        action = await action_router.execute(decision, intent, context, tenant)

        response = ChatResponse(
            message=reply,
            action=action,
            session_id=body.session_id,
            timestamp=utcnow(),
        )

        background_tasks.add_task(
            record_interaction, store, sheets, tenant, body, message, reply, intent, action
        )
        record_chat_request("success", time.perf_counter() - start_time, tenant.id)
        return response.dump()

    except HTTPException:
        record_chat_request("rejected", time.perf_counter() - start_time, tenant.id)
        raise
    except Exception as e:
        record_chat_request("error", time.perf_counter() - start_time, tenant.id)
        logger.error("Chat request failed",
                     tenant=tenant.id,
                     session_id=body.session_id,
                     error=str(e),
                     exc_info=True)
        return chat_error_response(tenant, body.session_id, e)


def chat_error_response(tenant: Tenant, session_id: Optional[str], error: Exception) -> JSONResponse:
    template = ERROR_MESSAGES["nl" if tenant.is_dutch else "en"]
    content: Dict[str, Any] = {
        "error": "Internal server error",
        "message": template.format(email=tenant.general_email),
        "sessionId": session_id,
        "timestamp": utcnow().isoformat(),
    }
    if settings.is_development:
        content["details"] = str(error)
    return JSONResponse(status_code=500, content=content)


async def record_interaction(
    store: Optional[DocumentStore],
    sheets: SheetsLogger,
    tenant: Tenant,
    body: ChatRequest,
    message: str,
    reply: str,
    intent: Intent,
    action: Optional[Action],
):
    """Post-response bookkeeping; every step fails on its own without surfacing"""
    now = utcnow()
    intent_data = intent.dump()
    action_data = action.dump() if action else None

    if store is not None:
        try:
            await store.sessions.append(
                body.session_id,
                tenant.id,
                [
                    SessionMessage(content=message, sender="user", timestamp=now, intent=intent_data).dump(),
                    SessionMessage(content=reply, sender="ai", timestamp=now, action=action_data).dump(),
                ],
                metadata={"userAgent": body.user_agent, "url": body.url, "language": body.language},
            )
        except Exception as e:
            logger.error("Session append failed", session_id=body.session_id, error=str(e))

        try:
            analytics = AIAnalyticsService(store, dashboard_cache)
            await analytics.rate_interaction(message, reply, {
                "sessionId": body.session_id,
                "tenantId": tenant.id,
                "intentType": intent.type.value,
            })
        except Exception as e:
            logger.error("Self-rating failed", session_id=body.session_id, error=str(e))
    else:
        logger.warning("Document store unavailable, interaction not stored", session_id=body.session_id)

    if tenant.features.google_sheets:
        try:
            await sheets.append_interaction(
                body.session_id,
                tenant.id,
                message,
                reply,
                intent_data,
                action=action_data,
                timestamp=now.isoformat(),
            )
        except Exception as e:
            logger.error("Sheets interaction logging failed", session_id=body.session_id, error=str(e))
