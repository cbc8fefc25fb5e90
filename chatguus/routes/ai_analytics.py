"""AI analytics endpoint, dispatched on the ``action`` query parameter"""

from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from ..ai_analytics import AIAnalyticsService, parse_page
from ..dependencies import get_ai_analytics, get_email_router, get_tenant_manager
from ..email_router import EmailRouter
from ..exceptions import ValidationError
from ..tenant_manager import TenantManager

logger = structlog.get_logger(__name__)
router = APIRouter()

ACTIONS = (
    "store_ai_rating",
    "store_missing_answer",
    "get_ai_ratings",
    "get_missing_answers",
    "get_dashboard_data",
    "export_data",
    "update_missing_answer_status",
    "health_check",
)


async def read_body(request: Request) -> Dict[str, Any]:
    if request.method != "POST":
        return {}
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


@router.api_route("/ai-analytics", methods=["GET", "POST"])
async def ai_analytics(
    request: Request,
    service: AIAnalyticsService = Depends(get_ai_analytics),
    email_router: EmailRouter = Depends(get_email_router),
    tenants: TenantManager = Depends(get_tenant_manager),
):
    params = request.query_params
    action = params.get("action")
    if action not in ACTIONS:
        raise ValidationError(f"Invalid action. Available actions: {', '.join(ACTIONS)}")

    body = await read_body(request)
    logger.debug("AI analytics request", action=action, method=request.method)

    if action == "store_ai_rating":
        return await service.store_ai_rating(body)

    if action == "store_missing_answer":
        return await service.store_missing_answer(body)

    if action == "get_ai_ratings":
        return await service.get_ai_ratings(
            tenant_id=params.get("tenantId"),
            category=params.get("category"),
            page=parse_page(params.get("page"), 1),
            limit=parse_page(params.get("limit"), 50),
        )

    if action == "get_missing_answers":
        return await service.get_missing_answers(
            tenant_id=params.get("tenantId"),
            priority=params.get("priority"),
            status=params.get("status"),
            category=params.get("category"),
        )

    if action == "get_dashboard_data":
        return await service.get_dashboard_data(params.get("tenantId"))

    if action == "export_data":
        export_format = params.get("format", "json")
        if export_format not in ("json", "csv"):
            raise ValidationError("format must be json or csv")
        content, media_type, filename = await service.export_data(export_format, params.get("tenantId"))
        return Response(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    if action == "update_missing_answer_status":
        return await service.update_missing_answer_status(
            body.get("id"), body.get("status"), body.get("notes", "")
        )

    health = await service.health_check()
    # SMTP problems are reported but do not make the service unhealthy
    health["email"] = {
        **await email_router.test_email_config(),
        **email_router.routing_stats(tenants.find(params.get("tenantId"))),
    }
    return health
