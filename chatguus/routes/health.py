"""Health check endpoints"""

import structlog
from fastapi import APIRouter

from ..config import settings
from ..database import utcnow
from ..models import HealthResponse
from ..utils.redis_pool import redis_pool

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("", response_model=HealthResponse)
async def health_check():
    """Basic health check with integration presence"""
    return HealthResponse(
        status="healthy",
        service=settings.service_name,
        version=settings.version,
        timestamp=utcnow(),
        environment=settings.environment,
        integrations={
            "openai": settings.openai_configured,
            "smtp": settings.smtp_configured,
            "redis": redis_pool.initialized,
            "sheets": settings.sheets_configured,
            "slack": settings.slack_configured,
        },
    )


@router.get("/ready")
async def readiness_check():
    """Readiness check with dependency validation"""
    checks = {"redis": await redis_pool.health_check()}

    overall_status = "healthy" if all(
        check["status"] == "healthy" for check in checks.values()
    ) else "unhealthy"

    return {
        "status": overall_status,
        "checks": checks
    }


@router.get("/live")
async def liveness_check():
    """Liveness check"""
    return {"status": "alive"}
