"""
ChatGuusPT - multi-tenant chat assistant service
FastAPI application serving the chat pipeline, the widget and the analytics endpoints
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .metrics import metrics_endpoint
from .middleware.metrics import MetricsMiddleware
from .middleware.rate_limit import RateLimitMiddleware
from .routes import ai_analytics, chat, events, health, satisfaction, tenants, widget
from .utils.http_client import http_pool
from .utils.logging import setup_logging
from .utils.redis_pool import redis_pool

# Setup structured logging
setup_logging()
logger = structlog.get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Tenant-Id",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("🚀 Starting ChatGuusPT", environment=settings.environment, version=settings.version)

    # The chat endpoint keeps working without the document store
    if not redis_pool.initialized:
        try:
            await redis_pool.initialize(settings.redis_url, settings.redis_max_connections)
            logger.info("✅ Document store connected")
        except Exception as e:
            logger.warning("⚠️ Document store unavailable, analytics disabled", error=str(e))

    await http_pool.initialize(timeout=settings.webhook_timeout_seconds)

    logger.info("✅ ChatGuusPT startup complete",
                openai=settings.openai_configured,
                smtp=settings.smtp_configured,
                slack=settings.slack_configured,
                sheets=settings.sheets_configured)

    yield

    logger.info("🛑 Shutting down ChatGuusPT")
    await http_pool.close()
    await redis_pool.close()
    logger.info("✅ ChatGuusPT shutdown complete")


app = FastAPI(
    title="ChatGuusPT",
    description="Multi-tenant chat assistant with request routing and analytics",
    version=settings.version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RateLimitMiddleware)

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(chat.router, tags=["chat"])
app.include_router(satisfaction.router, tags=["satisfaction"])
app.include_router(ai_analytics.router, tags=["analytics"])
app.include_router(events.router, tags=["analytics"])
app.include_router(tenants.router, prefix="/tenants", tags=["tenants"])
app.include_router(widget.router, tags=["widget"])

app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)


@app.options("/{path:path}", include_in_schema=False)
async def preflight(path: str):
    """Plain OPTIONS requests that CORSMiddleware does not treat as preflights"""
    return Response(status_code=200, headers=CORS_HEADERS)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Global HTTP exception handler"""
    content = {
        "error": exc.detail,
        "status_code": exc.status_code,
        "path": request.url.path
    }
    errors = getattr(exc, "errors", None)
    if errors:
        content["details"] = errors
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "status_code": 400,
            "path": request.url.path,
            "details": jsonable_encoder(exc.errors()),
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=True)
    content = {
        "error": "Internal server error",
        "message": f"Sorry, er ging iets mis. Neem contact op via {settings.email_general}",
        "path": request.url.path
    }
    if settings.is_development:
        content["details"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "ChatGuusPT",
        "version": settings.version,
        "status": "running",
        "docs": "/docs" if settings.debug else "disabled"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "chatguus.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
    )
