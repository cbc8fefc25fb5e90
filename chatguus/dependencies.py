"""Shared service instances handed to the routes through ``Depends``.

Every getter is a plain function so tests can swap any of them through
``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends

from .action_router import ActionRouter
from .ai_analytics import AIAnalyticsService
from .cache import TTLCache
from .config import settings
from .database import DocumentStore
from .email_router import EmailRouter
from .events import UsageEventService
from .exceptions import UpstreamError
from .intent_classifier import IntentClassifier
from .notifications import SheetsLogger, SlackNotifier
from .personality import ResponseGenerator
from .prompt_manager import PromptManager
from .satisfaction import SatisfactionService
from .tenant_manager import TenantManager
from .utils.redis_pool import redis_pool

# Tenant artifacts (CSS, prompts, widget config) and the analytics dashboard
tenant_cache = TTLCache(settings.tenant_cache_ttl_seconds)
dashboard_cache = TTLCache(settings.dashboard_cache_ttl_seconds)


@lru_cache()
def get_tenant_manager() -> TenantManager:
    return TenantManager(tenant_cache)


@lru_cache()
def get_prompt_manager() -> PromptManager:
    return PromptManager()


@lru_cache()
def get_generator() -> ResponseGenerator:
    return ResponseGenerator(get_prompt_manager(), cache=tenant_cache)


@lru_cache()
def get_classifier() -> IntentClassifier:
    return IntentClassifier()


@lru_cache()
def get_email_router() -> EmailRouter:
    return EmailRouter()


@lru_cache()
def get_action_router() -> ActionRouter:
    return ActionRouter(get_email_router())


@lru_cache()
def get_slack() -> SlackNotifier:
    return SlackNotifier()


@lru_cache()
def get_sheets() -> SheetsLogger:
    return SheetsLogger()


async def get_store() -> DocumentStore:
    try:
        client = await redis_pool.get_client()
    except RuntimeError:
        raise UpstreamError("Document store unavailable", service="redis")
    return DocumentStore(client, prefix=settings.redis_prefix)


async def get_ai_analytics(store: DocumentStore = Depends(get_store)) -> AIAnalyticsService:
    return AIAnalyticsService(store, dashboard_cache)


async def get_event_service(store: DocumentStore = Depends(get_store)) -> UsageEventService:
    return UsageEventService(store)


async def get_satisfaction_service(
    store: DocumentStore = Depends(get_store),
    slack: SlackNotifier = Depends(get_slack),
    sheets: SheetsLogger = Depends(get_sheets),
) -> SatisfactionService:
    return SatisfactionService(store, slack, sheets)


async def get_optional_store() -> Optional[DocumentStore]:
    """The store when reachable; chat keeps answering without one"""
    if not redis_pool.initialized:
        return None
    return DocumentStore(await redis_pool.get_client(), prefix=settings.redis_prefix)
