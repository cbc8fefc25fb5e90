"""
Shared fixtures: in-memory Redis document store, tenant registry and an
API client with the external integrations swapped out.
"""
import os

# Optional integrations off before the settings object is created
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_FORMAT"] = "console"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["SLACK_WEBHOOK_URL"] = ""
os.environ["GOOGLE_SHEETS_ID"] = ""
os.environ["RATE_LIMIT_REQUESTS"] = "1000"

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest
from fastapi.testclient import TestClient

from chatguus.cache import TTLCache
from chatguus.database import DocumentStore
from chatguus.dependencies import (
    dashboard_cache,
    get_generator,
    get_optional_store,
    get_store,
    get_tenant_manager,
)
from chatguus.main import app
from chatguus.personality import ResponseGenerator
from chatguus.prompt_manager import PromptManager
from chatguus.tenant_manager import TenantManager


def completion(content):
    """Shape of an OpenAI chat completion with a single choice"""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_openai(content="Hallo! Ik help je graag."):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion(content))
    return client


@pytest.fixture
def tenant_cache():
    return TTLCache(300)


@pytest.fixture
def tenants(tenant_cache):
    return TenantManager(tenant_cache)


@pytest.fixture
def koepel(tenants):
    return tenants.get("koepel")


@pytest.fixture
def demo(tenants):
    return tenants.get("demo-company")


@pytest.fixture
async def store():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield DocumentStore(client, prefix="test")
    await client.flushall()
    await client.aclose()


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def openai_client():
    return fake_openai()


@pytest.fixture
def client(tenants, tenant_cache, redis_server, openai_client):
    """API client; each request opens a fake Redis connection on the shared server"""

    async def override_store():
        return DocumentStore(fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True), prefix="test")

    generator = ResponseGenerator(PromptManager(), cache=tenant_cache, client=openai_client)

    app.dependency_overrides[get_store] = override_store
    app.dependency_overrides[get_optional_store] = override_store
    app.dependency_overrides[get_tenant_manager] = lambda: tenants
    app.dependency_overrides[get_generator] = lambda: generator
    dashboard_cache.invalidate()

    yield TestClient(app)

    app.dependency_overrides.clear()
    dashboard_cache.invalidate()
