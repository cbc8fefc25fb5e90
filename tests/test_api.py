"""
API tests through the FastAPI test client.

Redis is replaced by fakeredis and the language model by a mock; SMTP,
Slack and Google Sheets are unconfigured, so side effects are logged only.
"""
import copy
import time

from fastapi import FastAPI
from fastapi.testclient import TestClient

from chatguus.default_tenants import DEMO_COMPANY
from chatguus.middleware.metrics import normalize_endpoint
from chatguus.middleware.rate_limit import RateLimitMiddleware
from chatguus.models import ChatRequest, Intent, IntentType
from chatguus.notifications import SheetsLogger
from chatguus.routes.chat import record_interaction


# =============================================================================
# Chat
# =============================================================================

class TestChat:
    """POST /chat"""

    def test_service_request_reply_and_action(self, client, openai_client):
        response = client.post("/chat", json={
            "message": "Mijn computer doet het niet, help!",
            "sessionId": "session-1",
            "tenantId": "koepel",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Hallo! Ik help je graag."
        assert data["sessionId"] == "session-1"
        assert data["action"]["type"] == "service_request_form"
        assert data["action"]["category"] == "it"
        openai_client.chat.completions.create.assert_awaited_once()

    def test_interaction_is_self_rated(self, client):
        client.post("/chat", json={"message": "Hallo daar", "sessionId": "session-2"})

        ratings = client.get("/ai-analytics", params={"action": "get_ai_ratings", "tenantId": "koepel"}).json()
        assert ratings["total"] == 1
        assert ratings["ratings"][0]["sessionId"] == "session-2"

    def test_missing_session_id(self, client):
        response = client.post("/chat", json={"message": "hallo"})
        assert response.status_code == 400
        assert response.json()["error"] == "Session ID is required"

    def test_invalid_message_has_details(self, client):
        response = client.post("/chat", json={"message": "", "sessionId": "s"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid message"
        assert body["details"]

    def test_tenant_from_header(self, client):
        response = client.post("/chat", json={"message": "Can I book an event?", "sessionId": "s"},
                               headers={"X-Tenant-Id": "demo-company"})
        assert response.status_code == 200

    def test_pipeline_failure_returns_polite_error(self, client, openai_client, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("chatguus.routes.chat.sanitize_bot_response", explode)
        response = client.post("/chat", json={"message": "hallo", "sessionId": "s9", "tenantId": "koepel"})

        assert response.status_code == 500
        body = response.json()
        assert "welcome@cupolaxs.nl" in body["message"]
        assert body["sessionId"] == "s9"


class TestInteractionRecording:
    """Background bookkeeping after a chat reply."""

    async def test_session_metadata_includes_language(self, store, koepel):
        body = ChatRequest(message="Hello", session_id="s-en", user_agent="pytest", url="https://example.com",
                           language="en")
        intent = Intent(type=IntentType.GENERAL, confidence=0.5)

        await record_interaction(store, SheetsLogger(), koepel, body, "Hello", "Hi there!", intent, None)

        session = await store.sessions.get("s-en")
        assert session["metadata"] == {"userAgent": "pytest", "url": "https://example.com", "language": "en"}
        assert [m["sender"] for m in session["messages"]] == ["user", "ai"]


# =============================================================================
# Satisfaction and analytics
# =============================================================================

class TestSatisfactionEndpoint:

    def test_submit_and_report(self, client):
        response = client.post("/satisfaction", json={
            "sessionId": "s1", "rating": 4, "tenantId": "koepel", "feedback": "Snel geholpen",
        })
        assert response.status_code == 200
        assert response.json()["success"] is True

        analytics = client.get("/satisfaction", params={"tenant": "koepel", "period": "7d"}).json()
        assert analytics["summary"]["totalRatings"] == 1
        assert analytics["metadata"]["dataSource"] == "live"

    def test_rating_out_of_range(self, client):
        response = client.post("/satisfaction", json={"sessionId": "s1", "rating": 9})
        assert response.status_code == 400


class TestAIAnalyticsEndpoint:

    def test_unknown_action(self, client):
        response = client.get("/ai-analytics", params={"action": "nope"})
        assert response.status_code == 400
        assert "Available actions" in response.json()["error"]

    def test_update_status_validation(self, client):
        response = client.post("/ai-analytics", params={"action": "update_missing_answer_status"},
                               json={"id": "x", "status": "done"})
        assert response.status_code == 400

        response = client.post("/ai-analytics", params={"action": "update_missing_answer_status"},
                               json={"id": "ghost", "status": "resolved"})
        assert response.status_code == 404

    def test_store_missing_answer_and_dashboard(self, client):
        client.post("/ai-analytics", params={"action": "store_missing_answer"},
                    json={"userQuestion": "Is er wifi?", "tenantId": "koepel", "priority": "high"})

        dashboard = client.get("/ai-analytics", params={"action": "get_dashboard_data"}).json()
        assert dashboard["missingAnswers"]["total"] == 1
        assert dashboard["missingAnswers"]["highPriority"] == 1

    def test_store_rating_rejects_bad_types(self, client):
        response = client.post("/ai-analytics", params={"action": "store_ai_rating"},
                               json={"userQuestion": 42, "rating": {"overall": 4.0}})
        assert response.status_code == 400
        assert response.json()["details"] == ["userQuestion"]

        response = client.post("/ai-analytics", params={"action": "store_ai_rating"},
                               json={"userQuestion": "hoi", "rating": {"overall": "abc"}})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid rating scores"

        response = client.post("/ai-analytics", params={"action": "store_ai_rating"},
                               json={"userQuestion": "hoi", "rating": {"overall": 4.0}})
        assert response.status_code == 200

    def test_health_check_reports_email(self, client):
        data = client.get("/ai-analytics", params={"action": "health_check", "tenantId": "koepel"}).json()
        assert data["status"] == "healthy"
        assert data["email"]["success"] is False
        assert data["email"]["message"] == "SMTP not configured"
        assert data["email"]["emailConfig"]["events"] == "irene@cupolaxs.nl"

    def test_csv_export_headers(self, client):
        response = client.get("/ai-analytics", params={"action": "export_data", "format": "csv"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]

    def test_bad_export_format(self, client):
        response = client.get("/ai-analytics", params={"action": "export_data", "format": "xml"})
        assert response.status_code == 400


class TestUsageEventEndpoint:
    """POST /analytics"""

    def test_event_accepted(self, client):
        response = client.post("/analytics", json={
            "event": "widget_opened",
            "user": {"fingerprint": "abc123def456", "session": "sess-1"},
            "context": {"url": "https://cupolaxs.nl/", "timestamp": "2024-05-01T10:00:00Z"},
        })
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["eventId"].startswith("evt_")

    def test_missing_context_rejected(self, client):
        response = client.post("/analytics", json={"event": "widget_opened"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid analytics payload"

    def test_only_post_allowed(self, client):
        assert client.get("/analytics").status_code == 405


# =============================================================================
# Tenants and widget
# =============================================================================

class TestTenantEndpoints:

    def test_list(self, client):
        data = client.get("/tenants").json()
        assert {t["id"] for t in data["tenants"]} == {"koepel", "demo-company"}

    def test_unknown_tenant(self, client):
        response = client.get("/tenants/unknown-id")
        assert response.status_code == 404
        assert response.json()["error"] == "Tenant unknown-id not found"

    def test_create_update_delete(self, client):
        data = copy.deepcopy(DEMO_COMPANY)
        data.pop("apiKey", None)
        data.update({"id": "acme", "name": "Acme", "domain": "acme.example.com"})

        created = client.post("/tenants", json=data)
        assert created.status_code == 201
        assert created.json()["widgetUrl"].endswith("/widget?tenant=acme")

        updated = client.put("/tenants/acme", json={"name": "Acme BV"})
        assert updated.json()["name"] == "Acme BV"

        assert client.delete("/tenants/acme").json() == {"success": True}
        assert client.get("/tenants/acme").status_code == 404

    def test_default_tenant_cannot_be_deleted(self, client):
        assert client.delete("/tenants/koepel").status_code == 400

    def test_css_and_config(self, client):
        css = client.get("/tenants/koepel/css")
        assert css.headers["content-type"].startswith("text/css")

        config = client.get("/tenants/koepel/config").json()
        assert config["tenantId"] == "koepel"
        assert config["welcomeMessages"]
        assert "routing" not in config


class TestWidget:

    def test_script_headers(self, client):
        response = client.get("/widget", params={"tenant": "koepel"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/javascript")
        assert response.headers["cache-control"] == "public, max-age=300"
        assert "CHATGUUS_CONFIG" in response.text

    def test_company_name_stays_inside_config_string(self, client):
        name = "Acme */ alert(1); /*"
        client.put("/tenants/koepel", json={"branding": {"companyName": name}})

        text = client.get("/widget", params={"tenant": "koepel"}).text
        header = text.splitlines()[0]
        assert header == "/* ChatGuusPT chat widget */"
        assert text.index("*/") == len(header) - 2
        assert '"companyName": "Acme */ alert(1); /*"' in text

    def test_unknown_tenant_gets_default_widget(self, client):
        response = client.get("/widget", params={"tenant": "ghost"})
        assert '"tenantId": "koepel"' in response.text


# =============================================================================
# Health, metrics and middleware
# =============================================================================

class TestInfrastructure:

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["integrations"]["openai"] is False

    def test_ready_without_store(self, client):
        data = client.get("/health/ready").json()
        assert data["status"] == "unhealthy"
        assert data["checks"]["redis"]["status"] == "unhealthy"

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "chatguus_http_requests_total" in response.text

    def test_options_preflight(self, client):
        response = client.options("/chat")
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_normalize_endpoint(self):
        assert normalize_endpoint("/tenants/koepel/css") == "/tenants/{tenant_id}/css"
        assert normalize_endpoint("/tenants/export") == "/tenants/export"
        assert normalize_endpoint("/items/42") == "/items/{id}"

    def test_rate_limit_applies_to_chat_posts_only(self):
        app = FastAPI()
        app.add_middleware(RateLimitMiddleware, max_requests=2, window_seconds=60)

        @app.post("/chat")
        async def chat():
            return {"ok": True}

        @app.get("/chat")
        async def chat_get():
            return {"ok": True}

        client = TestClient(app)
        assert [client.post("/chat").status_code for _ in range(3)] == [200, 200, 429]
        assert client.get("/chat").status_code == 200
        assert client.post("/chat", headers={"X-Forwarded-For": "10.0.0.9"}).status_code == 200

    def test_rate_limit_forgets_idle_clients(self):
        limiter = RateLimitMiddleware(FastAPI(), max_requests=2, window_seconds=60)
        limiter.requests = {
            "10.0.0.1": [time.time() - 120],
            "10.0.0.2": [time.time() - 90, time.time() - 5],
        }
        limiter._last_sweep = time.time() - 61

        assert limiter._is_rate_limited("10.0.0.3") is False
        assert set(limiter.requests) == {"10.0.0.2", "10.0.0.3"}
