"""Embeddable widget script"""

from pathlib import Path

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from jinja2 import Environment, FileSystemLoader

from ..config import settings
from ..dependencies import get_tenant_manager
from ..tenant_manager import TenantManager

logger = structlog.get_logger(__name__)
router = APIRouter()

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
JS_MEDIA_TYPE = "application/javascript"

BASE_CSS = """
.chatbot-widget .chatguus-toggle { position: fixed; width: 60px; height: 60px; border: none; border-radius: 50%;
  color: #fff; font-size: 26px; cursor: pointer; box-shadow: 0 4px 16px rgba(0, 0, 0, 0.2); z-index: 10001; }
.chatbot-widget .chatguus-window { position: fixed; width: 350px; height: 500px; background: #fff; display: none;
  flex-direction: column; overflow: hidden; box-shadow: 0 8px 32px rgba(0, 0, 0, 0.1); z-index: 10000; }
.chatbot-widget.open .chatguus-window { display: flex; }
.chatbot-widget.chatguus-bottom-right .chatguus-toggle, .chatbot-widget.chatguus-bottom-right .chatguus-window { right: 20px; bottom: 20px; }
.chatbot-widget.chatguus-bottom-left .chatguus-toggle, .chatbot-widget.chatguus-bottom-left .chatguus-window { left: 20px; bottom: 20px; }
.chatbot-widget .chatguus-header { color: #fff; padding: 14px 16px; font-weight: 600; display: flex; justify-content: space-between; }
.chatbot-widget .chatguus-close { background: none; border: none; color: #fff; font-size: 20px; cursor: pointer; }
.chatbot-widget .chatguus-messages { flex: 1; overflow-y: auto; padding: 12px; }
.chatbot-widget .chatguus-message { margin: 6px 0; padding: 8px 12px; border-radius: 12px; max-width: 80%; }
.chatbot-widget .chatguus-message.bot { background: #f1f5f9; }
.chatbot-widget .chatguus-message.user { color: #fff; margin-left: auto; }
.chatbot-widget .chatguus-message.system { font-size: 12px; color: #64748b; text-align: center; max-width: 100%; }
.chatbot-widget .chatguus-form { display: flex; border-top: 1px solid #e2e8f0; }
.chatbot-widget .chatguus-input { flex: 1; border: none; padding: 12px; outline: none; }
.chatbot-widget .chatguus-send { border: none; color: #fff; padding: 0 16px; cursor: pointer; }
"""

ERROR_STUB = """console.error('ChatGuusPT widget failed to load');
window.ChatGuus = { init: function () { console.error('ChatGuusPT widget not available'); return null; } };
"""

_env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), autoescape=False)


def render_widget(tenants: TenantManager, tenant_id: str, base_url: str) -> str:
    tenant = tenants.resolve(tenant_id=tenant_id)
    return _env.get_template("widget.js.j2").render(
        tenant_id=tenant.id,
        config=tenants.widget_config(tenant, base_url),
        css=tenants.generate_css(tenant),
        base_css=BASE_CSS,
    )


@router.get("/widget")
async def widget(
    request: Request,
    tenant: str = Query(None),
    tenants: TenantManager = Depends(get_tenant_manager),
):
    base = (settings.public_base_url or str(request.base_url)).rstrip("/")
    try:
        script = render_widget(tenants, tenant, base)
    except Exception as e:
        logger.error("Widget render failed", tenant=tenant, error=str(e))
        return Response(content=ERROR_STUB, status_code=500, media_type=JS_MEDIA_TYPE)

    return Response(
        content=script,
        media_type=JS_MEDIA_TYPE,
        headers={"Cache-Control": f"public, max-age={settings.widget_cache_max_age}"},
    )
