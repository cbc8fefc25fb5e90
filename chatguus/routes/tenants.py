"""Tenant administration endpoints"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import Response

from ..config import settings
from ..dependencies import get_prompt_manager, get_tenant_manager
from ..prompt_manager import PromptManager
from ..tenant_manager import TenantManager

router = APIRouter()


def base_url(request: Request) -> str:
    return (settings.public_base_url or str(request.base_url)).rstrip("/")


@router.get("")
async def list_tenants(tenants: TenantManager = Depends(get_tenant_manager)):
    return {
        "tenants": [tenants.summary(tenant).dump() for tenant in tenants.list()],
        "stats": tenants.stats(),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_tenant(
    request: Request,
    data: Dict[str, Any] = Body(...),
    tenants: TenantManager = Depends(get_tenant_manager),
):
    tenant = tenants.create(data)
    base = base_url(request)
    return {
        "success": True,
        "tenant": tenant.dump(),
        "widgetUrl": f"{base}/widget?tenant={tenant.id}",
        "apiEndpoint": f"{base}/chat",
    }


# Declared before the /{tenant_id} routes so they are not taken for ids
@router.get("/export")
async def export_tenants(tenants: TenantManager = Depends(get_tenant_manager)):
    return tenants.export()


@router.post("/import")
async def import_tenants(
    data: Dict[str, Any] = Body(...),
    tenants: TenantManager = Depends(get_tenant_manager),
):
    return tenants.import_(data)


@router.get("/{tenant_id}")
async def get_tenant(tenant_id: str, tenants: TenantManager = Depends(get_tenant_manager)):
    return tenants.get(tenant_id).dump()


@router.put("/{tenant_id}")
async def update_tenant(
    tenant_id: str,
    updates: Dict[str, Any] = Body(...),
    tenants: TenantManager = Depends(get_tenant_manager),
):
    return tenants.update(tenant_id, updates).dump()


@router.delete("/{tenant_id}")
async def delete_tenant(tenant_id: str, tenants: TenantManager = Depends(get_tenant_manager)):
    tenants.delete(tenant_id)
    return {"success": True}


@router.get("/{tenant_id}/css")
async def tenant_css(tenant_id: str, tenants: TenantManager = Depends(get_tenant_manager)):
    css = tenants.generate_css(tenants.get(tenant_id))
    return Response(content=css, media_type="text/css")


@router.get("/{tenant_id}/config")
async def tenant_config(
    tenant_id: str,
    request: Request,
    tenants: TenantManager = Depends(get_tenant_manager),
    prompts: PromptManager = Depends(get_prompt_manager),
):
    tenant = tenants.get(tenant_id)
    return {
        **tenants.widget_config(tenant, base_url(request)),
        "brandingConfig": tenants.branding_config(tenant),
        "welcomeMessages": prompts.welcome_messages(tenant),
        "conversationStarters": prompts.conversation_starters(tenant),
        "quickReplies": prompts.quick_replies("general", tenant.personality.language),
    }
