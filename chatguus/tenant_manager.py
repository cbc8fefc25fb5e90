"""Multi-tenancy: tenant registry, resolution and white-label artifacts"""

import re
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pydantic
import structlog
from jinja2 import Template

from .cache import TTLCache
from .config import settings
from .default_tenants import DEFAULT_TENANTS
from .exceptions import NotFoundError, ValidationError
from .models import Tenant, TenantSummary

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("id", "name", "domain", "branding", "personality", "routing")
REQUIRED_BRANDING = ("primaryColor", "companyName", "botName", "welcomeMessage")
COLOR_FIELDS = ("primaryColor", "secondaryColor")
NESTED_SECTIONS = ("branding", "personality", "features")

EXPORT_VERSION = "1.0.0"

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")
_EMAIL = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)+$")
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)

DEFAULT_FONT = '-apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif'

CSS_TEMPLATE = Template("""\
:root {
  --tenant-primary: {{ b.primary_color }};
  --tenant-secondary: {{ b.secondary_color }};
  --tenant-company: "{{ b.company_name | replace('"', '') }}";
  --tenant-bot-name: "{{ b.bot_name | replace('"', '') }}";
}
.chatbot-widget.tenant-{{ tenant_id }} {
  --chatguus-primary: {{ b.primary_color }};
  --chatguus-secondary: {{ b.secondary_color }};
  font-family: {{ font_family }};
  font-size: {{ font_size }};
}
.chatbot-widget.tenant-{{ tenant_id }} .chatguus-window {
  border-radius: {{ border_radius }};
}
.chatbot-widget.tenant-{{ tenant_id }} .chatguus-header {
  background: linear-gradient(135deg, {{ b.primary_color }} 0%, {{ hover }} 100%);
}
.chatbot-widget.tenant-{{ tenant_id }} .chatguus-toggle,
.chatbot-widget.tenant-{{ tenant_id }} .chatguus-send,
.chatbot-widget.tenant-{{ tenant_id }} .chatguus-message.user {
  background: {{ b.primary_color }};
}
.chatbot-widget.tenant-{{ tenant_id }} .chatguus-send:hover {
  background: {{ hover }};
}
{% if b.custom_css %}{{ b.custom_css }}
{% endif %}""")


def _adjust_channel(value: int, amount: int) -> int:
    return max(0, min(255, value + amount))


def _adjust_color(color: str, amount: int) -> str:
    num = int(color.lstrip("#"), 16)
    red = _adjust_channel(num >> 16, amount)
    green = _adjust_channel((num >> 8) & 0xFF, amount)
    blue = _adjust_channel(num & 0xFF, amount)
    return f"#{red:02x}{green:02x}{blue:02x}"


def darken_color(color: str, percent: float) -> str:
    """Darken each RGB channel by round(2.55 * percent), clamped to 0..255"""
    return _adjust_color(color, -round(2.55 * percent))


def lighten_color(color: str, percent: float) -> str:
    return _adjust_color(color, round(2.55 * percent))


def normalize_domain(value: str) -> str:
    """Bare host name: no scheme, www. prefix, path or port"""
    host = _SCHEME.sub("", value.strip().lower())
    host = host.split("/", 1)[0].split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return host


def generate_api_key() -> str:
    return f"tk_{secrets.token_hex(16)}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TenantManager:
    """In-memory tenant registry seeded with the default tenants.

    Derived artifacts (CSS, widget config, system prompt) live in the
    injected TTL cache under ``tenant:<id>:*`` and are dropped whenever the
    tenant changes.
    """

    def __init__(
        self,
        cache: TTLCache,
        default_tenant_id: Optional[str] = None,
        seed: Optional[List[Dict[str, Any]]] = None,
    ):
        self.cache = cache
        self.default_tenant_id = default_tenant_id or settings.default_tenant_id
        self._tenants: Dict[str, Tenant] = {}

        for data in DEFAULT_TENANTS if seed is None else seed:
            self._add(data)

        if self.default_tenant_id not in self._tenants:
            raise ValueError(f"Default tenant {self.default_tenant_id} is not configured")

        logger.info("Tenants loaded", count=len(self._tenants), default=self.default_tenant_id)

    # --- Lookup ------------------------------------------------------------

    @property
    def default(self) -> Tenant:
        return self._tenants[self.default_tenant_id]

    def get(self, tenant_id: str) -> Tenant:
        tenant = self._tenants.get(tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")
        return tenant

    def find(self, tenant_id: Optional[str]) -> Optional[Tenant]:
        return self._tenants.get(tenant_id) if tenant_id else None

    def get_by_domain(self, domain: Optional[str]) -> Optional[Tenant]:
        if not domain:
            return None
        host = normalize_domain(domain)
        for tenant in self._tenants.values():
            if normalize_domain(tenant.domain) == host:
                return tenant
        return None

    def get_by_api_key(self, api_key: Optional[str]) -> Optional[Tenant]:
        if not api_key:
            return None
        for tenant in self._tenants.values():
            if tenant.api_key and secrets.compare_digest(tenant.api_key, api_key):
                return tenant
        return None

    def list(self) -> List[Tenant]:
        return list(self._tenants.values())

    def resolve(
        self,
        tenant_id: Optional[str] = None,
        header: Optional[str] = None,
        domain: Optional[str] = None,
    ) -> Tenant:
        """id, then header, then domain, then the default; never fails"""
        candidates = (
            ("id", self.find(tenant_id)),
            ("header", self.find(header)),
            ("domain", self.get_by_domain(domain)),
        )
        for source, tenant in candidates:
            if tenant is not None and tenant.active:
                logger.debug("Tenant resolved", tenant=tenant.id, source=source)
                return tenant

        if tenant_id or header:
            logger.info("Unknown tenant, using default",
                        requested=tenant_id or header, default=self.default_tenant_id)
        return self.default

    # --- Mutation ----------------------------------------------------------

    def create(self, data: Dict[str, Any]) -> Tenant:
        self.validate(data)
        if data["id"] in self._tenants:
            raise ValidationError(f"Tenant {data['id']} already exists")

        tenant = self._add({**data, "apiKey": data.get("apiKey") or generate_api_key()})
        logger.info("Tenant created", tenant=tenant.id, domain=tenant.domain)
        return tenant

    def update(self, tenant_id: str, updates: Dict[str, Any]) -> Tenant:
        existing = self.get(tenant_id)

        merged = existing.dump()
        for key, value in (updates or {}).items():
            if key in NESTED_SECTIONS and isinstance(value, dict):
                merged[key] = {**merged.get(key, {}), **value}
            else:
                merged[key] = value
        merged["id"] = tenant_id
        merged["createdAt"] = existing.created_at.isoformat() if existing.created_at else None
        merged["updatedAt"] = _now().isoformat()

        self.validate(merged)
        tenant = self._build(merged)
        self._tenants[tenant_id] = tenant
        self.invalidate(tenant_id)
        logger.info("Tenant updated", tenant=tenant_id, fields=sorted((updates or {}).keys()))
        return tenant

    def delete(self, tenant_id: str) -> None:
        if tenant_id == self.default_tenant_id:
            raise ValidationError(f"Cannot delete default tenant {tenant_id}")
        if tenant_id not in self._tenants:
            raise NotFoundError(f"Tenant {tenant_id} not found")

        del self._tenants[tenant_id]
        self.invalidate(tenant_id)
        logger.info("Tenant deleted", tenant=tenant_id)

    def invalidate(self, tenant_id: str) -> None:
        self.cache.invalidate_prefix(f"tenant:{tenant_id}:")

    def _add(self, data: Dict[str, Any]) -> Tenant:
        now = _now().isoformat()
        tenant = self._build({"createdAt": now, "updatedAt": now, "active": True, **data})
        self._tenants[tenant.id] = tenant
        self.invalidate(tenant.id)
        return tenant

    def _build(self, data: Dict[str, Any]) -> Tenant:
        try:
            return Tenant.model_validate(data)
        except pydantic.ValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise ValidationError("Invalid tenant configuration", errors=errors)

    # --- Validation --------------------------------------------------------

    def validate(self, data: Dict[str, Any]) -> None:
        if not isinstance(data, dict):
            raise ValidationError("Tenant configuration must be an object")

        missing = [field for field in REQUIRED_FIELDS if not data.get(field)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", errors=missing)

        branding = data["branding"]
        if not isinstance(branding, dict):
            raise ValidationError("branding must be an object")

        missing_branding = [field for field in REQUIRED_BRANDING if not branding.get(field)]
        if missing_branding:
            raise ValidationError(
                f"Missing required branding fields: {', '.join(missing_branding)}",
                errors=missing_branding,
            )

        bad_colors = [
            field for field in COLOR_FIELDS
            if branding.get(field) and not _HEX_COLOR.match(str(branding[field]))
        ]
        if bad_colors:
            raise ValidationError(
                f"Invalid color format for: {', '.join(bad_colors)} (expected #rrggbb)",
                errors=bad_colors,
            )

        routing = data["routing"]
        if not isinstance(routing, dict):
            raise ValidationError("routing must be an object mapping departments to emails")

        bad_addresses = sorted(
            department for department, address in routing.items()
            if not isinstance(address, str) or not _EMAIL.match(address)
        )
        if bad_addresses:
            raise ValidationError(
                f"Invalid email address for routing: {', '.join(bad_addresses)}",
                errors=bad_addresses,
            )

    # --- White-label artifacts ----------------------------------------------

    def generate_css(self, tenant: Tenant) -> str:
        return self.cache.get_or_set(f"tenant:{tenant.id}:css", lambda: self._render_css(tenant))

    def _render_css(self, tenant: Tenant) -> str:
        branding = tenant.branding
        return CSS_TEMPLATE.render(
            b=branding,
            tenant_id=tenant.id,
            hover=darken_color(branding.primary_color, 10),
            font_family=branding.font_family or DEFAULT_FONT,
            font_size=branding.font_size or "14px",
            border_radius=branding.border_radius or "12px",
        )

    def branding_config(self, tenant: Tenant) -> Dict[str, Any]:
        branding = tenant.branding
        return {
            "colors": {
                "primary": branding.primary_color,
                "secondary": branding.secondary_color,
                "primaryHover": darken_color(branding.primary_color, 10),
                "primaryLight": lighten_color(branding.primary_color, 20),
            },
            "typography": {
                "fontFamily": branding.font_family or DEFAULT_FONT,
                "fontSize": branding.font_size or "14px",
            },
            "layout": {
                "borderRadius": branding.border_radius or "12px",
                "shadow": branding.shadow or "0 8px 32px rgba(0, 0, 0, 0.1)",
                "position": branding.position or "bottom-right",
            },
            "assets": {
                "logo": branding.logo,
                "avatar": branding.avatar,
                "favicon": branding.favicon or "/assets/default-favicon.ico",
            },
            "customCSS": branding.custom_css,
        }

    def widget_config(self, tenant: Tenant, base_url: str = "") -> Dict[str, Any]:
        """Public configuration handed to the widget; no routing addresses"""
        base = (base_url or settings.public_base_url).rstrip("/")
        key = f"tenant:{tenant.id}:widget:{base}"
        return self.cache.get_or_set(key, lambda: {
            "tenantId": tenant.id,
            "branding": tenant.branding.dump(),
            "personality": tenant.personality.dump(),
            "features": tenant.features.dump(),
            "apiEndpoint": f"{base}/chat",
            "satisfactionEndpoint": f"{base}/satisfaction",
            "widgetEndpoint": f"{base}/widget?tenant={tenant.id}",
        })

    def summary(self, tenant: Tenant) -> TenantSummary:
        return TenantSummary(
            id=tenant.id,
            name=tenant.name,
            domain=tenant.domain,
            active=tenant.active,
            features=tenant.features,
            created_at=tenant.created_at,
        )

    # --- Reporting ---------------------------------------------------------

    def stats(self) -> Dict[str, Any]:
        tenants = self.list()
        by_language: Dict[str, int] = {}
        for tenant in tenants:
            language = tenant.personality.language
            by_language[language] = by_language.get(language, 0) + 1

        return {
            "totalTenants": len(tenants),
            "activeTenants": sum(1 for t in tenants if t.active),
            "tenantsByFeature": {
                "serviceRequests": sum(1 for t in tenants if t.features.service_requests),
                "eventInquiries": sum(1 for t in tenants if t.features.event_inquiries),
                "faqSystem": sum(1 for t in tenants if t.features.faq_system),
                "emailRouting": sum(1 for t in tenants if t.features.email_routing),
                "googleSheets": sum(1 for t in tenants if t.features.google_sheets),
            },
            "tenantsByLanguage": by_language,
        }

    def export(self) -> Dict[str, Any]:
        return {
            "version": EXPORT_VERSION,
            "exportDate": _now().isoformat(),
            "tenants": [tenant.dump() for tenant in self.list()],
        }

    def import_(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Add or replace tenants from an export; bad entries are reported, not fatal"""
        tenants = data.get("tenants") if isinstance(data, dict) else None
        if not isinstance(tenants, list):
            raise ValidationError("Invalid tenant data format")

        imported = 0
        errors: List[str] = []
        for entry in tenants:
            label = entry.get("id", "?") if isinstance(entry, dict) else "?"
            try:
                self.validate(entry)
                self._add(entry)
                imported += 1
            except ValidationError as e:
                errors.append(f"{label}: {e.detail}")

        logger.info("Tenants imported", imported=imported, errors=len(errors))
        return {"imported": imported, "errors": errors}
