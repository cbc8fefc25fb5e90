"""Forward complete service requests and event inquiries to the right team"""

import asyncio
import smtplib
import time
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from jinja2 import Environment, FileSystemLoader, select_autoescape

from . import keywords as kw
from .config import settings
from .exceptions import UpstreamError
from .metrics import record_email
from .models import Intent, RequestContext, RoutingResult, Tenant
from .sanitizer import message_sanitizer

logger = structlog.get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

SERVICE_SUBJECT = "🤖 Nieuwe servicevraag via ChatGuusPT - {department}"
EVENT_SUBJECT = "🎉 Nieuwe event uitvraag via ChatGuusPT"

# Department key -> (routing table key, settings fallback attribute)
_ADDRESS_KEYS = {
    "it": ("it", "email_it"),
    "cleaning": ("cleaning", "email_cleaning"),
    "existing_event": ("general", "email_general"),
    "general": ("general", "email_general"),
    "events": ("events", "email_events"),
}

_CATEGORY_DEPARTMENTS = ("it", "cleaning", "existing_event")


class EmailRouter:
    """Pick a department and address, render the HTML body and send it"""

    def __init__(self):
        self.template_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
        )
        self.emails_sent = 0
        self.emails_logged = 0

        if not settings.smtp_configured:
            logger.warning("⚠️ SMTP not configured - emails will be logged only")

    def department_key(self, intent: Intent, text: str) -> str:
        """Intent category wins when it names a department, else scan the text"""
        if intent.category in _CATEGORY_DEPARTMENTS:
            return intent.category
        return kw.department_for(text)

    def address_for(self, tenant: Tenant, department_key: str) -> str:
        routing_key, fallback_attr = _ADDRESS_KEYS.get(department_key, _ADDRESS_KEYS["general"])
        return (
            tenant.routing.get(routing_key)
            or tenant.routing.get("general")
            or getattr(settings, fallback_attr)
        )

    async def route_service_request(
        self,
        intent: Intent,
        context: RequestContext,
        tenant: Tenant,
    ) -> RoutingResult:
        key = self.department_key(intent, context.message)
        department = kw.DEPARTMENTS[key]
        target_email = self.address_for(tenant, key)

        html = self.render(
            "service_request_email.html",
            context,
            tenant,
            department=department,
            color=tenant.branding.primary_color,
            priority=intent.priority.value,
            urgent=intent.urgent,
        )
        message_id = await self.send_email(
            target_email,
            SERVICE_SUBJECT.format(department=department),
            html,
            department=key,
        )

        return RoutingResult(target_email=target_email, department=department,
                             email_sent=True, message_id=message_id)

    async def route_event_inquiry(
        self,
        intent: Intent,
        context: RequestContext,
        tenant: Tenant,
    ) -> RoutingResult:
        target_email = self.address_for(tenant, "events")
        department = kw.DEPARTMENTS["events"]

        html = self.render("event_inquiry_email.html", context, tenant)
        message_id = await self.send_email(target_email, EVENT_SUBJECT, html, department="events")

        return RoutingResult(target_email=target_email, department=department,
                             email_sent=True, message_id=message_id)

    def render(self, template_name: str, context: RequestContext, tenant: Tenant, **extra) -> str:
        template = self.template_env.get_template(template_name)
        return template.render(
            message_lines=context.message.splitlines() or [""],
            session_id=context.session_id,
            url=context.url,
            user_agent=context.user_agent,
            timestamp=datetime.now().strftime("%d-%m-%Y %H:%M:%S"),
            company=tenant.branding.company_name,
            contact_email=tenant.general_email or settings.email_general,
            **extra,
        )

    async def send_email(self, to: str, subject: str, html: str, department: str = "general") -> str:
        """Send one HTML email and return its Message-ID.

        Without an SMTP host the email is only logged and a synthetic
        ``logged-only-<ms>`` id is returned.
        """
        if not settings.smtp_configured:
            self.emails_logged += 1
            record_email(department, "logged")
            logger.info("📧 Email logged (SMTP not configured)",
                        to=to,
                        subject=subject,
                        preview=message_sanitizer.format_for_logging(html)[:200])
            return f"logged-only-{int(time.time() * 1000)}"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.email_from
        msg["To"] = to
        msg["Message-ID"] = make_msgid(domain=_sender_domain())
        msg.attach(MIMEText(message_sanitizer.extract_plain_text(html), "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            record_email(department, "failed")
            logger.error("❌ Email send failed", to=to, error=str(e))
            raise UpstreamError(f"Email delivery failed: {e}", service="smtp")

        self.emails_sent += 1
        record_email(department, "sent")
        logger.info("✅ Email sent", to=to, message_id=msg["Message-ID"])
        return msg["Message-ID"]

    def _deliver(self, msg: MIMEMultipart):
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_user and settings.smtp_pass:
                server.login(settings.smtp_user, settings.smtp_pass)
            server.send_message(msg)

    async def test_email_config(self) -> Dict[str, Any]:
        """Check that the SMTP server accepts a connection"""
        if not settings.smtp_configured:
            return {"success": False, "message": "SMTP not configured"}

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._noop)
            return {"success": True, "message": "Email configuration valid"}
        except (smtplib.SMTPException, OSError) as e:
            return {"success": False, "message": str(e)}

    def _noop(self):
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_user and settings.smtp_pass:
                server.login(settings.smtp_user, settings.smtp_pass)
            server.noop()

    def routing_stats(self, tenant: Optional[Tenant] = None) -> Dict[str, Any]:
        routing = dict(tenant.routing) if tenant else {
            "general": settings.email_general,
            "it": settings.email_it,
            "cleaning": settings.email_cleaning,
            "events": settings.email_events,
        }
        departments = []
        for key in ("general", "it", "cleaning", "events"):
            address = self.address_for(tenant, key) if tenant else routing[key]
            departments.append(f"{kw.DEPARTMENTS[key]} ({address})")

        return {
            "emailConfig": routing,
            "smtpConfigured": settings.smtp_configured,
            "availableDepartments": departments,
            "emailsSent": self.emails_sent,
            "emailsLogged": self.emails_logged,
        }


def _sender_domain() -> str:
    address = settings.email_from.rsplit("@", 1)
    return address[1].strip(" >") if len(address) == 2 else "chatguus.local"
