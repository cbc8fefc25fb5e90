"""Outbound notifications: Slack alerts and Google Sheets logging"""

import asyncio
from typing import Any, Dict, List, Optional

import gspread
import structlog

from .config import settings
from .exceptions import ConfigurationError
from .utils.http_client import post_json

logger = structlog.get_logger(__name__)

RATINGS_SHEET = "Satisfaction Ratings"
INTERACTIONS_SHEET = "Interactions"

RATING_COLUMNS = [
    "id", "sessionId", "tenantId", "rating", "feedback", "categories",
    "sessionDuration", "messageCount", "wasResolved", "sentiment", "category", "timestamp",
]
INTERACTION_COLUMNS = [
    "timestamp", "sessionId", "tenantId", "intentType", "confidence",
    "userMessage", "botResponse", "action", "emailSent", "department",
]


def _section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


class SlackNotifier:
    """Posts alerts to the configured incoming webhook"""

    def build_low_rating_message(self, rating: Dict[str, Any]) -> Dict[str, Any]:
        blocks = [
            _section(
                f"*Low Rating Alert* 🚨\n\n*Rating:* {rating['rating']}/5 ⭐\n"
                f"*Tenant:* {rating.get('tenantId')}\n*Session:* {rating.get('sessionId')}"
            )
        ]
        if rating.get("feedback"):
            blocks.append(_section(f"*Feedback:* \"{rating['feedback']}\""))

        blocks.append(_section(
            "*Session Details:*\n"
            f"• Duration: {round((rating.get('sessionDuration') or 0) / 1000)}s\n"
            f"• Messages: {rating.get('messageCount', 0)}\n"
            f"• Resolved: {'Yes' if rating.get('wasResolved') else 'No'}\n"
            f"• Escalated: {'Yes' if rating.get('wasEscalated') else 'No'}"
        ))
        return {"text": "🚨 Low Satisfaction Rating Alert", "blocks": blocks}

    async def notify_low_rating(self, rating: Dict[str, Any]) -> None:
        if not settings.slack_configured:
            raise ConfigurationError("Slack webhook not configured", integration="slack")

        await post_json(
            settings.slack_webhook_url,
            self.build_low_rating_message(rating),
            timeout=settings.webhook_timeout_seconds,
        )
        logger.info("Low rating alert sent", rating_id=rating.get("id"), rating=rating.get("rating"))


class SheetsLogger:
    """Appends rows to worksheets of the configured spreadsheet"""

    def __init__(self):
        self._spreadsheet = None

    @property
    def configured(self) -> bool:
        return settings.sheets_configured

    def _open(self, sheet_name: str):
        if self._spreadsheet is None:
            client = gspread.service_account(filename=settings.google_service_account_file)
            self._spreadsheet = client.open_by_key(settings.google_sheets_id)
        try:
            return self._spreadsheet.worksheet(sheet_name)
        except gspread.WorksheetNotFound:
            return self._spreadsheet.add_worksheet(title=sheet_name, rows=1000, cols=26)

    def _append(self, sheet_name: str, columns: List[str], row: Dict[str, Any]) -> None:
        worksheet = self._open(sheet_name)
        if not worksheet.row_values(1):
            worksheet.append_row(columns, value_input_option="RAW")
        worksheet.append_row([_cell(row.get(column)) for column in columns], value_input_option="RAW")

    async def append(self, sheet_name: str, columns: List[str], row: Dict[str, Any]) -> bool:
        """Append one row; False (logged) when Sheets is not configured"""
        if not self.configured:
            logger.debug("Google Sheets not configured, row skipped", sheet=sheet_name)
            return False

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._append, sheet_name, columns, row)
        return True

    async def append_rating(self, rating: Dict[str, Any]) -> bool:
        analysis = rating.get("analysis") or {}
        row = {
            **rating,
            "categories": ",".join(rating.get("categories") or []),
            "sentiment": analysis.get("sentiment"),
            "category": analysis.get("category"),
        }
        return await self.append(RATINGS_SHEET, RATING_COLUMNS, row)

    async def append_interaction(
        self,
        session_id: str,
        tenant_id: str,
        user_message: str,
        bot_response: str,
        intent: Dict[str, Any],
        action: Optional[Dict[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> bool:
        action = action or {}
        row = {
            "timestamp": timestamp,
            "sessionId": session_id,
            "tenantId": tenant_id,
            "intentType": intent.get("type"),
            "confidence": intent.get("confidence"),
            "userMessage": user_message,
            "botResponse": bot_response,
            "action": action.get("type"),
            "emailSent": action.get("emailSent"),
            "department": action.get("department"),
        }
        return await self.append(INTERACTIONS_SHEET, INTERACTION_COLUMNS, row)


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return value
