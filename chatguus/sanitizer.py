"""Message sanitization and validation for chat traffic"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

import structlog

logger = structlog.get_logger(__name__)

ALLOWED_TAGS = ("strong", "em", "code", "br")

_BLOCK_TAGS = ("script", "style", "iframe", "object", "embed", "form")

# Blocks first, then any unterminated opening tag of the same family
DANGEROUS_PATTERNS = [
    re.compile(rf"<{tag}\b[^<]*(?:(?!</{tag}>)<[^<]*)*</{tag}\s*>", re.IGNORECASE)
    for tag in _BLOCK_TAGS
] + [
    re.compile(rf"</?{tag}\b[^>]*>?", re.IGNORECASE) for tag in _BLOCK_TAGS
] + [
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
]

SUSPICIOUS_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
]

_DISALLOWED_TAG = re.compile(r"<(?!/?(?:strong|em|code|br)\b)[^>]*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")

_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#x27;", "'"),
    ("&#x2F;", "/"),
    ("&nbsp;", " "),
    ("&amp;", "&"),
)

_MARKDOWN_RULES = (
    (re.compile(r"\*\*(.*?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"__(.*?)__"), r"<strong>\1</strong>"),
    (re.compile(r"\*(.*?)\*"), r"<em>\1</em>"),
    (re.compile(r"(?<![\w/])_(.+?)_(?!\w)"), r"<em>\1</em>"),
    (re.compile(r"`(.*?)`"), r"<code>\1</code>"),
    (re.compile(r"^[•\-] ", re.MULTILINE), "• "),
    (re.compile(r"^(\d+)\. ", re.MULTILINE), r"<strong>\1.</strong> "),
    (re.compile(r"\r?\n"), "<br>"),
)

_EXCESS_BREAKS = re.compile(r"(?:<br\s*/?>\s*){3,}", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

ELLIPSIS = "..."
_MAX_PASSES = 32


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


class MessageSanitizer:
    """Strip dangerous markup, bound length, render a small markdown subset"""

    def sanitize(
        self,
        content: Any,
        strip_html: bool = True,
        max_length: Optional[int] = None,
        allow_markdown: bool = True,
    ) -> str:
        if not content or not isinstance(content, str):
            return ""

        # Repeat the pass until nothing changes so the result is a fixed point
        current = content
        for _ in range(_MAX_PASSES):
            cleaned = self._single_pass(current, strip_html, max_length, allow_markdown)
            if cleaned == current:
                break
            current = cleaned
        return current

    def _single_pass(
        self,
        content: str,
        strip_html: bool,
        max_length: Optional[int],
        allow_markdown: bool,
    ) -> str:
        sanitized = content
        if strip_html:
            sanitized = self.decode_entities(sanitized)

        sanitized = self.remove_dangerous(sanitized)

        if strip_html:
            sanitized = self.strip_html(sanitized)

        if allow_markdown:
            sanitized = self.apply_markdown(sanitized)

        if max_length:
            sanitized = self.truncate(sanitized, max_length)

        return self.final_cleanup(sanitized)

    def decode_entities(self, content: str) -> str:
        for entity, char in _ENTITIES:
            content = content.replace(entity, char)
        return content

    def remove_dangerous(self, content: str) -> str:
        previous = None
        while previous != content:
            previous = content
            for pattern in DANGEROUS_PATTERNS:
                content = pattern.sub("", content)
        return content

    def strip_html(self, content: str) -> str:
        previous = None
        while previous != content:
            previous = content
            content = _DISALLOWED_TAG.sub("", content)
        return content

    def apply_markdown(self, content: str) -> str:
        for pattern, replacement in _MARKDOWN_RULES:
            content = pattern.sub(replacement, content)
        return content

    def truncate(self, content: str, max_length: int) -> str:
        if len(content) <= max_length:
            return content

        # The marker counts toward the limit
        limit = max(max_length - len(ELLIPSIS), 0)
        truncated = content[:limit]
        last_space = truncated.rfind(" ")
        if last_space > limit * 0.8:
            truncated = truncated[:last_space]
        return truncated.rstrip() + ELLIPSIS

    def final_cleanup(self, content: str) -> str:
        content = _WHITESPACE.sub(" ", content)
        content = _EXCESS_BREAKS.sub("<br><br>", content)
        return content.strip()

    def validate(self, content: Any, max_length: int = 2000, min_length: int = 1) -> ValidationResult:
        """Advisory check; callers reject requests that fail it"""
        errors: List[str] = []

        if not content:
            errors.append("Message content is required")
        if not isinstance(content, str):
            errors.append("Message content must be a string")
            return ValidationResult(is_valid=False, errors=errors)

        if len(content) > max_length:
            errors.append(f"Message too long (max {max_length} characters)")
        if len(content) < min_length:
            errors.append(f"Message too short (min {min_length} characters)")

        if any(pattern.search(content) for pattern in SUSPICIOUS_PATTERNS):
            errors.append("Message contains potentially dangerous content")

        return ValidationResult(is_valid=not errors, errors=errors)

    def extract_plain_text(self, content: str) -> str:
        if not content:
            return ""
        text = _ANY_TAG.sub("", content)
        text = re.sub(r"\*\*(.*?)\*\*", r"\1", text)
        text = re.sub(r"\*(.*?)\*", r"\1", text)
        text = re.sub(r"`(.*?)`", r"\1", text)
        return _WHITESPACE.sub(" ", text).strip()

    def format_for_logging(self, content: str) -> str:
        return self.truncate(self.extract_plain_text(content), 500)


message_sanitizer = MessageSanitizer()


def sanitize_user_input(content: Any, **options) -> str:
    params = {"strip_html": True, "max_length": 1000, "allow_markdown": False}
    params.update(options)
    return message_sanitizer.sanitize(content, **params)


def sanitize_bot_response(content: Any, **options) -> str:
    params = {"strip_html": False, "max_length": 2000, "allow_markdown": True}
    params.update(options)
    return message_sanitizer.sanitize(content, **params)


def validate_chat_message(content: Any) -> ValidationResult:
    return message_sanitizer.validate(content, max_length=1000, min_length=1)
