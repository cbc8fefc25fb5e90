"""
Unit tests for the message sanitizer.
"""
import pytest

from chatguus.sanitizer import (
    message_sanitizer,
    sanitize_bot_response,
    sanitize_user_input,
    validate_chat_message,
)


class TestSanitize:
    """Cleaning of user input and bot replies."""

    def test_script_block_removed_with_content(self):
        cleaned = sanitize_user_input("Hallo <script>alert('x')</script> daar")
        assert "script" not in cleaned
        assert "alert" not in cleaned
        assert cleaned == "Hallo daar"

    def test_event_handlers_and_js_urls_removed(self):
        cleaned = sanitize_user_input('<img src=x onerror="steal()"> klik javascript:alert(1)')
        assert "onerror" not in cleaned
        assert "javascript:" not in cleaned.lower()

    def test_encoded_markup_cannot_smuggle_tags(self):
        cleaned = sanitize_user_input("&lt;script&gt;alert(1)&lt;/script&gt;ok")
        assert "<script" not in cleaned.lower()
        assert "ok" in cleaned

    @pytest.mark.parametrize("text", [
        "Mijn computer doet het niet, help!",
        "<b>vet</b> en <i>schuin</i>",
        "&lt;script&gt;x&lt;/script&gt; &amp;lt;b&amp;gt;",
        "**bold** *em* `code`\n- item",
        "a" * 1500,
    ])
    def test_user_sanitization_is_idempotent(self, text):
        once = sanitize_user_input(text)
        assert sanitize_user_input(once) == once

    def test_bot_response_is_idempotent(self):
        once = sanitize_bot_response("**Let op:** bel *snel*\n\n\n\nof mail `support`")
        assert sanitize_bot_response(once) == once

    def test_truncation_respects_limit_including_ellipsis(self):
        cleaned = sanitize_user_input("woord " * 400)
        assert len(cleaned) <= 1000
        assert cleaned.endswith("...")

    def test_markdown_rendered_for_bot(self):
        cleaned = sanitize_bot_response("Dit is **belangrijk** en *handig*")
        assert "<strong>belangrijk</strong>" in cleaned
        assert "<em>handig</em>" in cleaned

    def test_non_string_yields_empty(self):
        assert sanitize_user_input(None) == ""
        assert sanitize_user_input(42) == ""


class TestValidate:
    """Advisory validation used to reject chat requests."""

    def test_valid_message(self):
        result = validate_chat_message("Hoe laat gaan jullie open?")
        assert result.is_valid
        assert result.errors == []

    def test_empty_message(self):
        result = validate_chat_message("")
        assert not result.is_valid
        assert "Message content is required" in result.errors

    def test_non_string(self):
        assert not validate_chat_message({"text": "hi"}).is_valid

    def test_too_long(self):
        result = validate_chat_message("x" * 1001)
        assert not result.is_valid
        assert any("too long" in error for error in result.errors)

    def test_suspicious_content(self):
        result = validate_chat_message("<script>alert(1)</script>")
        assert not result.is_valid


class TestHelpers:

    def test_plain_text_extraction(self):
        assert message_sanitizer.extract_plain_text("<strong>Hoi</strong> **daar**") == "Hoi daar"

    def test_logging_format_is_bounded(self):
        assert len(message_sanitizer.format_for_logging("x " * 1000)) <= 500
