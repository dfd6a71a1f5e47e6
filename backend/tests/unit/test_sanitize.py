"""Tests for comment content sanitization."""

import pytest

from commentkit.core.sanitize import MAX_CONTENT_LENGTH, sanitize_comment_content


class TestSanitizeCommentContent:
    def test_plain_text_untouched(self):
        text = "Great post! 5 < 6 and <b>bold</b> stays as typed."
        assert sanitize_comment_content(text) == text

    def test_strips_null_bytes(self):
        assert sanitize_comment_content("a\x00b") == "ab"

    def test_removes_script_blocks(self):
        assert sanitize_comment_content("hi<script>alert(1)</script>there") == (
            "hithere"
        )

    def test_script_removal_is_case_insensitive(self):
        assert sanitize_comment_content("<SCRIPT src=x></SCRIPT>ok") == "ok"

    @pytest.mark.parametrize(
        "payload",
        [
            '<img src=x onerror="alert(1)">',
            "<img src=x onerror='alert(1)'>",
            "<img src=x onerror=alert(1)>",
            '<a href="#" ONCLICK="steal()">',
        ],
    )
    def test_removes_event_handlers(self, payload):
        result = sanitize_comment_content(payload)
        assert "onerror" not in result.lower()
        assert "onclick" not in result.lower()

    def test_removes_javascript_urls(self):
        result = sanitize_comment_content('<a href="JavaScript :alert(1)">x</a>')
        assert "javascript" not in result.lower()

    def test_removes_base64_data_urls(self):
        result = sanitize_comment_content("see data:text/html;base64,PHNjcmlwdD4=")
        assert "base64" not in result

    def test_truncates(self):
        result = sanitize_comment_content("a" * (MAX_CONTENT_LENGTH + 50))
        assert len(result) == MAX_CONTENT_LENGTH

    def test_trims_whitespace(self):
        assert sanitize_comment_content("  hello \n") == "hello"

    def test_script_only_becomes_empty(self):
        assert sanitize_comment_content("<script>x</script>") == ""
