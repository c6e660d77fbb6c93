"""Unit tests for shared handler helpers."""

import pytest

from gmail_calendar_mcp.utils import (
    compact,
    normalize_newlines,
    strip_control_chars,
    validate_string_size,
)


@pytest.mark.unit
class TestCompact:
    """Tests for compact()."""

    def test_should_drop_empty_values(self) -> None:
        """Verify None, empty strings and empty lists are removed."""
        assert compact({"a": None, "b": "", "c": [], "d": "x"}) == {"d": "x"}

    def test_should_keep_falsy_scalars(self) -> None:
        """Verify 0 and False carry information and are kept."""
        assert compact({"count": 0, "flag": False}) == {"count": 0, "flag": False}


@pytest.mark.unit
class TestStripControlChars:
    """Tests for strip_control_chars()."""

    def test_should_remove_c0_controls_and_delete(self) -> None:
        """Verify NUL, ESC and DEL are removed."""
        assert strip_control_chars("a\x00b\x1bc\x7fd") == "abcd"

    def test_should_keep_tab_and_line_breaks(self) -> None:
        """Verify TAB, LF and CR survive (bodies are multi-line)."""
        assert strip_control_chars("a\tb\nc\r\n") == "a\tb\nc\r\n"

    def test_should_keep_unicode_text(self) -> None:
        """Verify non-ASCII text is untouched."""
        assert strip_control_chars("naïve — 日本 \U0001f600") == "naïve — 日本 \U0001f600"


@pytest.mark.unit
class TestValidateStringSize:
    """Tests for validate_string_size()."""

    def test_should_accept_value_at_limit(self) -> None:
        """Verify a value exactly at the limit passes."""
        assert validate_string_size("abc", 3, "query") == "abc"

    def test_should_reject_oversize_value(self) -> None:
        """Verify ValueError names the offending field."""
        with pytest.raises(ValueError, match="query exceeds maximum size of 3 characters"):
            validate_string_size("abcd", 3, "query")


@pytest.mark.unit
class TestNormalizeNewlines:
    """Tests for normalize_newlines()."""

    def test_should_convert_crlf_and_lone_cr(self) -> None:
        """Verify every line ending style becomes LF."""
        assert normalize_newlines("a\r\nb\rc\nd") == "a\nb\nc\nd"

    def test_should_leave_lf_text_unchanged(self) -> None:
        """Verify LF text is returned as is."""
        assert normalize_newlines("a\n\nb") == "a\n\nb"
