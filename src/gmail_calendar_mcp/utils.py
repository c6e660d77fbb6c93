"""Small helpers shared by the tool handlers."""

import re
from typing import Any

# C0 controls except TAB, LF and CR, plus DEL.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def compact(obj: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is empty: "", None or an empty list."""
    return {
        key: value
        for key, value in obj.items()
        if value is not None and value != "" and value != []
    }


def strip_control_chars(value: str) -> str:
    """Remove control characters that have no place in agent-supplied text."""
    return _CONTROL_CHARS_RE.sub("", value)


def validate_string_size(value: str, max_size: int, name: str) -> str:
    """Reject strings longer than ``max_size`` characters.

    Raises:
        ValueError: If ``value`` is too long.
    """
    if len(value) > max_size:
        raise ValueError(f"{name} exceeds maximum size of {max_size} characters")
    return value


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")
