"""Trim conversation noise from plain-text message bodies.

A reply usually carries the whole previous conversation below the new
content, followed by a signature. Both are removed heuristically, then the
result is capped to a display budget.

Each stage is a cascade of matchers, ``(text) -> int | None``, returning the
offset where a boundary starts. The earliest offset across a cascade wins.

The sign-off heuristic is a tunable classifier, not a guaranteed-correct
one: a short list right after "Thanks," is indistinguishable from a name and
title block and will be removed. ``SIGNOFF_MAX_LINES`` and
``SIGNOFF_MAX_LINE_LENGTH`` bound what is treated as a signature.
"""

import re
import unicodedata
from collections.abc import Callable, Iterable

from gmail_calendar_mcp.utils import normalize_newlines

MAX_BODY_CHARS = 2500

# Sign-off heuristic bounds. A valediction is only stripped when new content
# precedes it, so a message that is nothing but "Thanks,\nJohn" is kept whole.
SIGNOFF_MAX_LINES = 5
SIGNOFF_MAX_LINE_LENGTH = 80

QUOTED_ONLY_PLACEHOLDER = "[quoted reply only — no new content]"
TRUNCATION_MARKER = "\n\n[truncated: {length} chars]"

Matcher = Callable[[str], int | None]

_WEEKDAY = r"(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)[a-z]*\.?"
_TIME = r"\d{1,2}:\d{2}"

QUOTE_PATTERNS = [
    # Gmail: "On Mon, Feb 3, 2026 at 9:15 AM Name <email> wrote:"
    re.compile(rf"^On {_WEEKDAY},? [^\n]*?{_TIME}[^\n]*wrote:[ \t]*$", re.MULTILINE),
    # Apple Mail: "On Feb 3, 2026, at 9:15 AM, Name <email> wrote:"
    re.compile(rf"^On [^\n]+, at {_TIME}[^\n]*wrote:[ \t]*$", re.MULTILINE),
    # Outlook: a separator line followed by a From: header line
    re.compile(r"^[ \t]*[-_]{10,}[ \t]*\n[ \t]*From:", re.MULTILINE),
    re.compile(r"^[ \t]*-{2,}[ \t]*Original Message[ \t]*-{2,}[ \t]*\n[ \t]*From:", re.MULTILINE),
    # A blank line followed by ">"-quoted lines
    re.compile(r"\n[ \t]*\n>"),
]

SIGNATURE_DELIMITERS = [
    re.compile(r"^-- $", re.MULTILINE),
    re.compile(r"^—$", re.MULTILINE),
    re.compile(r"^__$", re.MULTILINE),
]

MOBILE_PATTERNS = [
    re.compile(r"^Sent from my (?:iPhone|iPad|Galaxy|Samsung|Android|BlackBerry)", re.MULTILINE),
    re.compile(r"^Sent from Mail for ", re.MULTILINE),
    re.compile(r"^Sent from Yahoo Mail", re.MULTILINE),
    re.compile(r"^Sent from Outlook", re.MULTILINE),
    re.compile(r"^Get Outlook for ", re.MULTILINE),
]

LEGAL_PATTERNS = [
    re.compile(r"^CONFIDENTIALITY NOTICE", re.MULTILINE),
    re.compile(r"^DISCLAIMER", re.MULTILINE),
    re.compile(r"^This email and any attachments", re.MULTILINE),
    re.compile(r"^This message is intended only for", re.MULTILINE),
    re.compile(r"^If you are not the intended recipient", re.MULTILINE),
]

VALEDICTIONS = (
    "Best",
    "Best regards",
    "Regards",
    "Kind regards",
    "Warm regards",
    "Thanks",
    "Thank you",
    "Many thanks",
    "Cheers",
    "Sincerely",
    "All the best",
    "Talk soon",
)

SIGNOFF_RE = re.compile(
    r"^(?:" + "|".join(re.escape(v) for v in VALEDICTIONS) + r"),?[ \t]*\n",
    re.MULTILINE | re.IGNORECASE,
)

# Code points that attach to the preceding character.
_ZERO_WIDTH_JOINER = "\u200d"
_SKIN_TONE_MODIFIERS = range(0x1F3FB, 0x1F400)


def pattern_matcher(pattern: re.Pattern[str]) -> Matcher:
    """Turn a compiled pattern into a matcher returning its first offset."""

    def match(text: str) -> int | None:
        found = pattern.search(text)
        return found.start() if found else None

    return match


def earliest_boundary(text: str, matchers: Iterable[Matcher]) -> int | None:
    """Return the smallest offset any matcher reports, or None."""
    positions = [pos for pos in (m(text) for m in matchers) if pos is not None]
    return min(positions) if positions else None


QUOTE_MATCHERS = [pattern_matcher(p) for p in QUOTE_PATTERNS]
DELIMITER_MATCHERS = [pattern_matcher(p) for p in SIGNATURE_DELIMITERS]
MOBILE_MATCHERS = [pattern_matcher(p) for p in MOBILE_PATTERNS]
LEGAL_MATCHERS = [pattern_matcher(p) for p in LEGAL_PATTERNS]


def strip_quoted_text(text: str) -> str:
    """Remove the quoted previous conversation from a reply.

    Args:
        text: Plain-text message body.

    Returns:
        Text before the earliest quote boundary, or
        ``QUOTED_ONLY_PLACEHOLDER`` when nothing precedes it.
    """
    if not text:
        return text

    text = normalize_newlines(text)
    cutoff = earliest_boundary(text, QUOTE_MATCHERS)
    if cutoff is None:
        return text

    return text[:cutoff].rstrip() or QUOTED_ONLY_PLACEHOLDER


def _cut_at(text: str, matchers: Iterable[Matcher]) -> str:
    cutoff = earliest_boundary(text, matchers)
    if cutoff is None:
        return text
    return text[:cutoff].rstrip()


def _looks_like_signature(trailer: str) -> bool:
    lines = [line.strip() for line in trailer.split("\n")]
    lines = [line for line in lines if line]
    return len(lines) <= SIGNOFF_MAX_LINES and all(
        len(line) < SIGNOFF_MAX_LINE_LENGTH for line in lines
    )


def strip_signoff(text: str) -> str:
    """Remove a valediction line and the short block following it.

    The first valediction followed only by short lines (name, title, phone)
    is cut. A valediction followed by longer content is kept as is.
    """
    text = normalize_newlines(text)
    for match in SIGNOFF_RE.finditer(text):
        head = text[: match.start()].rstrip()
        if head and _looks_like_signature(text[match.end() :]):
            return head
    return text


def strip_signature(text: str) -> str:
    """Remove signature blocks and trailing boilerplate.

    Applies, in order: signature delimiters, mobile client footers, legal
    notices, and the sign-off heuristic.
    """
    if not text:
        return text

    result = _cut_at(normalize_newlines(text), DELIMITER_MATCHERS)
    result = _cut_at(result, MOBILE_MATCHERS)
    result = _cut_at(result, LEGAL_MATCHERS)
    return strip_signoff(result)


def _attaches_to_previous(char: str) -> bool:
    return (
        unicodedata.category(char).startswith("M")
        or char == _ZERO_WIDTH_JOINER
        or "\ufe00" <= char <= "\ufe0f"
        or ord(char) in _SKIN_TONE_MODIFIERS
    )


def safe_cut_index(text: str, limit: int) -> int:
    """Return the largest index <= limit that does not split a character.

    Python strings index code points, so surrogate pairs cannot be split.
    The cut also backs off over combining marks, variation selectors, skin
    tone modifiers and zero-width-joiner sequences.
    """
    cut = max(0, min(limit, len(text)))
    while 0 < cut < len(text) and (
        _attaches_to_previous(text[cut]) or text[cut - 1] == _ZERO_WIDTH_JOINER
    ):
        cut -= 1
    return cut


def truncate_text(text: str, max_chars: int) -> str:
    """Cap text at ``max_chars`` and append a marker with the original length."""
    if len(text) <= max_chars:
        return text
    cut = safe_cut_index(text, max_chars)
    return text[:cut] + TRUNCATION_MARKER.format(length=len(text))


def trim_body(text: str, max_chars: int = MAX_BODY_CHARS) -> str:
    """Reduce a message body to its new content within a display budget.

    Args:
        text: Plain-text body as extracted from the message.
        max_chars: Display budget in characters, excluding the marker.

    Returns:
        Body without quoted replies and signatures, truncated if needed.
    """
    if not text:
        return ""
    trimmed = strip_quoted_text(normalize_newlines(text))
    trimmed = strip_signature(trimmed)
    return truncate_text(trimmed, max_chars)
