"""Plain text to HTML conversion for outgoing messages.

Agents write message bodies as plain text with light markdown conventions
(numbered and bulleted lists, ``[label](url)`` links). This module renders
them as simple, inline-styled HTML that mail clients display consistently.
"""

import re

from gmail_calendar_mcp.gmail.html import strip_html
from gmail_calendar_mcp.utils import normalize_newlines

_BLOCK_SPLIT_RE = re.compile(r"\n(?:[ \t]*\n)+")
_NUMBERED_ITEM_RE = re.compile(r"^\d+[.)]\s")
_BULLET_ITEM_RE = re.compile(r"^[-*]\s")
# Runs on escaped text, where brackets and parentheses are still literal.
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^)\s]+)\)")

PARAGRAPH_STYLE = "margin:0 0 12px 0"
LIST_STYLE = "margin:0 0 12px 0;padding-left:24px"
LIST_ITEM_STYLE = "margin:0 0 4px 0"
LINK_STYLE = "color:#1a73e8;text-decoration:none"

_ANCHOR_RE = re.compile(
    r"""<a\b[^>]*?\bhref\s*=\s*"(https?://[^"]*)"[^>]*>(.*?)</a\s*>""",
    re.IGNORECASE | re.DOTALL,
)
_LIST_RE = re.compile(r"<(ol|ul)\b[^>]*>(.*?)</\1\s*>", re.IGNORECASE | re.DOTALL)
_LIST_ITEM_RE = re.compile(r"<li\b[^>]*>(.*?)</li\s*>", re.IGNORECASE | re.DOTALL)


def escape_html(text: str) -> str:
    """Escape ``&``, ``<`` and ``>``. Quotes are left alone (text context)."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def escape_attribute(value: str) -> str:
    """Escape quote characters for a double-quoted attribute value.

    ``value`` must already have passed through :func:`escape_html`.
    """
    return value.replace('"', "&quot;").replace("'", "&#39;")


def _link_replacement(match: re.Match[str]) -> str:
    label, url = match.group(1), match.group(2)
    return f'<a href="{escape_attribute(url)}" style="{LINK_STYLE}">{label}</a>'


def linkify(html: str) -> str:
    """Convert markdown-style ``[label](https://url)`` spans into anchors."""
    return _MARKDOWN_LINK_RE.sub(_link_replacement, html)


def _is_list_block(lines: list[str], item_re: re.Pattern[str]) -> bool:
    items = [line for line in lines if line.strip()]
    return bool(items) and all(item_re.match(line) for line in items)


def _render_list(tag: str, lines: list[str], item_re: re.Pattern[str]) -> str:
    items = "\n".join(
        f'<li style="{LIST_ITEM_STYLE}">{linkify(item_re.sub("", line, count=1))}</li>'
        for line in lines
        if line.strip()
    )
    return f'<{tag} style="{LIST_STYLE}">\n{items}\n</{tag}>'


def _render_block(block: str) -> str:
    lines = block.split("\n")

    if _is_list_block(lines, _NUMBERED_ITEM_RE):
        return _render_list("ol", lines, _NUMBERED_ITEM_RE)

    if _is_list_block(lines, _BULLET_ITEM_RE):
        return _render_list("ul", lines, _BULLET_ITEM_RE)

    inner = linkify(block.replace("\n", "<br>"))
    return f'<p style="{PARAGRAPH_STYLE}">{inner}</p>'


def plain_text_to_html(text: str) -> str:
    """Render agent-written plain text as an HTML fragment.

    Blocks are separated by blank lines. A block where every line is a
    numbered item becomes an ``<ol>``, one where every line is a ``-``/``*``
    item becomes a ``<ul>``, anything else a ``<p>`` with ``<br>`` line
    breaks.

    Args:
        text: Plain-text message body.

    Returns:
        HTML fragment, one element per block, joined by newlines.
    """
    escaped = escape_html(normalize_newlines(text))
    blocks = [block for block in _BLOCK_SPLIT_RE.split(escaped) if block.strip()]
    return "\n".join(_render_block(block) for block in blocks)


def _unrender_list(match: re.Match[str]) -> str:
    ordered = match.group(1).lower() == "ol"
    items = [" ".join(item.split()) for item in _LIST_ITEM_RE.findall(match.group(2))]
    lines = [
        f"{index}. {item}" if ordered else f"- {item}"
        for index, item in enumerate(items, start=1)
    ]
    return "\n\n" + "\n".join(lines) + "\n\n"


def html_to_plain_text(html: str) -> str:
    """Recover the plain-text source of a body rendered by this module.

    Lists come back as ``1. ``/``- `` lines and http(s) anchors as
    ``[label](url)``, so re-rendering the result reproduces the structure.
    Anything else is normalized like any HTML body.
    """
    text = _ANCHOR_RE.sub(lambda m: f"[{m.group(2)}]({m.group(1)})", html)
    text = _LIST_RE.sub(_unrender_list, text)
    return strip_html(text)
