"""HTML to plain text normalization for message bodies.

Used only when a message carries no text/plain part. The output is meant
for an agent to read, so anything that never renders as text (scripts,
styles, comments) is dropped together with its content.
"""

import re

# Tag pairs whose content must never surface as text. An unclosed opener
# swallows the rest of the document.
_OPAQUE_BLOCK_RE = re.compile(
    r"<(script|style)\b[^>]*>.*?(?:</\1\s*>|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_COMMENT_RE = re.compile(r"<!--.*?(?:-->|\Z)", re.DOTALL)
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BLOCK_END_RE = re.compile(r"</(?:p|div|li|tr|h[1-6]|blockquote)\s*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_ENTITY_RE = re.compile(r"&(#[0-9]{1,7}|#[xX][0-9a-fA-F]{1,6}|[a-zA-Z]+);")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")

NAMED_ENTITIES = {
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "apos": "'",
    "nbsp": " ",
    "ndash": "–",
    "mdash": "—",
    "hellip": "…",
    "lsquo": "‘",
    "rsquo": "’",
    "ldquo": "“",
    "rdquo": "”",
    "bull": "•",
    "copy": "©",
    "reg": "®",
    "trade": "™",
}


def _decode_entity(match: re.Match[str]) -> str:
    name = match.group(1)
    if not name.startswith("#"):
        return NAMED_ENTITIES.get(name, match.group(0))

    if name[1:2] in ("x", "X"):
        codepoint = int(name[2:], 16)
    else:
        codepoint = int(name[1:])

    # Surrogates and out-of-range values are not characters; keep the text.
    if codepoint == 0 or codepoint > 0x10FFFF or 0xD800 <= codepoint <= 0xDFFF:
        return match.group(0)
    return chr(codepoint)


def decode_entities(text: str) -> str:
    """Decode HTML entities in a single pass.

    Decoded output is never scanned again, so ``&amp;lt;`` becomes ``&lt;``
    rather than ``<``.

    Args:
        text: Text containing entity references.

    Returns:
        Text with known entities replaced. Unknown entities are kept verbatim.
    """
    return _ENTITY_RE.sub(_decode_entity, text)


def strip_html(html: str) -> str:
    """Convert an HTML body to plain text.

    Args:
        html: Raw HTML markup.

    Returns:
        Readable plain text with at most one blank line between blocks.
    """
    if not html:
        return ""

    text = _OPAQUE_BLOCK_RE.sub("", html)
    text = _COMMENT_RE.sub("", text)
    text = _BR_RE.sub("\n", text)
    text = _BLOCK_END_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    text = decode_entities(text)
    text = _EXCESS_NEWLINES_RE.sub("\n\n", text)
    return text.strip()
