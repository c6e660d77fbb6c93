"""MIME payload walking for Gmail messages.

Gmail returns a message body as a recursive tree of parts. This module
extracts the single body text an agent should read and the metadata of
real attachments, without ever touching attachment bytes.
"""

import base64
import binascii
import codecs
import logging
import re
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from gmail_calendar_mcp.gmail.html import strip_html

logger = logging.getLogger(__name__)

DEFAULT_ATTACHMENT_MIME_TYPE = "application/octet-stream"

_CHARSET_RE = re.compile(r"""charset\s*=\s*["']?([\w.:-]+)""", re.IGNORECASE)


class MessageHeader(BaseModel):
    """A single name/value header of a MIME part."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    value: str = ""


class MimePartBody(BaseModel):
    """Inline body of a MIME part (transport-encoded)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    data: str | None = Field(default=None, description="URL-safe base64 body data")
    size: int = Field(default=0, description="Decoded size in bytes")
    attachment_id: str | None = Field(default=None, alias="attachmentId")


class MimePart(BaseModel):
    """A node of a Gmail message payload tree.

    Attributes:
        mime_type: Content type of the part, e.g. ``text/plain``.
        filename: Attachment filename; empty for body parts.
        headers: Part headers in wire order.
        body: Inline body data, if any.
        parts: Child parts, in document order.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mime_type: str = Field(default="", alias="mimeType")
    filename: str = ""
    headers: list[MessageHeader] = Field(default_factory=list)
    body: MimePartBody = Field(default_factory=MimePartBody)
    parts: list["MimePart"] = Field(default_factory=list)

    @property
    def disposition(self) -> str | None:
        """Disposition type from Content-Disposition, lower-cased, or None."""
        value = get_header(self.headers, "Content-Disposition")
        if not value:
            return None
        return value.split(";", 1)[0].strip().lower() or None

    @property
    def charset(self) -> str:
        """Charset parameter of the Content-Type header, defaulting to UTF-8."""
        match = _CHARSET_RE.search(get_header(self.headers, "Content-Type"))
        if match:
            try:
                return codecs.lookup(match.group(1)).name
            except LookupError:
                logger.debug("Unknown charset %r, using utf-8", match.group(1))
        return "utf-8"


class AttachmentRef(BaseModel):
    """Metadata of an attachment. Never carries the attachment content."""

    filename: str
    mime_type: str
    size: int = 0


class BodyCandidates(NamedTuple):
    """Fold accumulator for body extraction. Fields are set at most once."""

    plain: str | None = None
    html: str | None = None


def get_header(headers: list[MessageHeader] | list[dict[str, Any]] | None, name: str) -> str:
    """Get a header value by case-insensitive name.

    Args:
        headers: Header list, either models or raw Gmail API dicts.
        name: Header name to look up.

    Returns:
        Value of the first matching header, or an empty string.
    """
    if not headers:
        return ""
    wanted = name.lower()
    for header in headers:
        if isinstance(header, MessageHeader):
            header_name, value = header.name, header.value
        else:
            header_name, value = header.get("name") or "", header.get("value") or ""
        if header_name.lower() == wanted:
            return value
    return ""


def decode_base64url_bytes(data: str) -> bytes:
    """Decode URL-safe base64, with or without padding.

    Raises:
        ValueError: If ``data`` is not valid URL-safe base64.
    """
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64url data: {e}") from e


def decode_base64url(data: str, charset: str = "utf-8") -> str:
    """Decode URL-safe base64 into text, replacing undecodable bytes.

    Raises:
        ValueError: If ``data`` is not valid URL-safe base64.
    """
    return decode_base64url_bytes(data).decode(charset, errors="replace")


def _as_part(part: MimePart | dict[str, Any] | None) -> MimePart | None:
    if part is None or isinstance(part, MimePart):
        return part
    return MimePart.model_validate(part)


def _decode_part_text(part: MimePart) -> str | None:
    """Decode a leaf's inline body, or None if it is absent or malformed."""
    if not part.body.data:
        return None
    try:
        text = decode_base64url(part.body.data, part.charset)
    except ValueError as e:
        logger.warning("Skipping undecodable %s part: %s", part.mime_type, e)
        return None
    return text or None


def _collect_candidates(part: MimePart, acc: BodyCandidates) -> BodyCandidates:
    if part.parts:
        for child in part.parts:
            acc = _collect_candidates(child, acc)
        return acc

    mime_type = part.mime_type.lower()
    if mime_type == "text/plain" and acc.plain is None:
        return acc._replace(plain=_decode_part_text(part))
    if mime_type == "text/html" and acc.html is None:
        return acc._replace(html=_decode_part_text(part))
    return acc


def collect_body_candidates(part: MimePart | dict[str, Any] | None) -> BodyCandidates:
    """Walk a payload tree and return the first plain and HTML bodies found.

    Traversal is depth-first in document order: a node's children are all
    visited before its next sibling.
    """
    root = _as_part(part)
    if root is None:
        return BodyCandidates()
    return _collect_candidates(root, BodyCandidates())


def extract_body(part: MimePart | dict[str, Any] | None) -> str:
    """Extract the preferred body text of a message payload.

    The first text/plain part wins. Without one, the first text/html part is
    normalized to plain text. Later parts of the same type are ignored.

    Args:
        part: Root payload, as a model or a raw Gmail API dict.

    Returns:
        Body text, or an empty string when the message has no textual part.
    """
    candidates = collect_body_candidates(part)
    if candidates.plain is not None:
        return candidates.plain
    if candidates.html is not None:
        return strip_html(candidates.html)
    return ""


def _walk_attachments(part: MimePart, found: list[AttachmentRef]) -> list[AttachmentRef]:
    if part.filename and part.disposition != "inline":
        found.append(
            AttachmentRef(
                filename=part.filename,
                mime_type=part.mime_type or DEFAULT_ATTACHMENT_MIME_TYPE,
                size=part.body.size,
            )
        )
    for child in part.parts:
        _walk_attachments(child, found)
    return found


def extract_attachments(part: MimePart | dict[str, Any] | None) -> list[AttachmentRef]:
    """List attachments of a payload tree.

    A part counts as an attachment when it has a filename and is not marked
    ``inline`` (embedded images such as logos are skipped). A part without a
    Content-Disposition header is treated as an attachment.
    """
    root = _as_part(part)
    if root is None:
        return []
    return _walk_attachments(root, [])
