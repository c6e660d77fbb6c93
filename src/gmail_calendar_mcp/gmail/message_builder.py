"""RFC 2822 message assembly for drafts.

Every header value is treated as untrusted: carriage returns and line feeds
are removed just before serialization, so a value can never start a new
header line or end the header block.
"""

import base64
import logging
import re

from pydantic import BaseModel, ConfigDict, Field

from gmail_calendar_mcp.api import GMAIL_API_BASE, ApiClient
from gmail_calendar_mcp.gmail.composer import plain_text_to_html
from gmail_calendar_mcp.gmail.mime import get_header

logger = logging.getLogger(__name__)

BODY_CONTAINER = '<div style="font-family:sans-serif;font-size:14px;color:#222">{html}</div>'
HEADER_LINE_BREAK_RE = re.compile(r"[\r\n]")


class MessageEncodingError(ValueError):
    """Raised when a message cannot be encoded for transport."""


class ComposedMessage(BaseModel):
    """A draft before serialization.

    Attributes:
        to: Recipient address list.
        sender: From address (alias ``from``).
        subject: Subject line.
        body: Plain-text body as written by the agent.
        cc: Optional CC address list.
        bcc: Optional BCC address list.
        in_reply_to: Message-ID being replied to.
        references: Citation chain; defaults to ``in_reply_to``.
    """

    model_config = ConfigDict(populate_by_name=True)

    to: str
    sender: str = Field(..., alias="from")
    subject: str
    body: str
    cc: str | None = None
    bcc: str | None = None
    in_reply_to: str | None = None
    references: str | None = None


class ThreadingHeaders(BaseModel):
    """In-Reply-To and References values for a reply."""

    in_reply_to: str | None = None
    references: str | None = None


def sanitize_header(value: str) -> str:
    """Remove CR and LF from a header value."""
    return HEADER_LINE_BREAK_RE.sub("", value)


def render_body(body: str) -> str:
    """Render a plain-text body as the styled HTML message body."""
    return BODY_CONTAINER.format(html=plain_text_to_html(body))


def build_header_lines(message: ComposedMessage) -> list[str]:
    """Build the header lines of a message, in their fixed order."""
    lines = [
        f"From: {sanitize_header(message.sender)}",
        f"To: {sanitize_header(message.to)}",
        f"Subject: {sanitize_header(message.subject)}",
        "MIME-Version: 1.0",
        "Content-Type: text/html; charset=utf-8",
    ]

    if message.cc:
        lines.append(f"Cc: {sanitize_header(message.cc)}")
    if message.bcc:
        lines.append(f"Bcc: {sanitize_header(message.bcc)}")
    if message.in_reply_to:
        references = message.references or message.in_reply_to
        lines.append(f"In-Reply-To: {sanitize_header(message.in_reply_to)}")
        lines.append(f"References: {sanitize_header(references)}")

    return lines


def build_message_text(message: ComposedMessage) -> str:
    """Serialize a message as RFC 2822 text.

    Headers are separated by CRLF and followed by exactly one blank line.
    Line feeds inside the HTML body are kept as they are.
    """
    return "\r\n".join([*build_header_lines(message), "", render_body(message.body)])


def build_raw_message(message: ComposedMessage) -> str:
    """Serialize and transport-encode a message for the Gmail API.

    Args:
        message: The composed draft.

    Returns:
        URL-safe base64 of the UTF-8 message text, without padding.

    Raises:
        MessageEncodingError: If the text cannot be encoded as UTF-8
            (for example a lone surrogate).
    """
    text = build_message_text(message)
    try:
        data = text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise MessageEncodingError(f"Message contains text that cannot be encoded: {e}") from e
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


async def resolve_threading_headers(
    client: ApiClient, thread_id: str, in_reply_to: str | None = None
) -> ThreadingHeaders:
    """Derive In-Reply-To and References for a reply in a thread.

    An explicit ``in_reply_to`` is used as is. Otherwise the thread's most
    recent message supplies the Message-ID, and its References header is
    extended with it.

    Args:
        client: API client able to fetch the thread.
        thread_id: Gmail thread ID.
        in_reply_to: Message-ID supplied by the caller, if any.

    Returns:
        Threading headers; empty when the thread has no usable Message-ID.

    Raises:
        httpx.HTTPError: If the thread cannot be fetched. Callers treat this
            as "no threading".
    """
    if in_reply_to:
        return ThreadingHeaders(in_reply_to=in_reply_to, references=in_reply_to)

    thread = await client.request(
        "GET",
        f"{GMAIL_API_BASE}/users/me/threads/{thread_id}",
        params={"format": "metadata", "metadataHeaders": ["Message-ID", "References"]},
    )

    messages = thread.get("messages") or []
    if not messages:
        return ThreadingHeaders()

    headers = (messages[-1].get("payload") or {}).get("headers")
    message_id = get_header(headers, "Message-ID")
    if not message_id:
        return ThreadingHeaders()

    prior = get_header(headers, "References")
    references = f"{prior} {message_id}" if prior else message_id
    return ThreadingHeaders(in_reply_to=message_id, references=references)


async def resolve_threading_best_effort(
    client: ApiClient, thread_id: str | None, in_reply_to: str | None = None
) -> ThreadingHeaders:
    """Resolve threading headers, never failing the surrounding compose.

    A deleted thread or a transient API error yields the explicit
    ``in_reply_to`` (if any) instead of an exception.
    """
    fallback = ThreadingHeaders(in_reply_to=in_reply_to, references=in_reply_to)
    if not thread_id:
        return fallback

    try:
        return await resolve_threading_headers(client, thread_id, in_reply_to)
    except Exception as e:
        logger.warning("Could not resolve threading for thread %s: %s", thread_id, e)
        return fallback
