"""Gmail draft creation, update, listing and deletion."""

import asyncio
import logging
from typing import Any

from gmail_calendar_mcp.api import GMAIL_API_BASE, ApiClient
from gmail_calendar_mcp.gmail.composer import html_to_plain_text
from gmail_calendar_mcp.gmail.message_builder import (
    ComposedMessage,
    ThreadingHeaders,
    build_raw_message,
    resolve_threading_best_effort,
)
from gmail_calendar_mcp.gmail.mime import collect_body_candidates, get_header
from gmail_calendar_mcp.utils import compact

logger = logging.getLogger(__name__)

DRAFTS_URL = f"{GMAIL_API_BASE}/users/me/drafts"
DEFAULT_MAX_RESULTS = 25


async def _sender_address(client: ApiClient) -> str:
    """Get the authenticated user's address for the From header."""
    profile = await client.request("GET", f"{GMAIL_API_BASE}/users/me/profile")
    return profile.get("emailAddress") or "me"


def _recover_body(payload: dict[str, Any]) -> str:
    """Get the editable plain text of a stored draft body."""
    candidates = collect_body_candidates(payload)
    if candidates.plain is not None:
        return candidates.plain
    return html_to_plain_text(candidates.html or "")


def _draft_result(draft: dict[str, Any], status: str) -> dict[str, Any]:
    message = draft.get("message") or {}
    return compact(
        {
            "draft_id": draft.get("id"),
            "message_id": message.get("id"),
            "thread_id": message.get("threadId"),
            "status": status,
        }
    )


async def create_draft(
    client: ApiClient,
    to: str,
    subject: str,
    body: str,
    thread_id: str | None = None,
    in_reply_to: str | None = None,
    cc: str | None = None,
    bcc: str | None = None,
) -> dict[str, Any]:
    """Create a draft, threading it into ``thread_id`` when given.

    Threading headers are resolved on a best-effort basis: if the thread
    cannot be read, the draft is still created, without them.

    Args:
        client: Authenticated API client.
        to: Recipient address list.
        subject: Subject line.
        body: Plain-text body; rendered as HTML.
        thread_id: Thread to reply in.
        in_reply_to: Message-ID to reply to; looked up from the thread if
            omitted.
        cc: CC address list.
        bcc: BCC address list.

    Returns:
        Draft ID, message ID, thread ID and a status line.

    Raises:
        MessageEncodingError: If the message text cannot be encoded.
        httpx.HTTPStatusError: If the Gmail API rejects the draft.
    """
    sender = await _sender_address(client)
    threading = await resolve_threading_best_effort(client, thread_id, in_reply_to)

    message = ComposedMessage(
        to=to,
        sender=sender,
        subject=subject,
        body=body,
        cc=cc,
        bcc=bcc,
        in_reply_to=threading.in_reply_to,
        references=threading.references,
    )

    draft = await client.request(
        "POST",
        DRAFTS_URL,
        json_data={"message": compact({"raw": build_raw_message(message), "threadId": thread_id})},
    )
    return _draft_result(draft, "Draft created.")


async def update_draft(
    client: ApiClient,
    draft_id: str,
    to: str | None = None,
    subject: str | None = None,
    body: str | None = None,
    thread_id: str | None = None,
    in_reply_to: str | None = None,
    cc: str | None = None,
    bcc: str | None = None,
) -> dict[str, Any]:
    """Replace a draft, keeping every field the caller does not supply.

    The existing body is recovered from the stored message, its HTML
    rendering turned back into the list and link syntax it came from, so
    that updating only the subject leaves the body intact.

    Returns:
        Draft ID, message ID, thread ID and a status line.
    """
    existing = await client.request("GET", f"{DRAFTS_URL}/{draft_id}", params={"format": "full"})
    existing_message = existing.get("message") or {}
    payload = existing_message.get("payload") or {}
    headers = payload.get("headers")

    sender = await _sender_address(client)
    effective_thread_id = thread_id or existing_message.get("threadId")

    existing_reply_to = in_reply_to or get_header(headers, "In-Reply-To") or None
    threading = ThreadingHeaders(
        in_reply_to=existing_reply_to,
        references=get_header(headers, "References") or existing_reply_to,
    )
    if effective_thread_id and not existing_reply_to:
        resolved = await resolve_threading_best_effort(client, effective_thread_id)
        threading = ThreadingHeaders(
            in_reply_to=resolved.in_reply_to or threading.in_reply_to,
            references=resolved.references or threading.references,
        )

    message = ComposedMessage(
        to=to or get_header(headers, "To"),
        sender=sender,
        subject=subject or get_header(headers, "Subject"),
        body=body or _recover_body(payload),
        cc=cc or get_header(headers, "Cc") or None,
        bcc=bcc or get_header(headers, "Bcc") or None,
        in_reply_to=threading.in_reply_to,
        references=threading.references,
    )

    draft = await client.request(
        "PUT",
        f"{DRAFTS_URL}/{draft_id}",
        json_data={
            "message": compact(
                {"raw": build_raw_message(message), "threadId": effective_thread_id}
            )
        },
    )
    return _draft_result(draft, "Draft updated.")


async def list_drafts(client: ApiClient, max_results: int | None = None) -> dict[str, Any]:
    """List drafts with their subject and recipients.

    Drafts that fail to load are skipped with a warning.
    """
    listing = await client.request(
        "GET", DRAFTS_URL, params={"maxResults": max_results or DEFAULT_MAX_RESULTS}
    )
    summaries = listing.get("drafts") or []

    details = await asyncio.gather(
        *[
            client.request("GET", f"{DRAFTS_URL}/{summary['id']}", params={"format": "full"})
            for summary in summaries
        ],
        return_exceptions=True,
    )

    drafts = []
    for summary, detail in zip(summaries, details, strict=True):
        if isinstance(detail, BaseException):
            logger.warning("Failed to fetch draft %s: %s", summary["id"], detail)
            continue
        message = detail.get("message") or {}
        headers = (message.get("payload") or {}).get("headers")
        drafts.append(
            compact(
                {
                    "draft_id": summary["id"],
                    "message_id": message.get("id"),
                    "thread_id": message.get("threadId"),
                    "subject": get_header(headers, "Subject"),
                    "to": get_header(headers, "To"),
                }
            )
        )

    return {"drafts": drafts, "count": len(drafts)}


async def delete_draft(client: ApiClient, draft_id: str) -> dict[str, Any]:
    """Permanently delete a draft."""
    await client.request_no_content("DELETE", f"{DRAFTS_URL}/{draft_id}")
    return {"draft_id": draft_id, "status": "Draft deleted."}
