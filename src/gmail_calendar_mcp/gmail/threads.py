"""Gmail thread listing and reading."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from gmail_calendar_mcp.api import GMAIL_API_BASE, ApiClient
from gmail_calendar_mcp.gmail.mime import extract_attachments, extract_body, get_header
from gmail_calendar_mcp.gmail.trimmer import MAX_BODY_CHARS, trim_body
from gmail_calendar_mcp.utils import compact

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 25
SNIPPET_MAX_CHARS = 150
KEEP_LABELS = frozenset({"INBOX", "UNREAD", "SENT", "IMPORTANT", "STARRED", "DRAFT"})


def _format_internal_date(internal_date: str | None) -> str:
    """Convert Gmail's epoch-milliseconds internalDate to ISO 8601 UTC."""
    if not internal_date:
        return ""
    moment = datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _actionable_labels(labels: list[str]) -> list[str]:
    """Drop Gmail's automatic CATEGORY_* labels."""
    return [label for label in labels if label in KEEP_LABELS or not label.startswith("CATEGORY_")]


def _cap_snippet(snippet: str) -> str:
    if len(snippet) > SNIPPET_MAX_CHARS:
        return snippet[:SNIPPET_MAX_CHARS] + "..."
    return snippet


def _summarize_thread(summary: dict[str, Any], thread: dict[str, Any]) -> dict[str, Any]:
    messages = thread.get("messages") or []
    first = messages[0] if messages else {}
    last = messages[-1] if messages else {}
    labels = last.get("labelIds") or []

    return compact(
        {
            "id": summary.get("id"),
            "snippet": _cap_snippet(summary.get("snippet") or thread.get("snippet") or ""),
            "subject": get_header((first.get("payload") or {}).get("headers"), "Subject"),
            "last_message_date": _format_internal_date(last.get("internalDate")),
            "message_count": len(messages),
            "labels": _actionable_labels(labels),
            "is_unread": True if "UNREAD" in labels else None,
        }
    )


async def list_threads(
    client: ApiClient,
    query: str | None = None,
    max_results: int | None = None,
    page_token: str | None = None,
) -> dict[str, Any]:
    """List thread summaries matching a Gmail search query.

    Thread details are fetched concurrently; a thread that fails to load is
    skipped with a warning.

    Args:
        client: Authenticated API client.
        query: Gmail search query, e.g. ``is:inbox newer_than:14d``.
        max_results: Page size (default 25).
        page_token: Token of the page to fetch.

    Returns:
        Thread summaries, the next page token and the count.
    """
    params: dict[str, Any] = {"maxResults": max_results or DEFAULT_MAX_RESULTS}
    if query:
        params["q"] = query
    if page_token:
        params["pageToken"] = page_token

    listing = await client.request("GET", f"{GMAIL_API_BASE}/users/me/threads", params=params)
    summaries = listing.get("threads") or []

    async def fetch_thread(thread_id: str) -> dict[str, Any]:
        return await client.request(
            "GET",
            f"{GMAIL_API_BASE}/users/me/threads/{thread_id}",
            params={"format": "metadata", "metadataHeaders": ["Subject"]},
        )

    details = await asyncio.gather(
        *[fetch_thread(summary["id"]) for summary in summaries],
        return_exceptions=True,
    )

    threads = []
    for summary, detail in zip(summaries, details, strict=True):
        if isinstance(detail, BaseException):
            logger.warning("Failed to fetch thread %s: %s", summary["id"], detail)
            continue
        threads.append(_summarize_thread(summary, detail))

    return {
        "threads": threads,
        "next_page_token": listing.get("nextPageToken"),
        "count": len(threads),
    }


def parse_message(message: dict[str, Any], include_body: bool = True) -> dict[str, Any]:
    """Turn a Gmail message resource into the agent-facing message shape.

    The body is extracted from the MIME tree, stripped of quoted replies
    and signatures, and capped at ``MAX_BODY_CHARS``.
    """
    payload = message.get("payload") or {}
    headers = payload.get("headers")

    body_text = ""
    attachments: list[dict[str, Any]] = []
    if include_body:
        body_text = trim_body(extract_body(payload), MAX_BODY_CHARS)
        attachments = [ref.model_dump() for ref in extract_attachments(payload)]

    return compact(
        {
            "id": message.get("id"),
            "from": get_header(headers, "From"),
            "to": get_header(headers, "To"),
            "cc": get_header(headers, "Cc"),
            "date": get_header(headers, "Date"),
            "body_text": body_text,
            "attachments": attachments,
        }
    )


async def get_thread(client: ApiClient, thread_id: str, format: str = "full") -> dict[str, Any]:
    """Read every message of a thread in chronological order.

    Args:
        client: Authenticated API client.
        thread_id: Gmail thread ID.
        format: ``full`` (default) includes bodies, ``minimal`` does not.

    Returns:
        Thread ID, subject and parsed messages.
    """
    api_format = "minimal" if format == "minimal" else "full"
    thread = await client.request(
        "GET",
        f"{GMAIL_API_BASE}/users/me/threads/{thread_id}",
        params={"format": api_format},
    )

    messages = thread.get("messages") or []
    first_headers = (messages[0].get("payload") or {}).get("headers") if messages else None

    return {
        "thread_id": thread_id,
        "subject": get_header(first_headers, "Subject"),
        "messages": [parse_message(m, include_body=api_format == "full") for m in messages],
    }
