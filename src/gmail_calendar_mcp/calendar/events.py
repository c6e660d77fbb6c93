"""Calendar event listing, creation, update and deletion.

These handlers are a thin pass-through to the Calendar v3 API: no
scheduling logic, only argument validation and a compact result shape.
"""

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

from gmail_calendar_mcp.api import CALENDAR_API_BASE, ApiClient
from gmail_calendar_mcp.utils import compact

DEFAULT_CALENDAR_ID = "primary"
DEFAULT_MAX_RESULTS = 25
DEFAULT_WINDOW = timedelta(days=7)
DESCRIPTION_MAX_CHARS = 500

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _events_url(calendar_id: str | None, event_id: str | None = None) -> str:
    url = f"{CALENDAR_API_BASE}/calendars/{calendar_id or DEFAULT_CALENDAR_ID}/events"
    if event_id:
        url = f"{url}/{event_id}"
    return url


def _to_rfc3339(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_instant(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def parse_datetime(value: str) -> dict[str, str]:
    """Convert an ISO 8601 string to a Calendar ``EventDateTime``.

    ``YYYY-MM-DD`` becomes an all-day ``date``; anything else must be a
    valid timestamp and is passed on as ``dateTime``.

    Raises:
        ValueError: If the value is empty or not a valid date or timestamp.
    """
    if not value:
        raise ValueError("Invalid date input: value cannot be empty")

    if _DATE_ONLY_RE.match(value):
        try:
            date.fromisoformat(value)
        except ValueError as e:
            raise ValueError(f"Invalid date: {value}") from e
        return {"date": value}

    try:
        datetime.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid datetime: {value}") from e
    return {"dateTime": value}


def format_event(event: dict[str, Any]) -> dict[str, Any]:
    """Reduce a Calendar event resource to the fields an agent needs."""
    description = event.get("description") or ""
    if len(description) > DESCRIPTION_MAX_CHARS:
        description = (
            description[:DESCRIPTION_MAX_CHARS] + f"\n\n[truncated: {len(description)} chars]"
        )

    start = event.get("start") or {}
    end = event.get("end") or {}

    return compact(
        {
            "id": event.get("id"),
            "summary": event.get("summary") or "",
            "start": start.get("dateTime") or start.get("date") or "",
            "end": end.get("dateTime") or end.get("date") or "",
            "attendees": [
                attendee["email"]
                for attendee in event.get("attendees") or []
                if attendee.get("email")
            ],
            "location": event.get("location") or "",
            "description": description,
        }
    )


async def list_events(
    client: ApiClient,
    time_min: str | None = None,
    time_max: str | None = None,
    max_results: int | None = None,
    calendar_id: str | None = None,
) -> dict[str, Any]:
    """List events in a time window, expanded and ordered by start time.

    Args:
        client: Authenticated API client.
        time_min: Window start (default: now).
        time_max: Window end (default: seven days from now).
        max_results: Maximum number of events (default 25).
        calendar_id: Calendar to read (default ``primary``).

    Raises:
        ValueError: If a bound is not a timestamp or ``time_min`` is after
            ``time_max``.
    """
    if time_min and time_max and _parse_instant(time_min) > _parse_instant(time_max):
        raise ValueError("time_min must be before time_max")

    now = datetime.now(timezone.utc)
    params = {
        "timeMin": time_min or _to_rfc3339(now),
        "timeMax": time_max or _to_rfc3339(now + DEFAULT_WINDOW),
        "maxResults": max_results or DEFAULT_MAX_RESULTS,
        "singleEvents": True,
        "orderBy": "startTime",
    }

    response = await client.request("GET", _events_url(calendar_id), params=params)
    events = [format_event(item) for item in response.get("items") or []]
    return {"events": events, "count": len(events)}


async def create_event(
    client: ApiClient,
    summary: str,
    start: str,
    end: str,
    description: str | None = None,
    attendees: list[str] | None = None,
    location: str | None = None,
    calendar_id: str | None = None,
) -> dict[str, Any]:
    """Create an event and return it in compact form."""
    event_body: dict[str, Any] = {
        "summary": summary,
        "start": parse_datetime(start),
        "end": parse_datetime(end),
    }
    if description:
        event_body["description"] = description
    if location:
        event_body["location"] = location
    if attendees:
        event_body["attendees"] = [{"email": email} for email in attendees]

    response = await client.request("POST", _events_url(calendar_id), json_data=event_body)
    return format_event(response)


async def update_event(
    client: ApiClient,
    event_id: str,
    summary: str | None = None,
    start: str | None = None,
    end: str | None = None,
    description: str | None = None,
    attendees: list[str] | None = None,
    location: str | None = None,
    calendar_id: str | None = None,
) -> dict[str, Any]:
    """Patch the supplied fields of an event.

    Raises:
        ValueError: If no field to update is supplied.
    """
    update_body: dict[str, Any] = {}
    if summary is not None:
        update_body["summary"] = summary
    if start is not None:
        update_body["start"] = parse_datetime(start)
    if end is not None:
        update_body["end"] = parse_datetime(end)
    if description is not None:
        update_body["description"] = description
    if location is not None:
        update_body["location"] = location
    if attendees is not None:
        update_body["attendees"] = [{"email": email} for email in attendees]

    if not update_body:
        raise ValueError("At least one field must be provided for update")

    response = await client.request(
        "PATCH", _events_url(calendar_id, event_id), json_data=update_body
    )
    return format_event(response)


async def delete_event(
    client: ApiClient, event_id: str, calendar_id: str | None = None
) -> dict[str, Any]:
    """Delete an event."""
    await client.request_no_content("DELETE", _events_url(calendar_id, event_id))
    return {"status": f"Event {event_id} deleted."}
