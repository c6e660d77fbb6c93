"""Google Calendar event handlers."""

from gmail_calendar_mcp.calendar.events import (
    create_event,
    delete_event,
    list_events,
    update_event,
)

__all__ = ["list_events", "create_event", "update_event", "delete_event"]
