"""Gmail handlers and the email content pipeline.

The pipeline turns raw Gmail payloads into compact text for an agent
(``mime`` -> ``html`` -> ``trimmer``) and turns an agent's plain-text reply
into a transport-ready draft (``composer`` -> ``message_builder``).
"""

from gmail_calendar_mcp.gmail.drafts import create_draft, delete_draft, list_drafts, update_draft
from gmail_calendar_mcp.gmail.labels import list_labels
from gmail_calendar_mcp.gmail.threads import get_thread, list_threads

__all__ = [
    "list_threads",
    "get_thread",
    "create_draft",
    "update_draft",
    "list_drafts",
    "delete_draft",
    "list_labels",
]
