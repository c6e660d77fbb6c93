"""Gmail and Calendar MCP Server.

Gives an automated agent bounded, clean access to Gmail threads, safe draft
composition, and Google Calendar events.
"""

from gmail_calendar_mcp.__version__ import __version__

__all__ = ["__version__"]
