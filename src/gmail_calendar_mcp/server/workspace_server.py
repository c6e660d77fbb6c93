"""Gmail and Calendar MCP server for agent integration.

This MCP server exposes thread reading, draft composition, label listing and
calendar events over stdio. OAuth tokens come from the gmail-calendar-mcp
TokenStorage and are refreshed automatically by the API client.
"""

import asyncio
import json
import logging
import os
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from gmail_calendar_mcp.api import ApiClient, GoogleApiClient
from gmail_calendar_mcp.auth import OAuthManager
from gmail_calendar_mcp.calendar import events
from gmail_calendar_mcp.gmail import drafts, labels, threads
from gmail_calendar_mcp.utils import strip_control_chars, validate_string_size

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SERVER_NAME = "gmail-calendar-mcp"
ACCOUNT_ENV_VAR = "GMAIL_CALENDAR_MCP_ACCOUNT"

MAX_QUERY_LENGTH = 2000
MAX_SUBJECT_LENGTH = 1000
MAX_BODY_LENGTH = 10 * 1024 * 1024

_ADDRESS_LIST = {"type": "string", "description": "Comma-separated email addresses"}
_CALENDAR_ID = {
    "type": "string",
    "description": "Calendar ID (default: 'primary')",
    "default": "primary",
}
_ATTENDEES = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Attendee email addresses",
}


def sanitize_arguments(value: Any) -> Any:
    """Strip control characters from every string in a tool argument tree."""
    if isinstance(value, str):
        return strip_control_chars(value)
    if isinstance(value, list):
        return [sanitize_arguments(item) for item in value]
    if isinstance(value, dict):
        return {key: sanitize_arguments(item) for key, item in value.items()}
    return value


def _require(arguments: dict[str, Any], name: str) -> Any:
    value = arguments.get(name)
    if value is None or value == "":
        raise ValueError(f"Missing required argument: {name}")
    return value


class WorkspaceServer:
    """MCP server for the Gmail and Calendar tools.

    Attributes:
        server: MCP Server instance.
        client: API client used by every handler.
    """

    def __init__(self, client: ApiClient | None = None, account: str | None = None) -> None:
        """Initialize the server.

        Args:
            client: API client; by default a GoogleApiClient for ``account``.
            account: Account alias; defaults to $GMAIL_CALENDAR_MCP_ACCOUNT.
        """
        self.server = Server(SERVER_NAME)
        if client is None:
            account = account or os.environ.get(ACCOUNT_ENV_VAR)
            client = GoogleApiClient(OAuthManager(account=account))
        self.client = client
        self._setup_handlers()

    async def close(self) -> None:
        """Release the API client's connections."""
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()

    def _setup_handlers(self) -> None:
        """Register MCP tool handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            """Return list of available tools."""
            return self.list_tool_definitions()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            """Handle tool calls."""
            return await self.handle_call(name, arguments)

    async def handle_call(self, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        """Run a tool and render its result (or error) as JSON text."""
        try:
            result = await self._dispatch_tool(name, sanitize_arguments(arguments or {}))
            return [TextContent(type="text", text=json.dumps(result, indent=2))]
        except Exception as e:
            logger.exception("Error calling tool %s", name)
            return [
                TextContent(
                    type="text",
                    text=json.dumps({"error": str(e)}, indent=2),
                )
            ]

    def list_tool_definitions(self) -> list[Tool]:
        return [
            Tool(
                name="gmail_list_threads",
                description=(
                    "List email threads matching a Gmail search query. "
                    "Returns compact summaries with subject, snippet and labels."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "Gmail search query (e.g. 'is:inbox newer_than:7d')",
                        },
                        "max_results": {
                            "type": "integer",
                            "description": "Maximum number of threads (default: 25)",
                            "default": 25,
                        },
                        "page_token": {
                            "type": "string",
                            "description": "Token of the page to fetch",
                        },
                    },
                },
            ),
            Tool(
                name="gmail_get_thread",
                description=(
                    "Read every message of a thread. Bodies are converted to text and "
                    "stripped of quoted replies and signatures."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "thread_id": {"type": "string", "description": "Gmail thread ID"},
                        "format": {
                            "type": "string",
                            "enum": ["full", "minimal"],
                            "description": "'full' includes bodies (default), 'minimal' does not",
                            "default": "full",
                        },
                    },
                    "required": ["thread_id"],
                },
            ),
            Tool(
                name="gmail_create_draft",
                description=(
                    "Create a draft email. The plain-text body is rendered as HTML; "
                    "'1. ' and '- ' blocks become lists, [label](url) becomes a link. "
                    "Pass thread_id to reply within a thread."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "to": _ADDRESS_LIST,
                        "subject": {"type": "string", "description": "Subject line"},
                        "body": {"type": "string", "description": "Plain-text body"},
                        "thread_id": {"type": "string", "description": "Thread to reply in"},
                        "in_reply_to": {
                            "type": "string",
                            "description": "Message-ID being replied to",
                        },
                        "cc": _ADDRESS_LIST,
                        "bcc": _ADDRESS_LIST,
                    },
                    "required": ["to", "subject", "body"],
                },
            ),
            Tool(
                name="gmail_update_draft",
                description="Update a draft. Fields not supplied keep their current value.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "draft_id": {"type": "string", "description": "Draft ID"},
                        "to": _ADDRESS_LIST,
                        "subject": {"type": "string", "description": "Subject line"},
                        "body": {"type": "string", "description": "Plain-text body"},
                        "thread_id": {"type": "string", "description": "Thread to reply in"},
                        "in_reply_to": {
                            "type": "string",
                            "description": "Message-ID being replied to",
                        },
                        "cc": _ADDRESS_LIST,
                        "bcc": _ADDRESS_LIST,
                    },
                    "required": ["draft_id"],
                },
            ),
            Tool(
                name="gmail_delete_draft",
                description="Permanently delete a draft",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "draft_id": {"type": "string", "description": "Draft ID"},
                    },
                    "required": ["draft_id"],
                },
            ),
            Tool(
                name="gmail_list_drafts",
                description="List drafts with subject and recipients",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "max_results": {
                            "type": "integer",
                            "description": "Maximum number of drafts (default: 25)",
                            "default": 25,
                        },
                    },
                },
            ),
            Tool(
                name="gmail_list_labels",
                description="List Gmail labels (system and user)",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="calendar_list_events",
                description="List calendar events in a time window (default: the next 7 days)",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "time_min": {
                            "type": "string",
                            "description": "Window start, RFC3339 (default: now)",
                        },
                        "time_max": {
                            "type": "string",
                            "description": "Window end, RFC3339 (default: now + 7 days)",
                        },
                        "max_results": {
                            "type": "integer",
                            "description": "Maximum number of events (default: 25)",
                            "default": 25,
                        },
                        "calendar_id": _CALENDAR_ID,
                    },
                },
            ),
            Tool(
                name="calendar_create_event",
                description=(
                    "Create a calendar event. Use YYYY-MM-DD for all-day events, "
                    "an ISO 8601 timestamp otherwise."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "summary": {"type": "string", "description": "Event title"},
                        "start": {"type": "string", "description": "Start date or timestamp"},
                        "end": {"type": "string", "description": "End date or timestamp"},
                        "description": {"type": "string", "description": "Event description"},
                        "attendees": _ATTENDEES,
                        "location": {"type": "string", "description": "Event location"},
                        "calendar_id": _CALENDAR_ID,
                    },
                    "required": ["summary", "start", "end"],
                },
            ),
            Tool(
                name="calendar_update_event",
                description="Update the supplied fields of a calendar event",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "event_id": {"type": "string", "description": "Event ID"},
                        "summary": {"type": "string", "description": "New title"},
                        "start": {"type": "string", "description": "New start"},
                        "end": {"type": "string", "description": "New end"},
                        "description": {"type": "string", "description": "New description"},
                        "attendees": _ATTENDEES,
                        "location": {"type": "string", "description": "New location"},
                        "calendar_id": _CALENDAR_ID,
                    },
                    "required": ["event_id"],
                },
            ),
            Tool(
                name="calendar_delete_event",
                description="Delete a calendar event",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "event_id": {"type": "string", "description": "Event ID"},
                        "calendar_id": _CALENDAR_ID,
                    },
                    "required": ["event_id"],
                },
            ),
        ]

    async def _dispatch_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Dispatch tool call to appropriate handler.

        Args:
            name: Tool name.
            arguments: Sanitized tool arguments.

        Returns:
            Tool result as dictionary.

        Raises:
            ValueError: If tool name is not recognized.
        """
        handlers = {
            "gmail_list_threads": self._list_threads,
            "gmail_get_thread": self._get_thread,
            "gmail_create_draft": self._create_draft,
            "gmail_update_draft": self._update_draft,
            "gmail_delete_draft": self._delete_draft,
            "gmail_list_drafts": self._list_drafts,
            "gmail_list_labels": self._list_labels,
            "calendar_list_events": self._list_events,
            "calendar_create_event": self._create_event,
            "calendar_update_event": self._update_event,
            "calendar_delete_event": self._delete_event,
        }

        handler = handlers.get(name)
        if handler is None:
            raise ValueError(f"Unknown tool: {name}")

        return await handler(arguments)

    @staticmethod
    def _check_message_sizes(arguments: dict[str, Any]) -> None:
        if arguments.get("subject"):
            validate_string_size(arguments["subject"], MAX_SUBJECT_LENGTH, "subject")
        if arguments.get("body"):
            validate_string_size(arguments["body"], MAX_BODY_LENGTH, "body")

    async def _list_threads(self, arguments: dict[str, Any]) -> dict[str, Any]:
        query = arguments.get("query")
        if query:
            validate_string_size(query, MAX_QUERY_LENGTH, "query")
        return await threads.list_threads(
            self.client,
            query=query,
            max_results=arguments.get("max_results"),
            page_token=arguments.get("page_token"),
        )

    async def _get_thread(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await threads.get_thread(
            self.client,
            _require(arguments, "thread_id"),
            format=arguments.get("format", "full"),
        )

    async def _create_draft(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Create a draft from the tool arguments.

        Args:
            arguments: Tool arguments with to, subject, body and optional
                thread_id, in_reply_to, cc, bcc.
        """
        self._check_message_sizes(arguments)
        return await drafts.create_draft(
            self.client,
            to=_require(arguments, "to"),
            subject=_require(arguments, "subject"),
            body=_require(arguments, "body"),
            thread_id=arguments.get("thread_id"),
            in_reply_to=arguments.get("in_reply_to"),
            cc=arguments.get("cc"),
            bcc=arguments.get("bcc"),
        )

    async def _update_draft(self, arguments: dict[str, Any]) -> dict[str, Any]:
        self._check_message_sizes(arguments)
        return await drafts.update_draft(
            self.client,
            _require(arguments, "draft_id"),
            to=arguments.get("to"),
            subject=arguments.get("subject"),
            body=arguments.get("body"),
            thread_id=arguments.get("thread_id"),
            in_reply_to=arguments.get("in_reply_to"),
            cc=arguments.get("cc"),
            bcc=arguments.get("bcc"),
        )

    async def _delete_draft(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await drafts.delete_draft(self.client, _require(arguments, "draft_id"))

    async def _list_drafts(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await drafts.list_drafts(self.client, max_results=arguments.get("max_results"))

    async def _list_labels(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await labels.list_labels(self.client)

    async def _list_events(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await events.list_events(
            self.client,
            time_min=arguments.get("time_min"),
            time_max=arguments.get("time_max"),
            max_results=arguments.get("max_results"),
            calendar_id=arguments.get("calendar_id"),
        )

    async def _create_event(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await events.create_event(
            self.client,
            summary=_require(arguments, "summary"),
            start=_require(arguments, "start"),
            end=_require(arguments, "end"),
            description=arguments.get("description"),
            attendees=arguments.get("attendees"),
            location=arguments.get("location"),
            calendar_id=arguments.get("calendar_id"),
        )

    async def _update_event(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await events.update_event(
            self.client,
            _require(arguments, "event_id"),
            summary=arguments.get("summary"),
            start=arguments.get("start"),
            end=arguments.get("end"),
            description=arguments.get("description"),
            attendees=arguments.get("attendees"),
            location=arguments.get("location"),
            calendar_id=arguments.get("calendar_id"),
        )

    async def _delete_event(self, arguments: dict[str, Any]) -> dict[str, Any]:
        return await events.delete_event(
            self.client,
            _require(arguments, "event_id"),
            calendar_id=arguments.get("calendar_id"),
        )

    async def run(self) -> None:
        """Run the MCP server using stdio transport."""
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.close()


def main(account: str | None = None) -> None:
    """Entry point for the Gmail and Calendar MCP server."""
    server = WorkspaceServer(account=account)
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
