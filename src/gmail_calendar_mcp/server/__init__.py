"""MCP server implementation for Gmail and Calendar.

Gmail Tools (7):
- List and read threads, with bodies trimmed to new content
- Create, update, list and delete drafts
- List labels

Calendar Tools (4):
- List, create, update and delete events

Transport: Stdio
Authentication: OAuth 2.0 with automatic token refresh
"""

from gmail_calendar_mcp.server.workspace_server import WorkspaceServer, main


def create_server(account: str | None = None) -> WorkspaceServer:
    """Create a Gmail and Calendar MCP server.

    Returns:
        WorkspaceServer: Configured server instance ready to run.

    Example:
        >>> server = create_server(account="work")
        >>> asyncio.run(server.run())
    """
    return WorkspaceServer(account=account)


__all__ = ["create_server", "WorkspaceServer", "main"]
