"""OAuth credentials for gmail-calendar-mcp.

Quick Start:
    ```python
    from gmail_calendar_mcp.auth import OAuthManager

    manager = OAuthManager(account="work")
    await manager.authenticate(
        client_id="your-client-id",
        client_secret="your-client-secret"  # pragma: allowlist secret
    )
    token = await manager.refresh_if_needed()
    ```
"""

from gmail_calendar_mcp.auth.models import (
    OAuthToken,
    StoredToken,
    TokenMetadata,
    TokenStatus,
)
from gmail_calendar_mcp.auth.oauth_manager import GMAIL_CALENDAR_SCOPES, OAuthManager
from gmail_calendar_mcp.auth.token_storage import TokenStorage

__all__ = [
    "OAuthManager",
    "TokenStorage",
    "OAuthToken",
    "StoredToken",
    "TokenMetadata",
    "TokenStatus",
    "GMAIL_CALENDAR_SCOPES",
]
