"""Shared pytest fixtures for gmail-calendar-mcp tests.

This module provides reusable fixtures for OAuth token storage, a mocked
API client, and Gmail payload builders.
"""

import base64
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from gmail_calendar_mcp.auth.models import OAuthToken, StoredToken, TokenMetadata

# =============================================================================
# Token Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_oauth_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real OAuth environment variables out of every test."""
    for name in (
        "GOOGLE_OAUTH_CLIENT_ID",
        "GOOGLE_OAUTH_CLIENT_SECRET",
        "GOOGLE_OAUTH_REFRESH_TOKEN",
        "GMAIL_CALENDAR_MCP_ACCOUNT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def valid_token() -> OAuthToken:
    """Create a valid, non-expired OAuth token."""
    return OAuthToken(
        access_token="test_access_token_abc123",
        refresh_token="test_refresh_token_xyz789",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        scopes=[
            "https://www.googleapis.com/auth/gmail.readonly",
            "https://www.googleapis.com/auth/gmail.compose",
            "https://www.googleapis.com/auth/calendar",
        ],
        token_type="Bearer",
        client_id="test-client-id",
        client_secret="test-client-secret",  # pragma: allowlist secret
    )


@pytest.fixture
def expired_token() -> OAuthToken:
    """Create an expired OAuth token."""
    return OAuthToken(
        access_token="expired_access_token",
        refresh_token="test_refresh_token",
        expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
        scopes=["https://www.googleapis.com/auth/calendar"],
        token_type="Bearer",
        client_id="test-client-id",
        client_secret="test-client-secret",  # pragma: allowlist secret
    )


@pytest.fixture
def token_metadata() -> TokenMetadata:
    """Create token metadata for testing."""
    return TokenMetadata(
        account="default",
        email="me@example.com",
        created_at=datetime.now(timezone.utc) - timedelta(days=1),
    )


@pytest.fixture
def stored_token(valid_token: OAuthToken, token_metadata: TokenMetadata) -> StoredToken:
    """Create a complete stored token for testing."""
    return StoredToken(version=1, metadata=token_metadata, token=valid_token)


# =============================================================================
# Token Storage Fixtures
# =============================================================================


@pytest.fixture
def temp_token_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for token storage tests."""
    token_dir = tmp_path / "gmail-calendar-mcp"
    token_dir.mkdir(parents=True, mode=0o700)
    return token_dir


@pytest.fixture
def temp_token_path(temp_token_dir: Path) -> Path:
    """Get the path for a temporary tokens.json file."""
    return temp_token_dir / "tokens.json"


@pytest.fixture
def token_storage(temp_token_path: Path):
    """Create a TokenStorage instance with temporary storage."""
    from gmail_calendar_mcp.auth.token_storage import TokenStorage

    return TokenStorage(token_path=temp_token_path)


@pytest.fixture
def oauth_manager(token_storage):
    """Create an OAuthManager with temporary storage."""
    from gmail_calendar_mcp.auth.oauth_manager import OAuthManager

    return OAuthManager(storage=token_storage)


@pytest.fixture
def mock_google_credentials() -> MagicMock:
    """Create a mock Google OAuth2 Credentials object."""
    mock_creds = MagicMock()
    mock_creds.token = "mock_access_token"
    mock_creds.refresh_token = "mock_refresh_token"
    mock_creds.expiry = datetime.now(timezone.utc) + timedelta(hours=1)
    mock_creds.client_id = "test-client-id"
    mock_creds.client_secret = "test-client-secret"  # pragma: allowlist secret
    return mock_creds


# =============================================================================
# API Client Mock
# =============================================================================


@pytest.fixture
def mock_api_client() -> MagicMock:
    """Create a mock API client with async request methods.

    Tests set ``request.side_effect`` to a router or a list of responses.
    """
    client = MagicMock()
    client.request = AsyncMock(return_value={})
    client.request_no_content = AsyncMock(return_value=None)
    return client


# =============================================================================
# Gmail Payload Builders
# =============================================================================


def _b64url(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


@pytest.fixture
def b64url() -> Callable[[str], str]:
    """Encode text the way Gmail encodes part bodies."""
    return _b64url


@pytest.fixture
def make_part() -> Callable[..., dict[str, Any]]:
    """Build a Gmail MIME part dictionary."""

    def _make_part(
        mime_type: str,
        text: str | None = None,
        parts: list[dict[str, Any]] | None = None,
        filename: str = "",
        headers: list[dict[str, str]] | None = None,
        attachment_size: int | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if text is not None:
            body = {"data": _b64url(text), "size": len(text.encode("utf-8"))}
        elif attachment_size is not None:
            body = {"attachmentId": "att-1", "size": attachment_size}
        part: dict[str, Any] = {
            "mimeType": mime_type,
            "filename": filename,
            "headers": headers or [],
            "body": body,
        }
        if parts is not None:
            part["parts"] = parts
        return part

    return _make_part


# =============================================================================
# CLI Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
