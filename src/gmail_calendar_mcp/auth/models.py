"""Pydantic models for stored OAuth credentials."""

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field


class TokenStatus(str, Enum):
    """State of the stored token for an account."""

    VALID = "valid"
    EXPIRED = "expired"
    MISSING = "missing"
    INVALID = "invalid"


class OAuthToken(BaseModel):
    """OAuth2 token data for one Google account.

    Attributes:
        access_token: Bearer token for API calls.
        refresh_token: Long-lived token used to obtain new access tokens.
        expires_at: Expiry of the access token (timezone-aware, UTC).
        scopes: Granted scopes.
        token_type: Token type, always "Bearer" for Google.
        client_id: OAuth client the token was issued to; needed for refresh.
        client_secret: Secret of that OAuth client.
    """

    access_token: str = Field(..., description="OAuth access token")
    refresh_token: str | None = Field(default=None, description="OAuth refresh token")
    expires_at: datetime = Field(..., description="Access token expiry (UTC)")
    scopes: list[str] = Field(default_factory=list, description="Granted scopes")
    token_type: str = Field(default="Bearer", description="Token type")
    client_id: str | None = Field(default=None, description="OAuth client ID")
    client_secret: str | None = Field(default=None, description="OAuth client secret")

    def is_expired(self, buffer_seconds: int = 60) -> bool:
        """Check whether the access token is expired or about to expire.

        Args:
            buffer_seconds: Treat the token as expired this many seconds early.

        Returns:
            True if the token should be refreshed before use.
        """
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds) >= expires_at


class TokenMetadata(BaseModel):
    """Bookkeeping about a stored token."""

    account: str = Field(..., description="Account alias the token belongs to")
    provider: str = Field(default="google", description="OAuth provider")
    email: str | None = Field(default=None, description="Mailbox address, if known")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_refreshed: datetime | None = Field(default=None)


class StoredToken(BaseModel):
    """A token as persisted on disk, with its metadata."""

    version: int = Field(default=1, description="Record format version")
    metadata: TokenMetadata
    token: OAuthToken
