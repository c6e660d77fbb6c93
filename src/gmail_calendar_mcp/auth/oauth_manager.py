"""OAuth manager for Gmail and Calendar access.

Runs the installed-app consent flow with google-auth-oauthlib and refreshes
stored tokens with google-auth.

Environment Variables:
    GOOGLE_OAUTH_CLIENT_ID: Google OAuth client ID.
    GOOGLE_OAUTH_CLIENT_SECRET: Google OAuth client secret.
    GOOGLE_OAUTH_REFRESH_TOKEN: Optional. With the two above, lets the server
        run without a token file (headless deployments).
"""

import asyncio
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from gmail_calendar_mcp.auth.models import OAuthToken, StoredToken, TokenMetadata, TokenStatus
from gmail_calendar_mcp.auth.token_storage import TokenStorage

logger = logging.getLogger(__name__)

GMAIL_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.compose",
    "https://www.googleapis.com/auth/gmail.labels",
    "https://www.googleapis.com/auth/calendar",
]

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"  # nosec B105 - public endpoint
DEFAULT_OAUTH_PORT = 8789


class OAuthManager:
    """OAuth authentication manager for one account alias.

    Attributes:
        storage: Token storage instance for persisting credentials.
        account: Account alias, or None for the storage's default account.

    Example:
        ```python
        manager = OAuthManager(account="work")
        token = await manager.authenticate(client_id="...", client_secret="...")

        status, stored = manager.get_status()
        if status == TokenStatus.EXPIRED:
            token = await manager.refresh_if_needed()
        ```
    """

    def __init__(self, storage: TokenStorage | None = None, account: str | None = None) -> None:
        """Initialize OAuth manager.

        Args:
            storage: Token storage instance. Creates default if not provided.
            account: Account alias to operate on.
        """
        self.storage = storage or TokenStorage()
        self.account = account

    @property
    def token_path(self) -> Path:
        """Path to the tokens.json file."""
        return self.storage.token_path

    def resolve_account(self) -> str:
        """Alias this manager reads and writes."""
        return self.account or self.storage.get_default_account()

    def has_valid_tokens(self) -> bool:
        """Check whether a non-expired token is stored for the account."""
        return self.storage.get_status(self.account) == TokenStatus.VALID

    def _credentials_to_token(self, credentials: Credentials, scopes: list[str]) -> OAuthToken:
        """Convert google-auth Credentials to OAuthToken."""
        if credentials.expiry:
            expires_at = credentials.expiry
            # google-auth returns naive UTC datetimes
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
        else:
            expires_at = datetime.now(timezone.utc) + timedelta(hours=1)

        return OAuthToken(  # nosec B106 - "Bearer" is the token type, not a password
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expires_at=expires_at,
            scopes=scopes,
            token_type="Bearer",
            client_id=getattr(credentials, "client_id", None),
            client_secret=getattr(credentials, "client_secret", None),
        )

    def _token_to_credentials(self, token: OAuthToken) -> Credentials:
        """Convert OAuthToken to google-auth Credentials."""
        return Credentials(
            token=token.access_token or None,
            refresh_token=token.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=token.client_id or os.environ.get("GOOGLE_OAUTH_CLIENT_ID"),
            client_secret=token.client_secret or os.environ.get("GOOGLE_OAUTH_CLIENT_SECRET"),
            scopes=token.scopes or None,
        )

    def _run_consent_flow(
        self, client_id: str, client_secret: str, scopes: list[str], port: int
    ) -> Credentials:
        """Open the browser consent screen and wait for the redirect (blocking)."""
        client_config = {
            "installed": {
                "client_id": client_id,
                "client_secret": client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": ["http://localhost"],
            }
        }
        flow = InstalledAppFlow.from_client_config(client_config, scopes=scopes)
        return flow.run_local_server(port=port, access_type="offline", prompt="consent")

    async def authenticate(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        scopes: list[str] | None = None,
        port: int = DEFAULT_OAUTH_PORT,
    ) -> OAuthToken:
        """Run the consent flow and store the resulting token.

        Args:
            client_id: Google OAuth client ID.
            client_secret: Google OAuth client secret.
            scopes: Scopes to request. Defaults to GMAIL_CALENDAR_SCOPES.
            port: Local port receiving the OAuth redirect.

        Returns:
            The newly stored OAuthToken.

        Raises:
            ValueError: If client ID or secret is missing.
        """
        if not client_id or not client_secret:
            raise ValueError(
                "Client ID and secret required. "
                "Pass as arguments or set GOOGLE_OAUTH_CLIENT_ID and "
                "GOOGLE_OAUTH_CLIENT_SECRET environment variables."
            )
        scopes = scopes or GMAIL_CALENDAR_SCOPES

        loop = asyncio.get_running_loop()
        credentials = await loop.run_in_executor(
            None, self._run_consent_flow, client_id, client_secret, scopes, port
        )

        token = self._credentials_to_token(credentials, scopes)
        token.client_id = client_id
        token.client_secret = client_secret

        account = self.resolve_account()
        self.storage.store(account, token, TokenMetadata(account=account))
        return token

    def token_from_environment(self) -> OAuthToken | None:
        """Build an already-expired token from GOOGLE_OAUTH_* variables.

        The token carries only a refresh token, so the first use refreshes it.
        """
        client_id = os.environ.get("GOOGLE_OAUTH_CLIENT_ID")
        client_secret = os.environ.get("GOOGLE_OAUTH_CLIENT_SECRET")
        refresh_token = os.environ.get("GOOGLE_OAUTH_REFRESH_TOKEN")
        if not (client_id and client_secret and refresh_token):
            return None

        return OAuthToken(
            access_token="",
            refresh_token=refresh_token,
            expires_at=datetime.fromtimestamp(0, tz=timezone.utc),
            scopes=GMAIL_CALENDAR_SCOPES,
            client_id=client_id,
            client_secret=client_secret,
        )

    async def _refresh(self, token: OAuthToken) -> OAuthToken:
        credentials = self._token_to_credentials(token)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, credentials.refresh, Request())

        new_token = self._credentials_to_token(credentials, token.scopes)
        # Google only returns a refresh token on first consent.
        new_token.refresh_token = new_token.refresh_token or token.refresh_token
        new_token.client_id = token.client_id
        new_token.client_secret = token.client_secret
        return new_token

    async def refresh_if_needed(self) -> OAuthToken | None:
        """Return a usable token, refreshing it first if expired.

        Returns:
            A valid OAuthToken, or None if no token exists or it cannot be
            refreshed.
        """
        stored = self.storage.retrieve(self.account)
        if stored is None:
            env_token = self.token_from_environment()
            if env_token is None:
                return None
            logger.info("Using refresh token from environment")
            return await self._refresh(env_token)

        if not stored.token.is_expired():
            return stored.token

        if stored.token.refresh_token is None:
            return None

        logger.info("Refreshing access token for account '%s'", self.resolve_account())
        new_token = await self._refresh(stored.token)

        stored.metadata.last_refreshed = datetime.now(timezone.utc)
        self.storage.store(self.resolve_account(), new_token, stored.metadata)
        return new_token

    def get_status(self) -> tuple[TokenStatus, StoredToken | None]:
        """Get the status of the account's token.

        Returns:
            Tuple of (TokenStatus, StoredToken or None).
        """
        status = self.storage.get_status(self.account)
        stored = self.storage.retrieve(self.account) if status != TokenStatus.MISSING else None
        return (status, stored)

    def list_accounts(self) -> list[dict[str, str | bool | None]]:
        """Describe every stored account.

        Returns:
            One entry per alias with its email (if known) and default flag.
        """
        default = self.storage.get_default_account()
        accounts: list[dict[str, str | bool | None]] = []
        for alias in self.storage.list_accounts():
            stored = self.storage.retrieve(alias)
            accounts.append(
                {
                    "alias": alias,
                    "email": stored.metadata.email if stored else None,
                    "default": alias == default,
                }
            )
        return accounts
