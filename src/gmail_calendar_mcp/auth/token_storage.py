"""JSON token storage for gmail-calendar-mcp.

Storage Location: ~/.config/gmail-calendar-mcp/tokens.json, or
$GMAIL_CALENDAR_MCP_HOME/tokens.json when that variable is set.

The file holds one token per account alias:

    {
      "version": 2,
      "default_account": "default",
      "accounts": {"default": {...StoredToken...}, "work": {...}}
    }

A legacy file holding a single flat token record is migrated to this layout
the first time it is loaded.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from gmail_calendar_mcp.auth.models import OAuthToken, StoredToken, TokenMetadata, TokenStatus

logger = logging.getLogger(__name__)

STORE_VERSION = 2
DEFAULT_ACCOUNT = "default"


def get_credentials_dir() -> Path:
    """Get the credentials directory, honouring GMAIL_CALENDAR_MCP_HOME."""
    override = os.environ.get("GMAIL_CALENDAR_MCP_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "gmail-calendar-mcp"


def get_token_path() -> Path:
    """Get the default tokens.json path."""
    return get_credentials_dir() / "tokens.json"


def _from_legacy_record(data: dict[str, Any]) -> StoredToken | None:
    """Convert a legacy flat token record into a StoredToken.

    Legacy records carry ``client_id``, ``client_secret``, ``refresh_token``
    and optionally ``access_token``, ``expiry_date`` (epoch milliseconds) and
    ``email``.
    """
    if "token" in data:
        try:
            return StoredToken.model_validate(data)
        except ValidationError:
            return None

    if not data.get("refresh_token"):
        return None

    expiry_ms = data.get("expiry_date") or 0
    token = OAuthToken(
        access_token=data.get("access_token") or "",
        refresh_token=data["refresh_token"],
        expires_at=datetime.fromtimestamp(expiry_ms / 1000, tz=timezone.utc),
        client_id=data.get("client_id"),
        client_secret=data.get("client_secret"),
    )
    metadata = TokenMetadata(account=DEFAULT_ACCOUNT, email=data.get("email"))
    return StoredToken(metadata=metadata, token=token)


class TokenStorage:
    """JSON file storage for OAuth tokens, keyed by account alias.

    The directory is kept at mode 0700 and the file at 0600.

    Attributes:
        token_path: Path to the tokens.json file.

    Example:
        ```python
        storage = TokenStorage()
        storage.store("work", token, TokenMetadata(account="work"))
        stored = storage.retrieve("work")
        ```
    """

    def __init__(self, token_path: Path | None = None) -> None:
        """Initialize token storage.

        Args:
            token_path: Custom path for tokens.json. Defaults to
                :func:`get_token_path`.
        """
        self.token_path = token_path or get_token_path()
        self._ensure_credentials_dir()

    def _ensure_credentials_dir(self) -> None:
        """Create the credentials directory with owner-only permissions."""
        creds_dir = self.token_path.parent
        if not creds_dir.exists():
            creds_dir.mkdir(parents=True, mode=0o700)
        else:
            creds_dir.chmod(0o700)

    def _empty_store(self) -> dict[str, Any]:
        return {"version": STORE_VERSION, "default_account": DEFAULT_ACCOUNT, "accounts": {}}

    def _load_store(self) -> dict[str, Any]:
        """Load the whole store, migrating a legacy flat file if needed."""
        if not self.token_path.exists():
            return self._empty_store()

        try:
            with open(self.token_path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read token file %s: %s", self.token_path, e)
            return self._empty_store()

        if not isinstance(data, dict):
            return self._empty_store()

        if data.get("version") == STORE_VERSION and isinstance(data.get("accounts"), dict):
            return data

        logger.warning("Migrating legacy token file to the multi-account layout")
        migrated = self._empty_store()
        legacy = _from_legacy_record(data)
        if legacy is not None:
            migrated["accounts"][DEFAULT_ACCOUNT] = json.loads(legacy.model_dump_json())
        self._save_store(migrated)
        return migrated

    def _save_store(self, store: dict[str, Any]) -> None:
        """Write the whole store with owner-only permissions."""
        self._ensure_credentials_dir()
        with open(self.token_path, "w") as f:
            json.dump(store, f, indent=2, default=str)
        self.token_path.chmod(0o600)

    def store(self, account: str, token: OAuthToken, metadata: TokenMetadata) -> None:
        """Store the token of an account, replacing any previous one.

        The first account ever stored becomes the default account.
        """
        store = self._load_store()
        if not store["accounts"]:
            store["default_account"] = account

        stored_token = StoredToken(version=1, metadata=metadata, token=token)
        store["accounts"][account] = json.loads(stored_token.model_dump_json())
        self._save_store(store)

    def retrieve(self, account: str | None = None) -> StoredToken | None:
        """Retrieve the token of an account (default account if omitted).

        Returns:
            StoredToken if found and valid, None otherwise.
        """
        store = self._load_store()
        alias = account or store["default_account"]
        raw = store["accounts"].get(alias)
        if raw is None:
            return None

        try:
            return StoredToken.model_validate(raw)
        except ValidationError:
            return None

    def delete(self, account: str) -> bool:
        """Delete the token of an account.

        Returns:
            True if a token was deleted, False if none existed.
        """
        store = self._load_store()
        if account not in store["accounts"]:
            return False

        del store["accounts"][account]
        if store["default_account"] == account and store["accounts"]:
            store["default_account"] = sorted(store["accounts"])[0]
        self._save_store(store)
        return True

    def list_accounts(self) -> list[str]:
        """List account aliases that have stored tokens."""
        return sorted(self._load_store()["accounts"].keys())

    def get_default_account(self) -> str:
        """Get the alias used when no account is specified."""
        return str(self._load_store()["default_account"])

    def set_default_account(self, account: str) -> None:
        """Make ``account`` the default.

        Raises:
            ValueError: If the account has no stored token.
        """
        store = self._load_store()
        if account not in store["accounts"]:
            available = ", ".join(sorted(store["accounts"])) or "none"
            raise ValueError(f'Account "{account}" not found. Available accounts: {available}')
        store["default_account"] = account
        self._save_store(store)

    def get_status(self, account: str | None = None) -> TokenStatus:
        """Get the status of an account's stored token."""
        store = self._load_store()
        alias = account or store["default_account"]
        if alias not in store["accounts"]:
            return TokenStatus.MISSING

        stored = self.retrieve(alias)
        if stored is None:
            return TokenStatus.INVALID

        if stored.token.is_expired():
            return TokenStatus.EXPIRED

        return TokenStatus.VALID

    def clear_all(self) -> None:
        """Delete all stored tokens by removing the token file."""
        if self.token_path.exists():
            self.token_path.unlink()
