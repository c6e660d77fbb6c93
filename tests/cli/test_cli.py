"""CLI tests for the setup, mcp, accounts and doctor commands."""

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from gmail_calendar_mcp.auth import OAuthToken, StoredToken, TokenMetadata, TokenStatus
from gmail_calendar_mcp.auth.token_storage import TokenStorage
from gmail_calendar_mcp.cli.main import main


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point token storage at a temporary directory."""
    monkeypatch.setenv("GMAIL_CALENDAR_MCP_HOME", str(tmp_path))
    return tmp_path


def mock_manager(status: TokenStatus = TokenStatus.MISSING, stored=None) -> MagicMock:
    manager = MagicMock()
    manager.has_valid_tokens.return_value = status == TokenStatus.VALID
    manager.authenticate = AsyncMock()
    manager.token_path = "/tmp/tokens.json"
    manager.resolve_account.return_value = "default"
    manager.get_status.return_value = (status, stored)
    manager.token_from_environment.return_value = None
    return manager


@pytest.mark.unit
class TestSetupCommand:
    """Tests for the setup CLI command."""

    def test_should_show_error_without_credentials(self, cli_runner: CliRunner) -> None:
        """Verify error shown when client ID/secret not provided."""
        result = cli_runner.invoke(main, ["setup"])

        assert result.exit_code == 1
        assert "OAuth client credentials required" in result.output

    def test_should_run_authentication_with_credentials(self, cli_runner: CliRunner) -> None:
        """Verify authentication runs when credentials provided."""
        with patch("gmail_calendar_mcp.auth.OAuthManager") as mock_manager_class:
            manager = mock_manager()
            mock_manager_class.return_value = manager

            result = cli_runner.invoke(
                main,
                [
                    "setup",
                    "--account=work",
                    "--client-id=test_id",
                    "--client-secret=test_secret",
                ],
            )

        mock_manager_class.assert_called_once_with(account="work")
        manager.authenticate.assert_called_once_with(
            client_id="test_id",
            client_secret="test_secret",  # pragma: allowlist secret
        )
        assert "Browser will open" in result.output
        assert "Authentication successful" in result.output

    def test_should_read_credentials_from_environment(
        self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify GOOGLE_OAUTH_* variables are picked up."""
        monkeypatch.setenv("GOOGLE_OAUTH_CLIENT_ID", "env_id")
        monkeypatch.setenv("GOOGLE_OAUTH_CLIENT_SECRET", "env_secret")

        with patch("gmail_calendar_mcp.auth.OAuthManager") as mock_manager_class:
            manager = mock_manager()
            mock_manager_class.return_value = manager

            cli_runner.invoke(main, ["setup"])

        manager.authenticate.assert_called_once_with(
            client_id="env_id",
            client_secret="env_secret",  # pragma: allowlist secret
        )

    def test_should_stop_when_reauthentication_declined(self, cli_runner: CliRunner) -> None:
        """Verify an authenticated account is left alone unless confirmed."""
        with patch("gmail_calendar_mcp.auth.OAuthManager") as mock_manager_class:
            manager = mock_manager(TokenStatus.VALID)
            mock_manager_class.return_value = manager

            result = cli_runner.invoke(main, ["setup"], input="n\n")

        assert result.exit_code == 0
        assert "already authenticated" in result.output
        manager.authenticate.assert_not_called()

    def test_should_report_authentication_failure(self, cli_runner: CliRunner) -> None:
        """Verify a failed consent flow exits with an error."""
        with patch("gmail_calendar_mcp.auth.OAuthManager") as mock_manager_class:
            manager = mock_manager()
            manager.authenticate = AsyncMock(side_effect=RuntimeError("access_denied"))
            mock_manager_class.return_value = manager

            result = cli_runner.invoke(
                main, ["setup", "--client-id=test_id", "--client-secret=test_secret"]
            )

        assert result.exit_code == 1
        assert "Authentication failed: access_denied" in result.output


@pytest.mark.unit
class TestMcpCommand:
    """Tests for the mcp CLI command."""

    def test_should_refuse_to_start_without_token(self, cli_runner: CliRunner) -> None:
        """Verify the server does not start unauthenticated."""
        with patch("gmail_calendar_mcp.server.main") as server_main:
            result = cli_runner.invoke(main, ["mcp"])

        assert result.exit_code == 1
        assert "Not authenticated" in result.output
        server_main.assert_not_called()

    def test_should_refuse_corrupted_token(self, cli_runner: CliRunner) -> None:
        """Verify a corrupted token file blocks startup."""
        with (
            patch("gmail_calendar_mcp.auth.OAuthManager") as mock_manager_class,
            patch("gmail_calendar_mcp.server.main") as server_main,
        ):
            mock_manager_class.return_value = mock_manager(TokenStatus.INVALID)
            result = cli_runner.invoke(main, ["mcp"])

        assert result.exit_code == 1
        assert "Token file corrupted" in result.output
        server_main.assert_not_called()

    def test_should_start_server_for_account(self, cli_runner: CliRunner) -> None:
        """Verify the server starts with the selected account."""
        with (
            patch("gmail_calendar_mcp.auth.OAuthManager") as mock_manager_class,
            patch("gmail_calendar_mcp.server.main") as server_main,
        ):
            mock_manager_class.return_value = mock_manager(TokenStatus.EXPIRED)
            result = cli_runner.invoke(main, ["mcp", "--account", "work"])

        assert result.exit_code == 0
        server_main.assert_called_once_with(account="work")

    def test_should_start_with_environment_refresh_token(
        self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify env credentials are enough to start the server."""
        monkeypatch.setenv("GOOGLE_OAUTH_CLIENT_ID", "env_id")
        monkeypatch.setenv("GOOGLE_OAUTH_CLIENT_SECRET", "env_secret")
        monkeypatch.setenv("GOOGLE_OAUTH_REFRESH_TOKEN", "env_refresh")

        with patch("gmail_calendar_mcp.server.main") as server_main:
            result = cli_runner.invoke(main, ["mcp"])

        assert result.exit_code == 0
        server_main.assert_called_once_with(account=None)


@pytest.mark.unit
class TestAccountsCommand:
    """Tests for the accounts CLI command."""

    def test_should_explain_when_empty(self, cli_runner: CliRunner) -> None:
        """Verify guidance is printed when no account is stored."""
        result = cli_runner.invoke(main, ["accounts"])

        assert result.exit_code == 0
        assert "No accounts configured" in result.output

    def test_should_mark_default_account(
        self, cli_runner: CliRunner, isolated_home: Path, valid_token: OAuthToken
    ) -> None:
        """Verify stored accounts are listed with the default marked."""
        storage = TokenStorage(token_path=isolated_home / "tokens.json")
        for alias, email in (("personal", "me@example.com"), ("work", "me@work.example")):
            storage.store(
                alias,
                valid_token,
                TokenMetadata(account=alias, email=email, created_at=datetime.now(timezone.utc)),
            )
        storage.set_default_account("work")

        result = cli_runner.invoke(main, ["accounts"])

        assert "    personal <me@example.com>" in result.output
        assert "  * work <me@work.example>" in result.output


@pytest.mark.unit
class TestDoctorCommand:
    """Tests for the doctor CLI command."""

    def test_should_fail_when_not_authenticated(self, cli_runner: CliRunner) -> None:
        """Verify doctor exits non-zero without a token."""
        result = cli_runner.invoke(main, ["doctor"])

        assert result.exit_code == 1
        assert "google-auth installed" in result.output
        assert "Not authenticated" in result.output

    def test_should_report_valid_token(
        self, cli_runner: CliRunner, stored_token: StoredToken
    ) -> None:
        """Verify doctor summarizes a valid token."""
        with patch("gmail_calendar_mcp.auth.OAuthManager") as mock_manager_class:
            mock_manager_class.return_value = mock_manager(TokenStatus.VALID, stored_token)
            result = cli_runner.invoke(main, ["doctor"])

        assert result.exit_code == 0
        assert "✓ Authenticated" in result.output
        assert "Scopes: 3 configured" in result.output
        assert "Ready to use!" in result.output

    def test_should_note_expired_token(self, cli_runner: CliRunner) -> None:
        """Verify an expired token is reported as refreshable."""
        with patch("gmail_calendar_mcp.auth.OAuthManager") as mock_manager_class:
            mock_manager_class.return_value = mock_manager(TokenStatus.EXPIRED)
            result = cli_runner.invoke(main, ["doctor"])

        assert result.exit_code == 0
        assert "Token expired (can be refreshed)" in result.output
