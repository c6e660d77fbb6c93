"""Command-line interface for gmail-calendar-mcp."""

import asyncio
import sys

import click

from gmail_calendar_mcp.__version__ import __version__

_account_option = click.option(
    "--account",
    envvar="GMAIL_CALENDAR_MCP_ACCOUNT",
    default=None,
    help="Account alias (default: the default account)",
)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Gmail & Calendar MCP Server - give an agent compact access to email and calendar.

    Tools:
    - Gmail (threads, drafts, labels)
    - Calendar (events)
    """
    pass


@main.command()
@_account_option
@click.option("--client-id", envvar="GOOGLE_OAUTH_CLIENT_ID", help="Google OAuth client ID")
@click.option(
    "--client-secret", envvar="GOOGLE_OAUTH_CLIENT_SECRET", help="Google OAuth client secret"
)
def setup(account: str | None, client_id: str | None, client_secret: str | None) -> None:
    """Set up OAuth authentication for an account.

    This will:
    1. Open browser for OAuth2 consent flow
    2. Store the refresh token at ~/.config/gmail-calendar-mcp/tokens.json

    Requires:
    - GOOGLE_OAUTH_CLIENT_ID environment variable or --client-id option
    - GOOGLE_OAUTH_CLIENT_SECRET environment variable or --client-secret option
    """
    from gmail_calendar_mcp.auth import OAuthManager

    manager = OAuthManager(account=account)

    if manager.has_valid_tokens():
        click.echo(f"✓ Account '{manager.resolve_account()}' already authenticated!")
        click.echo(f"Token stored at: {manager.token_path}")
        click.echo("")

        if not click.confirm("Re-authenticate?"):
            return

    if not client_id or not client_secret:
        click.echo("❌ Error: OAuth client credentials required")
        click.echo("")
        click.echo("Set environment variables:")
        click.echo("  export GOOGLE_OAUTH_CLIENT_ID='your-client-id'")
        click.echo("  export GOOGLE_OAUTH_CLIENT_SECRET='your-client-secret'")
        click.echo("")
        click.echo("Or pass as options:")
        click.echo("  gmail-calendar-mcp setup --client-id=... --client-secret=...")
        sys.exit(1)

    click.echo("Starting OAuth authentication flow...")
    click.echo("Browser will open for Google consent...")
    click.echo("")

    try:
        asyncio.run(manager.authenticate(client_id=client_id, client_secret=client_secret))
        click.echo(f"✓ Authentication successful for account '{manager.resolve_account()}'!")
        click.echo(f"Token stored at: {manager.token_path}")
        click.echo("")
        click.echo("Run 'gmail-calendar-mcp doctor' to verify setup.")
    except Exception as e:
        click.echo(f"❌ Authentication failed: {e}")
        sys.exit(1)


@main.command()
@_account_option
def mcp(account: str | None) -> None:
    """Start the MCP server over stdio.

    Authentication is required before starting the server, either a stored
    token (run 'gmail-calendar-mcp setup') or the GOOGLE_OAUTH_CLIENT_ID,
    GOOGLE_OAUTH_CLIENT_SECRET and GOOGLE_OAUTH_REFRESH_TOKEN variables.
    """
    from gmail_calendar_mcp.auth import OAuthManager, TokenStatus
    from gmail_calendar_mcp.server import main as server_main

    manager = OAuthManager(account=account)
    status, _ = manager.get_status()

    if status == TokenStatus.MISSING and manager.token_from_environment() is None:
        click.echo("❌ Not authenticated. Run 'gmail-calendar-mcp setup' first.", err=True)
        sys.exit(1)

    if status == TokenStatus.INVALID:
        click.echo(
            "❌ Token file corrupted. Run 'gmail-calendar-mcp setup' to re-authenticate.",
            err=True,
        )
        sys.exit(1)

    # Runs until stdin closes
    try:
        click.echo("Starting Gmail & Calendar MCP server...", err=True)
        server_main(account=account)
    except KeyboardInterrupt:
        click.echo("\nServer stopped.", err=True)
    except Exception as e:
        click.echo(f"❌ Server error: {e}", err=True)
        sys.exit(1)


@main.command()
def accounts() -> None:
    """List authenticated accounts."""
    from gmail_calendar_mcp.auth import OAuthManager

    entries = OAuthManager().list_accounts()
    if not entries:
        click.echo("No accounts configured. Run 'gmail-calendar-mcp setup' to add one.")
        return

    click.echo("Accounts:")
    for entry in entries:
        marker = "*" if entry["default"] else " "
        email = f" <{entry['email']}>" if entry["email"] else ""
        click.echo(f"  {marker} {entry['alias']}{email}")


@main.command()
@_account_option
def doctor(account: str | None) -> None:
    """Check installation and authentication status.

    Verifies:
    1. Python dependencies installed
    2. Token validity
    """
    from gmail_calendar_mcp.auth import OAuthManager, TokenStatus

    click.echo("Gmail & Calendar MCP Status:")
    click.echo("")

    click.echo("Dependencies:")
    try:
        import google.auth  # noqa: F401
        import google_auth_oauthlib  # noqa: F401

        click.echo("  ✓ google-auth installed")
        click.echo("  ✓ google-auth-oauthlib installed")
    except ImportError as e:
        click.echo(f"  ❌ Missing dependency: {e}")
        sys.exit(1)

    click.echo("")

    manager = OAuthManager(account=account)
    status, stored = manager.get_status()

    click.echo("Authentication:")
    click.echo(f"  Token file: {manager.token_path}")
    click.echo(f"  Account: {manager.resolve_account()}")

    if status == TokenStatus.MISSING:
        if manager.token_from_environment() is not None:
            click.echo("  ✓ Using refresh token from environment")
            click.echo("")
            click.echo("✓ Ready to use!")
            return
        click.echo("  ❌ Not authenticated")
        click.echo("")
        click.echo("Run 'gmail-calendar-mcp setup' to authenticate.")
        sys.exit(1)
    elif status == TokenStatus.INVALID:
        click.echo("  ❌ Token file corrupted")
        click.echo("")
        click.echo("Run 'gmail-calendar-mcp setup' to re-authenticate.")
        sys.exit(1)
    elif status == TokenStatus.EXPIRED:
        click.echo("  ⚠️  Token expired (can be refreshed)")
        click.echo("")
        click.echo("The token will refresh automatically on use.")
    elif status == TokenStatus.VALID:
        click.echo("  ✓ Authenticated")
        if stored:
            click.echo(
                f"  Token expires: {stored.token.expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}"
            )
            click.echo(f"  Scopes: {len(stored.token.scopes)} configured")

    click.echo("")
    click.echo("✓ Ready to use!")


if __name__ == "__main__":
    main()
