"""Command-line interface for gdrive-mcp."""

import asyncio
import sys

import click
from dotenv import load_dotenv

from gdrive_mcp.__version__ import __version__


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Google Drive MCP Server - Connect MCP clients to Google Drive and Sheets.

    Provides Drive files as resources plus tools to search Drive,
    read files, and read spreadsheet values.
    """
    load_dotenv()


@main.command()
def auth() -> None:
    """Authorize access to Google Drive in the browser.

    This will:
    1. Open browser for the OAuth2 consent flow
    2. Store credentials, including a refresh token, in the credentials directory

    Requires gcp-oauth.keys.json in the credentials directory, or the
    CLIENT_ID and CLIENT_SECRET environment variables.
    """
    from gdrive_mcp.auth import AuthenticationError, AuthMode, CredentialProvider

    provider = CredentialProvider()

    if provider.get_auth_type() == AuthMode.SERVICE_ACCOUNT:
        click.echo("Service account mode is active; no browser authorization needed.")
        click.echo(f"Key file: {provider.settings.service_account_file}")
        return

    click.echo("Starting OAuth authentication flow...")
    click.echo("Browser will open for Google consent...")
    click.echo("")

    try:
        asyncio.run(provider.get_valid_credentials(force_auth=True))
    except AuthenticationError as e:
        click.echo(f"❌ Authentication failed: {e}")
        sys.exit(1)

    click.echo("✓ Authentication successful!")
    click.echo(f"Credentials stored at: {provider.oauth.token_path}")


@main.command()
def mcp() -> None:
    """Start the MCP server over stdio.

    Startup authenticates first: stored credentials are used or refreshed,
    and the browser opens only when nothing usable is stored.
    """
    from gdrive_mcp.server import main as server_main

    try:
        click.echo("Starting Google Drive MCP server...", err=True)
        server_main()
    except KeyboardInterrupt:
        click.echo("\nServer stopped.", err=True)


@main.command()
def status() -> None:
    """Show authentication mode and credential status."""
    from gdrive_mcp.auth import AuthMode, CredentialProvider, TokenStatus

    provider = CredentialProvider()
    auth_type = provider.get_auth_type()

    click.echo("Google Drive MCP Status:")
    click.echo("")
    click.echo(f"  Auth mode: {auth_type.value}")
    click.echo(f"  Credentials directory: {provider.settings.creds_dir}")

    if auth_type == AuthMode.SERVICE_ACCOUNT:
        key_path = provider.settings.service_account_file
        click.echo(f"  Service account key: {key_path}")
        if key_path.exists():
            click.echo("  ✓ Key file present")
        else:
            click.echo("  ❌ Key file missing")
            sys.exit(1)
        return

    token_status, record = provider.oauth.get_status()
    click.echo(f"  Token file: {provider.oauth.token_path}")

    if token_status == TokenStatus.MISSING:
        click.echo("  ❌ Not authenticated")
        click.echo("")
        click.echo("Run 'gdrive-mcp auth' to authenticate.")
        sys.exit(1)
    elif token_status == TokenStatus.INVALID:
        click.echo("  ❌ Token file corrupted")
        click.echo("")
        click.echo("Run 'gdrive-mcp auth' to re-authenticate.")
        sys.exit(1)

    click.echo(f"  Token status: {token_status.value}")
    if record is not None:
        if record.expires_at is not None:
            click.echo(f"  Token expires: {record.expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")
        click.echo(f"  Refresh token: {'present' if record.refresh_token else 'missing'}")
        click.echo(f"  Scopes: {record.scope}")

    if token_status == TokenStatus.EXPIRED and (record is None or not record.refresh_token):
        click.echo("")
        click.echo("Run 'gdrive-mcp auth' to re-authenticate.")


if __name__ == "__main__":
    main()
