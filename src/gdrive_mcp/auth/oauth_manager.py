"""OAuth credential manager for Google Drive.

Loads persisted user credentials, refreshes them shortly before expiry,
persists refreshed state, and runs the interactive consent flow (with a
timeout) only when nothing usable is on disk.

Interactive authorization reads the OAuth client from gcp-oauth.keys.json in
the credentials directory, or from CLIENT_ID / CLIENT_SECRET when the keys
file is absent. The redirect URI defaults to http://127.0.0.1:8789/callback.
"""

import asyncio
import json
import logging
import secrets
import time
import webbrowser
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from gdrive_mcp.auth.credential_store import CredentialStore
from gdrive_mcp.auth.exceptions import (
    AuthenticationError,
    CredentialFileNotFoundError,
    MalformedCredentialsError,
)
from gdrive_mcp.auth.models import (
    GDRIVE_SCOPES,
    AuthFailure,
    AuthResult,
    CredentialRecord,
    TokenStatus,
)
from gdrive_mcp.config import AuthSettings

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"  # nosec B105 - public Google endpoint
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"

DEFAULT_OAUTH_HOST = "127.0.0.1"
DEFAULT_OAUTH_PORT = 8789


class OAuthCredentialManager:
    """Lifecycle manager for OAuth user credentials.

    Per call, the stored record is in one of these states:

    - missing: quiet load yields nothing, interactive authorization required
    - valid: more than five minutes left, used as-is without any write
    - expiring: refreshed once with the refresh token, then persisted;
      a failed refresh yields nothing and leaves the file untouched

    All public coroutines are serialised by one lock, so a refresh never
    races another refresh or an interactive authorization.

    Attributes:
        settings: Authentication settings.
        store: Persistence for the credential record.

    Example:
        ```python
        manager = OAuthCredentialManager(AuthSettings.from_env())

        credentials = await manager.load_quietly()
        if credentials is None:
            credentials = await manager.get_valid()
        ```
    """

    def __init__(self, settings: AuthSettings, store: CredentialStore | None = None) -> None:
        """Initialize OAuth manager.

        Args:
            settings: Authentication settings.
            store: Credential store. Defaults to the settings' credential file.
        """
        self.settings = settings
        self.store = store or CredentialStore(settings.oauth_credentials_file)
        self._lock = asyncio.Lock()
        self._cached: tuple[CredentialRecord, Credentials] | None = None

    @property
    def token_path(self) -> Path:
        """Path to the persisted credential file."""
        return self.store.path

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def _client_info(self) -> tuple[str | None, str | None]:
        """Client ID and secret used for refresh grants.

        Environment values win; otherwise the keys file is consulted.
        """
        if self.settings.client_id and self.settings.client_secret:
            return self.settings.client_id, self.settings.client_secret

        try:
            with open(self.settings.oauth_keys_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return self.settings.client_id, self.settings.client_secret

        section = (data.get("installed") or data.get("web")) if isinstance(data, dict) else None
        if not isinstance(section, dict):
            logger.warning(f"No OAuth client section in {self.settings.oauth_keys_file}")
            return self.settings.client_id, self.settings.client_secret
        return section.get("client_id"), section.get("client_secret")

    def _credentials_to_record(
        self, credentials: Credentials, previous: CredentialRecord | None = None
    ) -> CredentialRecord:
        """Convert google-auth Credentials to a CredentialRecord.

        Args:
            credentials: Google OAuth2 credentials.
            previous: Record being replaced; supplies a refresh token the
                response omitted.

        Returns:
            CredentialRecord with all credential data.
        """
        if credentials.expiry:
            expires_at = credentials.expiry
            # google-auth keeps naive UTC datetimes
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
        else:
            expires_at = datetime.now(timezone.utc) + timedelta(hours=1)

        refresh_token = credentials.refresh_token
        if refresh_token is None and previous is not None:
            refresh_token = previous.refresh_token

        scopes = (
            getattr(credentials, "granted_scopes", None) or credentials.scopes or GDRIVE_SCOPES
        )

        return CredentialRecord(  # nosec B106 - "Bearer" is OAuth token type, not a password
            access_token=credentials.token,
            refresh_token=refresh_token,
            expiry_date=int(expires_at.timestamp() * 1000),
            scope=" ".join(scopes),
            token_type="Bearer",
        )

    def _record_to_credentials(self, record: CredentialRecord) -> Credentials:
        """Convert a CredentialRecord to google-auth Credentials.

        Args:
            record: Persisted credential record.

        Returns:
            Google OAuth2 credentials able to refresh themselves.
        """
        client_id, client_secret = self._client_info()

        expiry = None
        if record.expires_at is not None:
            expiry = record.expires_at.replace(tzinfo=None)

        return Credentials(  # nosec B106 - token_uri is public Google OAuth endpoint
            token=record.access_token,
            refresh_token=record.refresh_token,
            token_uri=TOKEN_URI,
            client_id=client_id,
            client_secret=client_secret,
            scopes=record.scopes or GDRIVE_SCOPES,
            expiry=expiry,
        )

    def _handle_for(self, record: CredentialRecord) -> Credentials:
        """Credentials for an unchanged record are reused, not rebuilt."""
        if self._cached is not None and self._cached[0] == record:
            return self._cached[1]
        credentials = self._record_to_credentials(record)
        self._cached = (record, credentials)
        return credentials

    async def _refresh(self, credentials: Credentials) -> None:
        """Run the blocking refresh grant in the default executor."""
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, credentials.refresh, Request())

    # ------------------------------------------------------------------
    # Quiet path
    # ------------------------------------------------------------------

    async def _load_quietly(self) -> AuthResult:
        logger.info(f"Attempting to load OAuth credentials from: {self.store.path}")

        try:
            record = self.store.read()
        except CredentialFileNotFoundError:
            logger.info("No OAuth credentials file found")
            return AuthResult.failed(AuthFailure.FILE_NOT_FOUND, str(self.store.path))
        except MalformedCredentialsError as e:
            logger.error(f"Error loading OAuth credentials: {e}")
            return AuthResult.failed(AuthFailure.MALFORMED, e.reason)

        remaining = record.remaining_ms()
        expires = record.expires_at.isoformat() if record.expires_at else "unknown"
        minutes_left = remaining // 60000 if remaining is not None else "unknown"
        logger.info(f"Loaded existing OAuth credentials with scopes: {record.scope}")
        logger.info(
            f"Token expiry status: expires_at={expires} minutes_left={minutes_left} "
            f"has_refresh_token={record.refresh_token is not None}"
        )

        if not record.is_expiring():
            return AuthResult.success(self._handle_for(record))

        if record.refresh_token is None:
            if record.is_expired():
                logger.warning("Stored token has expired and has no refresh token")
                return AuthResult.failed(AuthFailure.EXPIRED, "no refresh token")
            return AuthResult.success(self._handle_for(record))

        logger.info("Attempting to refresh token using refresh_token")
        credentials = self._record_to_credentials(record)
        try:
            await self._refresh(credentials)
            new_record = self._credentials_to_record(credentials, previous=record)
            self.store.write(new_record)
        except (GoogleAuthError, OSError) as e:
            logger.error(f"Failed to refresh token: {e}")
            return AuthResult.failed(AuthFailure.REFRESH_FAILED, str(e))

        self._cached = (new_record, credentials)
        logger.info("Token refreshed and saved successfully")
        return AuthResult.success(credentials)

    async def load_quietly(self) -> Credentials | None:
        """Load stored credentials without ever prompting the user.

        Returns:
            Usable credentials, or None when the file is missing, unreadable,
            expired without a refresh token, or the refresh failed.
        """
        async with self._lock:
            result = await self._load_quietly()
        return result.credentials

    # ------------------------------------------------------------------
    # Interactive path
    # ------------------------------------------------------------------

    def _client_config(self) -> dict[str, Any]:
        """OAuth client configuration for the consent flow.

        Raises:
            ValueError: If neither a keys file nor client ID/secret is available.
        """
        keys_file = self.settings.oauth_keys_file
        if keys_file.exists():
            with open(keys_file, encoding="utf-8") as f:
                config: dict[str, Any] = json.load(f)
            if not isinstance(config, dict) or ("installed" not in config and "web" not in config):
                raise ValueError(f"OAuth keys file {keys_file} has no 'installed' or 'web' client")
            return config

        if self.settings.client_id and self.settings.client_secret:
            return {
                "installed": {
                    "client_id": self.settings.client_id,
                    "client_secret": self.settings.client_secret,
                    "auth_uri": AUTH_URI,
                    "token_uri": TOKEN_URI,
                    "redirect_uris": [self.settings.redirect_uri],
                }
            }

        raise ValueError(
            f"OAuth client keys not found at {keys_file}. "
            "Download them from Google Cloud Console or set CLIENT_ID and CLIENT_SECRET."
        )

    def _run_oauth_flow(
        self,
        client_config: dict[str, Any],
        scopes: list[str],
        redirect_uri: str,
        timeout_seconds: float,
    ) -> Credentials:
        """Run the OAuth consent flow (blocking operation).

        Opens the browser for authorization and serves the loopback redirect
        until a code arrives or the timeout elapses.

        Args:
            client_config: Google OAuth client configuration.
            scopes: OAuth scopes to request.
            redirect_uri: Full redirect URI including path.
            timeout_seconds: How long to wait for the redirect.

        Returns:
            Google OAuth2 credentials.

        Raises:
            TimeoutError: If no redirect arrived in time.
            Exception: If the user denied consent or the code exchange failed.
        """
        flow = Flow.from_client_config(
            client_config,
            scopes=scopes,
            redirect_uri=redirect_uri,
        )

        # CSRF protection
        state = secrets.token_urlsafe(32)

        auth_url, _ = flow.authorization_url(
            access_type="offline",
            prompt="consent",
            state=state,
        )

        parsed = urlparse(redirect_uri)
        host = parsed.hostname or DEFAULT_OAUTH_HOST
        port = parsed.port or DEFAULT_OAUTH_PORT
        callback_path = parsed.path or "/callback"

        auth_code: list[str | None] = [None]
        error_message: list[str | None] = [None]

        class OAuthCallbackHandler(BaseHTTPRequestHandler):
            """HTTP handler for the OAuth redirect."""

            def log_message(self, format: str, *args) -> None:
                """Suppress HTTP server logs."""

            def _respond(self, status: int, body: bytes) -> None:
                self.send_response(status)
                self.send_header("Content-type", "text/html")
                self.end_headers()
                self.wfile.write(body)

            def do_GET(self) -> None:
                request_parsed = urlparse(self.path)
                if request_parsed.path != callback_path:
                    self._respond(404, b"Not Found")
                    return

                query_params = parse_qs(request_parsed.query)

                if query_params.get("state", [None])[0] != state:
                    error_message[0] = "state mismatch"
                    self._respond(
                        400,
                        b"<html><body><h1>Authentication Failed</h1>"
                        b"<p>Invalid state parameter.</p></body></html>",
                    )
                    return

                if "error" in query_params:
                    error_message[0] = query_params["error"][0]
                    self._respond(
                        400,
                        b"<html><body><h1>Authentication Failed</h1>"
                        b"<p>Please close this window and try again.</p></body></html>",
                    )
                    return

                if "code" in query_params:
                    auth_code[0] = query_params["code"][0]
                    self._respond(
                        200,
                        b"<html><body><h1>Authentication Successful!</h1>"
                        b"<p>You can close this window.</p></body></html>",
                    )
                else:
                    error_message[0] = "no authorization code in redirect"
                    self._respond(
                        400,
                        b"<html><body><h1>Authentication Failed</h1>"
                        b"<p>No authorization code received.</p></body></html>",
                    )

        server = HTTPServer((host, port), OAuthCallbackHandler)

        # stdout carries the MCP protocol, so the URL goes to the log
        logger.warning("Opening browser for Google authorization...")
        logger.warning(f"If browser doesn't open, visit: {auth_url}")
        webbrowser.open(auth_url)

        deadline = time.monotonic() + timeout_seconds
        try:
            while auth_code[0] is None and error_message[0] is None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                server.timeout = remaining
                server.handle_request()
        finally:
            server.server_close()

        if error_message[0]:
            raise Exception(f"OAuth authentication failed: {error_message[0]}")

        if not auth_code[0]:
            raise TimeoutError("Authentication timed out waiting for the authorization code")

        flow.fetch_token(code=auth_code[0])

        return flow.credentials

    async def _authenticate_interactively(self, timeout_ms: int | None = None) -> AuthResult:
        if timeout_ms is None:
            timeout_ms = self.settings.auth_timeout_ms
        timeout = timeout_ms / 1000

        logger.info("Launching auth flow...")
        logger.info(f"Using credentials path: {self.store.path}")

        try:
            client_config = self._client_config()
        except (OSError, ValueError) as e:
            logger.error(f"Cannot start authorization flow: {e}")
            return AuthResult.failed(AuthFailure.INTERACTIVE_ERROR, str(e))

        loop = asyncio.get_event_loop()
        try:
            credentials = await asyncio.wait_for(
                loop.run_in_executor(
                    None,
                    self._run_oauth_flow,
                    client_config,
                    GDRIVE_SCOPES,
                    self.settings.redirect_uri,
                    timeout,
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, TimeoutError):
            logger.error(f"Authentication timed out after {timeout_ms} ms")
            return AuthResult.failed(AuthFailure.INTERACTIVE_TIMEOUT, f"{timeout_ms} ms")
        except Exception as e:
            logger.error(f"Authentication failed: {e}")
            return AuthResult.failed(AuthFailure.INTERACTIVE_ERROR, str(e))

        # The code exchange may omit the refresh token; one refresh recovers it.
        # On failure the flow's credentials are kept and persisted unchanged.
        try:
            await self._refresh(credentials)
            logger.info(f"Received new credentials with scopes: {credentials.scopes}")
        except GoogleAuthError as e:
            logger.warning(f"Error refreshing token during initial auth: {e}")

        record = self._credentials_to_record(credentials)
        try:
            self.store.write(record)
        except OSError as e:
            logger.error(f"Failed to save credentials to {self.store.path}: {e}")
        else:
            self._cached = (record, credentials)
            logger.info(f"Credentials saved successfully to: {self.store.path}")

        return AuthResult.success(credentials)

    async def authenticate_interactively(self, timeout_ms: int | None = None) -> Credentials | None:
        """Run interactive authorization and persist the result.

        Args:
            timeout_ms: Upper bound for the consent flow. Defaults to settings.

        Returns:
            Credentials, or None if the flow timed out or failed.
        """
        async with self._lock:
            result = await self._authenticate_interactively(timeout_ms)
        return result.credentials

    async def get_valid(self, force_interactive: bool = False) -> Credentials:
        """Return usable credentials, prompting the user only as a last resort.

        Args:
            force_interactive: Skip the stored credentials.

        Returns:
            Usable Google OAuth2 credentials.

        Raises:
            AuthenticationError: If interactive authorization also failed.
        """
        async with self._lock:
            if not force_interactive:
                result = await self._load_quietly()
                if result.ok:
                    return result.credentials
                logger.info(
                    f"Stored credentials unusable ({result.failure.value}), "
                    "falling back to interactive authorization"
                )

            result = await self._authenticate_interactively()

        if not result.ok:
            raise AuthenticationError(
                f"OAuth authorization failed ({result.failure.value}): {result.detail}"
            )
        return result.credentials

    def get_status(self) -> tuple[TokenStatus, CredentialRecord | None]:
        """Get the status of the stored credentials.

        Returns:
            Tuple of (TokenStatus, CredentialRecord or None).
        """
        try:
            record = self.store.read()
        except CredentialFileNotFoundError:
            return (TokenStatus.MISSING, None)
        except MalformedCredentialsError:
            return (TokenStatus.INVALID, None)
        return (record.status(), record)
