"""Environment-driven settings for gdrive-mcp.

Environment Variables:
    GDRIVE_CREDS_DIR: Directory holding both credential files
        (alias: CREDS_DIR, default: ~/.gdrive-mcp).
    GDRIVE_SERVICE_ACCOUNT_PATH: Service account key file
        (alias: SERVICE_ACCOUNT_PATH, default: <creds dir>/service-account.json).
    USE_SERVICE_ACCOUNT: Force service account authentication when "true".
    CLIENT_ID / CLIENT_SECRET: OAuth client used to refresh stored credentials.
    GDRIVE_OAUTH_REDIRECT_URI: Loopback redirect URI for interactive authorization
        (default: http://127.0.0.1:8789/callback).
    GDRIVE_AUTH_TIMEOUT_MS: Interactive authorization timeout (default: 30000).
    GDRIVE_REFRESH_INTERVAL: Background refresh interval in seconds (default: 2700).
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_CREDS_DIR = Path.home() / ".gdrive-mcp"
OAUTH_CREDENTIALS_FILENAME = ".gdrive-server-credentials.json"
OAUTH_KEYS_FILENAME = "gcp-oauth.keys.json"
SERVICE_ACCOUNT_FILENAME = "service-account.json"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8789/callback"
DEFAULT_AUTH_TIMEOUT_MS = 30000
DEFAULT_REFRESH_INTERVAL_SECONDS = 45 * 60


def _first(environ: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}'. Falling back to {default}.")
        return default
    if value <= 0:
        logger.warning(f"Non-positive {name} '{raw}'. Falling back to {default}.")
        return default
    return value


class AuthSettings(BaseModel):
    """Resolved authentication configuration.

    Paths are resolved once; whether the files exist is checked by callers
    every time a decision is made.

    Attributes:
        creds_dir: Directory for the OAuth credential and keys files.
        service_account_path: Location of the service account key file.
        use_service_account: Force service account mode.
        client_id: OAuth client ID for refreshing stored credentials.
        client_secret: OAuth client secret for refreshing stored credentials.
        redirect_uri: Loopback redirect URI used by interactive authorization.
        auth_timeout_ms: Upper bound for interactive authorization.
        refresh_interval_seconds: Period of the background refresh task.
    """

    creds_dir: Path = DEFAULT_CREDS_DIR
    service_account_path: Path | None = None
    use_service_account: bool = False
    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    auth_timeout_ms: int = DEFAULT_AUTH_TIMEOUT_MS
    refresh_interval_seconds: int = DEFAULT_REFRESH_INTERVAL_SECONDS

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AuthSettings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            Resolved AuthSettings.
        """
        if environ is None:
            environ = os.environ

        creds_dir_value = _first(environ, "GDRIVE_CREDS_DIR", "CREDS_DIR")
        creds_dir = Path(creds_dir_value).expanduser() if creds_dir_value else DEFAULT_CREDS_DIR

        sa_value = _first(environ, "GDRIVE_SERVICE_ACCOUNT_PATH", "SERVICE_ACCOUNT_PATH")

        return cls(
            creds_dir=creds_dir,
            service_account_path=Path(sa_value).expanduser() if sa_value else None,
            use_service_account=environ.get("USE_SERVICE_ACCOUNT", "").strip().lower() == "true",
            client_id=environ.get("CLIENT_ID") or None,
            client_secret=environ.get("CLIENT_SECRET") or None,
            redirect_uri=environ.get("GDRIVE_OAUTH_REDIRECT_URI", DEFAULT_REDIRECT_URI),
            auth_timeout_ms=_int_setting(
                environ, "GDRIVE_AUTH_TIMEOUT_MS", DEFAULT_AUTH_TIMEOUT_MS
            ),
            refresh_interval_seconds=_int_setting(
                environ, "GDRIVE_REFRESH_INTERVAL", DEFAULT_REFRESH_INTERVAL_SECONDS
            ),
        )

    @property
    def service_account_file(self) -> Path:
        """Path to the service account key file."""
        return self.service_account_path or self.creds_dir / SERVICE_ACCOUNT_FILENAME

    @property
    def oauth_credentials_file(self) -> Path:
        """Path to the persisted OAuth credential record."""
        return self.creds_dir / OAUTH_CREDENTIALS_FILENAME

    @property
    def oauth_keys_file(self) -> Path:
        """Path to the OAuth client secrets file used for interactive authorization."""
        return self.creds_dir / OAUTH_KEYS_FILENAME
