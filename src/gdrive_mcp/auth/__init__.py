"""Credential lifecycle for Google Drive MCP.

Chooses between OAuth user credentials and a service account, refreshes
OAuth tokens shortly before expiry, persists refreshed state, and falls back
to interactive authorization only when nothing usable is stored.

Quick Start:
    ```python
    from gdrive_mcp.auth import CredentialProvider

    provider = CredentialProvider()

    # Prompts in the browser only if no usable credentials exist
    credentials = await provider.get_valid_credentials()

    # Keep OAuth tokens fresh in the background
    scheduler = provider.setup_token_refresh()
    ```
"""

from gdrive_mcp.auth.credential_store import CredentialStore
from gdrive_mcp.auth.exceptions import (
    AuthenticationError,
    AuthError,
    CredentialFileNotFoundError,
    MalformedCredentialsError,
)
from gdrive_mcp.auth.holder import CredentialHolder
from gdrive_mcp.auth.mode import select_auth_mode
from gdrive_mcp.auth.models import (
    GDRIVE_SCOPES,
    AuthFailure,
    AuthMode,
    AuthResult,
    CredentialRecord,
    TokenStatus,
)
from gdrive_mcp.auth.oauth_manager import OAuthCredentialManager
from gdrive_mcp.auth.provider import CredentialProvider
from gdrive_mcp.auth.scheduler import TokenRefreshScheduler
from gdrive_mcp.auth.service_account import ServiceAccountAuthenticator

__all__ = [
    "CredentialProvider",
    "OAuthCredentialManager",
    "ServiceAccountAuthenticator",
    "TokenRefreshScheduler",
    "CredentialStore",
    "CredentialHolder",
    "CredentialRecord",
    "AuthMode",
    "AuthFailure",
    "AuthResult",
    "TokenStatus",
    "AuthError",
    "AuthenticationError",
    "CredentialFileNotFoundError",
    "MalformedCredentialsError",
    "select_auth_mode",
    "GDRIVE_SCOPES",
]
