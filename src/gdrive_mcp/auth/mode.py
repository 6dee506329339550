"""Authentication mode selection."""

from gdrive_mcp.auth.models import AuthMode
from gdrive_mcp.config import AuthSettings


def select_auth_mode(settings: AuthSettings) -> AuthMode:
    """Determine which authentication strategy is active.

    Evaluated on every decision rather than cached: the OAuth credential file
    appears after the first interactive authorization.

    Args:
        settings: Resolved authentication settings.

    Returns:
        SERVICE_ACCOUNT when forced, or when a key file exists and no OAuth
        credential file does; OAUTH otherwise.
    """
    if settings.use_service_account:
        return AuthMode.SERVICE_ACCOUNT

    if settings.service_account_file.exists() and not settings.oauth_credentials_file.exists():
        return AuthMode.SERVICE_ACCOUNT

    return AuthMode.OAUTH
