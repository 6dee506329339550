"""Service account authentication."""

import logging

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account

from gdrive_mcp.auth.models import GDRIVE_SCOPES, AuthFailure, AuthResult
from gdrive_mcp.config import AuthSettings

logger = logging.getLogger(__name__)


class ServiceAccountAuthenticator:
    """Loads service account credentials from a static key file.

    The key file is never modified. Returned credentials fetch and renew
    their own access tokens, so no expiry is tracked here.
    """

    def __init__(self, settings: AuthSettings) -> None:
        self.settings = settings

    @property
    def key_path(self):
        return self.settings.service_account_file

    def authenticate(self) -> AuthResult:
        """Load the key file into scoped credentials.

        Returns:
            AuthResult with credentials, or FILE_NOT_FOUND / MALFORMED.
        """
        logger.info(f"Authenticating with service account from: {self.key_path}")

        if not self.key_path.exists():
            logger.error(f"Service account file not found at: {self.key_path}")
            return AuthResult.failed(AuthFailure.FILE_NOT_FOUND, str(self.key_path))

        try:
            credentials = service_account.Credentials.from_service_account_file(
                str(self.key_path), scopes=GDRIVE_SCOPES
            )
        except (OSError, ValueError, KeyError, GoogleAuthError) as e:
            logger.error(f"Error authenticating with service account: {e}")
            return AuthResult.failed(AuthFailure.MALFORMED, str(e))

        logger.info("Service account authentication successful")
        return AuthResult.success(credentials)

    def load(self) -> service_account.Credentials | None:
        """Load service account credentials, or None if unavailable."""
        return self.authenticate().credentials
