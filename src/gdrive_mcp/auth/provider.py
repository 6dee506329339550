"""Top-level credential façade.

Every collaborator that talks to Google obtains credentials here. The mode
is recomputed on each call, then the matching strategy is used.
"""

import logging
from typing import Any

from gdrive_mcp.auth.exceptions import AuthenticationError
from gdrive_mcp.auth.holder import CredentialHolder
from gdrive_mcp.auth.mode import select_auth_mode
from gdrive_mcp.auth.models import AuthMode
from gdrive_mcp.auth.oauth_manager import OAuthCredentialManager
from gdrive_mcp.auth.scheduler import TokenRefreshScheduler
from gdrive_mcp.auth.service_account import ServiceAccountAuthenticator
from gdrive_mcp.config import AuthSettings

logger = logging.getLogger(__name__)


class CredentialProvider:
    """Chooses an authentication strategy and hands out valid credentials.

    Attributes:
        settings: Authentication settings.
        oauth: OAuth user credential manager.
        service_account: Service account authenticator.
        holder: Credentials installed for outbound API calls.
    """

    def __init__(
        self,
        settings: AuthSettings | None = None,
        oauth_manager: OAuthCredentialManager | None = None,
        service_account: ServiceAccountAuthenticator | None = None,
        holder: CredentialHolder | None = None,
    ) -> None:
        self.settings = settings or AuthSettings.from_env()
        self.oauth = oauth_manager or OAuthCredentialManager(self.settings)
        self.service_account = service_account or ServiceAccountAuthenticator(self.settings)
        self.holder = holder or CredentialHolder()

    def get_auth_type(self) -> AuthMode:
        """Current authentication mode, re-evaluated on every call."""
        return select_auth_mode(self.settings)

    async def load_credentials_quietly(self) -> Any | None:
        """Load credentials for the active mode without prompting.

        Returns:
            Credentials, or None if nothing usable is available.
        """
        auth_type = self.get_auth_type()
        logger.info(f"Using auth type: {auth_type.value}")

        if auth_type == AuthMode.SERVICE_ACCOUNT:
            return self.service_account.load()
        return await self.oauth.load_quietly()

    async def get_valid_credentials(self, force_auth: bool = False) -> Any:
        """Get valid credentials, prompting for authorization if necessary.

        Args:
            force_auth: Skip stored OAuth credentials and run the consent flow.

        Returns:
            Credentials for the active mode.

        Raises:
            AuthenticationError: If no strategy produced credentials.
        """
        if self.get_auth_type() == AuthMode.SERVICE_ACCOUNT:
            if not force_auth:
                credentials = self.service_account.load()
                if credentials is not None:
                    return credentials

            logger.info("Retrying service account authentication")
            credentials = self.service_account.load()
            if credentials is None:
                raise AuthenticationError(
                    f"Service account authentication failed using {self.service_account.key_path}"
                )
            return credentials

        return await self.oauth.get_valid(force_interactive=force_auth)

    async def ensure_auth(self, force_auth: bool = False) -> Any:
        """Get valid credentials and install them for outbound calls."""
        credentials = await self.get_valid_credentials(force_auth=force_auth)
        self.holder.install(credentials)
        return credentials

    async def ensure_auth_quietly(self) -> Any | None:
        """Quietly load credentials and install them when available."""
        credentials = await self.load_credentials_quietly()
        if credentials is not None:
            self.holder.install(credentials)
        return credentials

    def setup_token_refresh(self) -> TokenRefreshScheduler:
        """Start background refresh on the running event loop.

        Returns:
            The started scheduler; call stop() or cancel() at shutdown.
        """
        scheduler = TokenRefreshScheduler(
            self.load_credentials_quietly,
            self.holder,
            interval_seconds=self.settings.refresh_interval_seconds,
        )
        return scheduler.start()
