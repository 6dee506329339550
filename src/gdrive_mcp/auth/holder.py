"""Process-scoped holder for the credential used by outbound API calls."""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class CredentialHolder:
    """Holds the credential installed for outbound Drive and Sheets calls.

    Only touched from the event loop thread, where install() is a single
    assignment.
    """

    def __init__(self) -> None:
        self._current: Any | None = None

    def install(self, credentials: Any) -> None:
        """Make credentials the default for subsequent API calls."""
        if credentials is not self._current:
            logger.debug(f"Installing credentials: {type(credentials).__name__}")
        self._current = credentials

    def current(self) -> Any | None:
        """The installed credentials, or None before the first install."""
        return self._current

    def clear(self) -> None:
        self._current = None
