"""Background token refresh that never prompts for authorization."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from gdrive_mcp.auth.holder import CredentialHolder
from gdrive_mcp.config import DEFAULT_REFRESH_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class TokenRefreshScheduler:
    """Periodically runs a quiet credential load and installs the result.

    A tick that yields no credentials is logged and skipped. Interactive
    authorization is never triggered from here.

    Example:
        ```python
        scheduler = TokenRefreshScheduler(provider.load_credentials_quietly, holder)
        scheduler.start()
        ...
        await scheduler.stop()
        ```
    """

    def __init__(
        self,
        refresh: Callable[[], Awaitable[Any | None]],
        holder: CredentialHolder,
        interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            refresh: Quiet loader returning credentials or None.
            holder: Receives refreshed credentials.
            interval_seconds: Delay between ticks.
        """
        self._refresh = refresh
        self._holder = holder
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "TokenRefreshScheduler":
        """Start the refresh task on the running event loop.

        Returns:
            The scheduler itself, usable as the cancellation handle.
        """
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            logger.info(
                f"Setting up automatic token refresh interval ({self._interval / 60:g} minutes)"
            )
        return self

    def cancel(self) -> None:
        """Request cancellation without waiting for the task to finish."""
        if self._task is not None:
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel the refresh task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Background token refresher stopped.")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.tick()

    async def tick(self) -> bool:
        """Run one refresh cycle.

        Returns:
            True if credentials were installed.
        """
        logger.info("Running scheduled token refresh check")
        try:
            credentials = await self._refresh()
        except Exception as e:
            logger.error(f"Error in automatic token refresh: {e}")
            return False

        if credentials is None:
            logger.warning("Skipping token refresh - no valid credentials")
            return False

        self._holder.install(credentials)
        logger.info("Completed scheduled token refresh")
        return True
