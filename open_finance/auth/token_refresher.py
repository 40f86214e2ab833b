import asyncio
from typing import Optional

from open_finance.config.logging import get_logger
from open_finance.auth.token_manager import TokenManager

logger = get_logger(__name__)


class TokenRefresher:
    """Keeps a ``TokenManager`` token fresh in the background.

    Each cycle sleeps until ``refresh_margin_seconds`` before expiry (at most
    half the token lifetime), forces a new grant and reschedules with the new
    lifetime. A failed refresh is logged and ends the schedule.
    """

    def __init__(self, token_manager: TokenManager):
        self.token_manager = token_manager
        self.refresh_count = 0
        self.last_error: Optional[Exception] = None
        self._task: Optional[asyncio.Task] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _delay_for(self, expires_in: int) -> float:
        margin = min(self.token_manager.refresh_margin_seconds, expires_in // 2)
        return max(expires_in - margin, 0)

    def start(self, expires_in: int) -> None:
        """Schedule refreshes for a token that expires in ``expires_in`` seconds."""
        if self.running:
            raise RuntimeError("Token refresher is already running")
        self._task = asyncio.create_task(self._run(expires_in))

    async def _run(self, expires_in: int) -> None:
        while True:
            delay = self._delay_for(expires_in)
            logger.info(f"Token refresh scheduled in {delay:.0f} seconds")
            await asyncio.sleep(delay)

            logger.info("Refreshing access token...")
            try:
                token = await self.token_manager.refresh_token()
            except Exception as e:
                self.last_error = e
                logger.error(f"Failed to refresh token: {e}")
                return

            self.refresh_count += 1
            expires_in = token.expires_in

    async def wait(self) -> None:
        """Block until the schedule ends."""
        if self._task:
            await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Cancel the schedule."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Token refresher stopped")
