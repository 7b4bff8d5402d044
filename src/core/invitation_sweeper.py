"""Periodic expiration sweep for pending breakout invitations."""

import asyncio
import logging

from src.core.config import get_settings
from src.services.breakout_service import BreakoutService

logger = logging.getLogger(__name__)


class InvitationSweeper:
    """Background task that expires stale pending invitations on an interval.

    The sweep itself is idempotent, so several workers running their own
    sweeper is harmless.
    """

    def __init__(self, interval_seconds: float) -> None:
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep task."""
        if self.interval_seconds <= 0:
            logger.info("Invitation sweep disabled")
            return
        if self._task is None:
            self._task = asyncio.create_task(self._sweep_loop())
            logger.info("Invitation sweep task started (every %s seconds)", self.interval_seconds)

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Invitation sweep task stopped")

    async def sweep_once(self) -> int:
        """Run a single sweep and return the number of expired invitations."""
        result = await BreakoutService().sweep_expired()
        return result["expired_count"]

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                count = await self.sweep_once()
            except Exception:
                logger.exception("Invitation sweep failed")
                continue
            if count > 0:
                logger.debug("Invitation sweep expired %d invites", count)


_sweeper: InvitationSweeper | None = None


def get_invitation_sweeper() -> InvitationSweeper:
    """Get or create the global sweeper instance."""
    global _sweeper
    if _sweeper is None:
        _sweeper = InvitationSweeper(get_settings().invitation_sweep_interval_seconds)
    return _sweeper


async def init_invitation_sweeper() -> InvitationSweeper:
    """Start the sweep task. Call at app startup."""
    sweeper = get_invitation_sweeper()
    await sweeper.start()
    return sweeper


async def shutdown_invitation_sweeper() -> None:
    """Stop the sweep task. Call at app shutdown."""
    global _sweeper
    if _sweeper:
        await _sweeper.stop()
        _sweeper = None
