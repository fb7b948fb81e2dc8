"""Background update checks for tracked files."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..core.backend import RepoStatus
from .orchestrator import check_for_updates
from .session import SessionRegistry, SyncSession

logger = logging.getLogger(__name__)

StatusCallback = Callable[[SyncSession, RepoStatus], None]


class UpdatePoller:
    """Periodically runs ``check_for_updates`` for every registered path.

    A check that coincides with a user-triggered operation is skipped,
    not queued.

    Args:
        registry: Sessions to poll.
        interval: Seconds between rounds.
        on_status: Called with each session and its fresh ``RepoStatus``.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        interval: float,
        on_status: StatusCallback | None = None,
    ):
        self.registry = registry
        self.interval = interval
        self.on_status = on_status
        self.last_status: dict[str, RepoStatus] = {}
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> int:
        """Run one round of checks; return how many completed."""
        checked = 0
        for session in self.registry.sessions():
            status = await check_for_updates(session)
            if status is None:
                continue
            checked += 1
            self.last_status[str(session.path)] = status
            if self.on_status is not None:
                self.on_status(session, status)
        return checked

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Update check round failed")

    def start(self) -> None:
        if self.running:
            return
        logger.info("Update poller started (every %.0fs)", self.interval)
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Update poller stopped")
