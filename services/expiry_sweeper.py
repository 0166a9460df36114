"""
Expiry sweeper.

Periodically tears down ACTIVE matches whose expiry has passed, covering
matches the site never reported as finished.
"""

import asyncio
from collections.abc import Callable

from utils.logging import get_logger
from utils.tasks import spawn
from utils.types import SweeperState

from .match_service import MatchLifecycleManager
from .match_store import now_ms

logger = get_logger(__name__)


class ExpirySweeper:
    """
    Background loop that runs one sweep immediately and then every interval.

    stop() wakes the sleep but never interrupts a sweep in progress, so a
    teardown is not cut off halfway through.
    """

    def __init__(
        self,
        manager: MatchLifecycleManager,
        interval_seconds: float = 300,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.manager = manager
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._state = SweeperState.STOPPED
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> SweeperState:
        return self._state

    def start(self) -> None:
        if self._state is SweeperState.RUNNING:
            logger.debug("Expiry sweeper already running")
            return
        self._stop_event = asyncio.Event()
        self._state = SweeperState.RUNNING
        self._task = spawn(self._run(), name="expiry_sweeper")
        logger.info(
            f"Expiry sweeper started (interval {self.interval_seconds}s)"
        )

    async def stop(self) -> None:
        if self._state is SweeperState.STOPPED:
            return
        self._state = SweeperState.STOPPED
        self._stop_event.set()
        task, self._task = self._task, None
        if task is not None:
            await task
        logger.info("Expiry sweeper stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval_seconds
                )
            except TimeoutError:
                continue

    async def run_once(self) -> int:
        """
        Tear down every expired ACTIVE match once.

        Failures are logged per match and never stop the rest of the sweep.

        Returns:
            Number of matches torn down.
        """
        try:
            expired = await self.manager.store.get_expired_active_matches(
                self._clock()
            )
        except Exception as e:
            logger.exception("Failed to read expired matches", exc_info=e)
            return 0

        if not expired:
            return 0

        logger.info(f"Found {len(expired)} expired match(es)")
        cleaned = 0
        for record in expired:
            try:
                result = await self.manager.teardown(record.match_id)
            except Exception as e:
                logger.exception(
                    f"Error cleaning up expired Match #{record.match_id}",
                    exc_info=e,
                    extra={"match_id": record.match_id},
                )
                continue
            if result.success:
                cleaned += 1
            else:
                logger.warning(
                    f"Expired Match #{record.match_id} not torn down: {result.error}",
                    extra={"match_id": record.match_id},
                )
        logger.info(f"Expiry sweep finished: {cleaned}/{len(expired)} torn down")
        return cleaned
