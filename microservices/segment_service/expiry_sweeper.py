"""
Expiry Sweeper

Background task retiring memberships whose expiration time has passed.
Each tick deletes expired rows and closes their history intervals at the
recorded expiration time, in one transaction.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from .protocols import SegmentRepositoryProtocol
from .segment_service import utc_now

DEFAULT_SWEEP_INTERVAL = 30.0


class ExpirySweeper:
    """Periodic expiry sweep with an explicit start/stop lifecycle"""

    def __init__(
        self,
        repository: SegmentRepositoryProtocol,
        interval: float = DEFAULT_SWEEP_INTERVAL,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if interval <= 0:
            raise ValueError(f"Sweep interval must be positive, got {interval}")
        self.repository = repository
        self.interval = interval
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or utc_now
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop"""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="segment-expiry-sweeper")
        self.logger.info(f"Expiry sweeper started, interval {self.interval}s")

    async def stop(self) -> None:
        """Signal the loop to finish and wait for it"""
        if self._task is None:
            return
        self._stop_event.set()
        task, self._task = self._task, None
        await task
        self.logger.info("Expiry sweeper stopped")

    async def run_once(self) -> int:
        """Run a single sweep; returns the number of memberships retired.

        Errors are logged, never raised.
        """
        try:
            expired = await self.repository.sweep_expired(self.clock())
        except Exception as e:
            self.logger.error(f"Expiry sweep failed: {e}", exc_info=True)
            return 0

        if expired:
            self.logger.info(f"Expiry sweep retired {len(expired)} memberships")
        else:
            self.logger.debug("Expiry sweep found nothing to retire")
        return len(expired)

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.run_once()


__all__ = ["ExpirySweeper", "DEFAULT_SWEEP_INTERVAL"]
