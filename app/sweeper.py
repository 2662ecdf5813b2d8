# app/sweeper.py

import asyncio
import logging
from contextlib import suppress

from app.config import CACHE_SWEEP_INTERVAL_SECONDS
from app.services.cache_backends import InMemoryBackend

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Periodic background worker that drops expired entries from the in-memory
    cache backend. Optional: reads already treat expired entries as misses,
    the sweep only bounds how long dead entries occupy memory.
    """

    def __init__(self, backend: InMemoryBackend, interval_seconds: float | None = None) -> None:
        self.backend = backend
        self.interval_seconds = interval_seconds if interval_seconds is not None else CACHE_SWEEP_INTERVAL_SECONDS
        if self.interval_seconds <= 0:
            raise ValueError(f"sweep interval must be positive, got {self.interval_seconds!r}")
        self._task: asyncio.Task | None = None
        self._stop = asyncio.Event()

    async def start(self) -> None:
        """Start the background worker task."""
        if self._task is not None:
            return  # Already started
        self._stop.clear()
        logger.info("Starting ExpirySweeper worker (interval=%s sec)...", self.interval_seconds)
        self._task = asyncio.create_task(self._run(), name="cache-expiry-sweeper")

    async def stop(self) -> None:
        """Signal the worker to stop and wait for it to finish."""
        logger.info("Stopping ExpirySweeper worker...")
        self._stop.set()
        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=5)
            except asyncio.TimeoutError:
                logger.warning("Expiry sweeper did not stop in time; cancelling...")
                self._task.cancel()
                with suppress(asyncio.CancelledError):
                    await self._task
            finally:
                self._task = None
        logger.info("ExpirySweeper worker stopped.")

    def sweep_once(self) -> int:
        purged = self.backend.purge_expired()
        if purged:
            logger.debug("Expiry sweep purged %d cache entries", purged)
        return purged

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Expiry sweep failed with an exception.")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
