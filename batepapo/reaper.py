"""Reaper: background eviction of inactive participants.

Every REAP_INTERVAL_SECONDS runs a presence sweep with STALE_THRESHOLD_MS,
independent of any request. A tick is fire-and-forget: failures are logged
and counted, and the next tick runs regardless.

Lifecycle:
- start() called from main.py lifespan startup
- stop() called from main.py lifespan shutdown
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from batepapo import metrics as m
from batepapo.models import now_ms
from batepapo.presence import PresenceTracker, SweepReport

logger = logging.getLogger(__name__)

REAP_INTERVAL_SECONDS = 15
STALE_THRESHOLD_MS = 10_000


class Reaper:
    """Recurring sweep over participants; ticks never overlap."""

    def __init__(
        self,
        presence: PresenceTracker,
        interval_s: float = REAP_INTERVAL_SECONDS,
        stale_threshold_ms: int = STALE_THRESHOLD_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._presence = presence
        self._interval_s = interval_s
        self._stale_threshold_ms = stale_threshold_ms
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start background sweep loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run_forever(), name="batepapo-reaper")
        logger.info(
            "Reaper started (interval: %ss, threshold: %dms)",
            self._interval_s, self._stale_threshold_ms,
        )

    async def stop(self) -> None:
        """Stop background sweep loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Reaper stopped")

    async def run_once(self) -> SweepReport | None:
        """Run a single sweep. Returns None when the sweep as a whole failed."""
        async with self._lock:
            start = time.monotonic()
            try:
                report = await self._presence.sweep(self._stale_threshold_ms, self._clock())
            except Exception:
                m.reaper_tick_failures_total.inc()
                logger.exception("Reaper tick failed")
                return None
            finally:
                m.reaper_sweep_duration.observe(time.monotonic() - start)

        if report.removed or report.failed:
            logger.info(
                "Reaper: removed=%d failed=%d skipped=%d",
                len(report.removed), len(report.failed), len(report.skipped),
            )
        return report

    async def _run_forever(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            await self.run_once()
