"""
Flush scheduling for a cache instance.

Two triggers compose:
- write-through: a mutation flushes before returning (per call override)
- interval: a background asyncio task flushes every ``interval`` seconds

Explicit ``sync()`` calls are the remaining, on-demand trigger. The interval
task belongs to exactly one cache and never dies on a failed flush.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from unicache.logging import CacheLogger


class SyncScheduler:
    """Decides when a cache flushes and runs its periodic flush task."""

    def __init__(
        self,
        flush: Callable[[], Awaitable[None]],
        log: CacheLogger,
        write_through: bool = False,
        interval: float = 0.0,
    ) -> None:
        """Initialize scheduler.

        Args:
            flush: Coroutine function performing one flush.
            log: Logger of the owning cache.
            write_through: Default for mutations that do not say otherwise.
            interval: Seconds between periodic flushes; 0 disables them.
        """
        self._flush = flush
        self.log = log
        self.write_through = write_through
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def should_flush(self, sync_now: bool | None) -> bool:
        """Resolve a per-call override against the write-through setting."""
        return self.write_through if sync_now is None else bool(sync_now)

    def start(self) -> None:
        """Start the periodic flush task, if an interval is configured.

        Must be called from inside a running event loop.
        """
        if self.interval <= 0 or self.running:
            return
        self._task = asyncio.create_task(
            self._run(), name=f"unicache-sync-{self.log.cache_name}"
        )
        self.log.verbose(f"Periodic sync every {self.interval}s started")

    async def stop(self) -> None:
        """Cancel the periodic flush task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        self.log.verbose("Periodic sync stopped")

    async def _run(self) -> None:
        """Background flush loop."""
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._flush()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.log.error(f"Periodic sync failed: {e}", exc_info=True)
