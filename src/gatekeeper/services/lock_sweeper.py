from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from .application_store import ApplicationStore

log = logging.getLogger("gatekeeper.lock_sweeper")


def now_ms() -> int:
    return int(time.time() * 1000)


class LockSweeper:
    """Periodically releases kick/ban locks whose holder never finished."""

    def __init__(
        self,
        store: ApplicationStore,
        *,
        expiry_seconds: int,
        every_seconds: int,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._expiry_ms = int(expiry_seconds) * 1000
        self._every = max(1, int(every_seconds))
        self._clock = clock
        self._stop = asyncio.Event()
        self._runner: Optional[asyncio.Task[None]] = None

    def start(self) -> None:
        if self._runner and not self._runner.done():
            return
        self._stop.clear()
        self._runner = asyncio.create_task(self._run(), name="gatekeeper-lock-sweeper")
        log.info("LockSweeper started (every=%ss expiry=%sms)", self._every, self._expiry_ms)

    async def stop(self) -> None:
        self._stop.set()
        if self._runner:
            await self._runner
        log.info("LockSweeper stopped")

    async def sweep_once(self) -> int:
        return await self._store.release_expired_locks(self._clock(), self._expiry_ms)

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await self.sweep_once()
            except Exception:
                log.exception("Lock sweep failed")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._every)
            except asyncio.TimeoutError:
                pass
