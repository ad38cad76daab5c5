"""Expiry reaper — background loop that releases lapsed claims.

Each tick processes ``SweepExpiredClaims`` in a worker thread so the store
round trip never blocks the event loop. Ticks are single-slot: if the
previous sweep is still running, the tick is skipped. A failing sweep is
logged and retried on the next tick; the loop itself never dies from it.
"""

import asyncio
from collections.abc import Callable

import structlog
from protean.utils.globals import current_domain

from dispatch.config import get_settings
from dispatch.domain import dispatch
from dispatch.order.expiry import SweepExpiredClaims
from dispatch.order.order import Order, utc_now

logger = structlog.get_logger(__name__)


def sweep_expired_claims() -> list[Order]:
    """Run one sweep inside a fresh domain context."""
    with dispatch.domain_context():
        return current_domain.process(SweepExpiredClaims(as_of=utc_now()), asynchronous=False)


class ExpiryReaper:
    def __init__(
        self,
        interval_seconds: float | None = None,
        sweep: Callable[[], list[Order]] | None = None,
    ):
        self.interval_seconds = interval_seconds or get_settings().reaper_interval_seconds
        self._sweep = sweep or sweep_expired_claims
        self._busy = asyncio.Lock()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, propagate: bool = False) -> list[Order] | None:
        """Sweep once. Returns the released orders, or None if skipped or failed.

        With ``propagate`` a failing sweep raises instead of returning None.
        """
        if self._busy.locked():
            logger.info("Expiry sweep still running, skipping tick")
            return None

        async with self._busy:
            try:
                released = await asyncio.to_thread(self._sweep)
            except Exception as exc:
                logger.error("Expiry sweep failed", error=str(exc), exc_type=type(exc).__name__)
                if propagate:
                    raise
                return None

        return released

    async def run_forever(self) -> None:
        logger.info("Expiry reaper started", interval_seconds=self.interval_seconds)
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop."""
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry reaper stopped")


_reaper: ExpiryReaper | None = None


def get_reaper() -> ExpiryReaper:
    """Return the process-wide reaper shared by the loop and on-demand sweeps."""
    global _reaper
    if _reaper is None:
        _reaper = ExpiryReaper()
    return _reaper


def reset_reaper() -> None:
    global _reaper
    _reaper = None
