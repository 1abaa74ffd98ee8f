"""
Reservation reaper.

Unpaid orders hold their reservation window (`reserved_until`) for
STOCK_RESERVATION_MINUTES. Once it elapses the sweep cancels them
(cancelled/failed). Stock is not credited back: it is only decremented when a
payment is confirmed, so an unpaid order never held any.

The "already running" flag is in-process, so only one instance may run the
sweep. Each order is expired in its own transaction.
"""
import asyncio
from contextlib import suppress
from datetime import datetime
from typing import Optional

import structlog

from shared.clock import utcnow
from shared.config.database import AsyncSessionLocal
from shared.config.settings import ORDER_TIMEOUT_SWEEP_SECONDS
from shared.observability import ecomm_reservations_expired_total

from . import state_machine
from .repository import OrderRepository

logger = structlog.get_logger(__name__)


class ReservationReaper:

    def __init__(self, session_factory=AsyncSessionLocal, interval: int = ORDER_TIMEOUT_SWEEP_SECONDS):
        self.session_factory = session_factory
        self.interval = interval
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Expire every overdue pending order; returns how many were cancelled."""
        if self._running:
            logger.info("reaper.sweep_skipped", reason="already_running")
            return 0

        self._running = True
        try:
            now = now or utcnow()
            async with self.session_factory() as db:
                order_ids = await OrderRepository.find_expired_ids(db, now)

            expired = 0
            for order_id in order_ids:
                try:
                    async with self.session_factory() as db, db.begin():
                        applied = await state_machine.expire(db, order_id, now)
                except Exception:
                    # Keep going; the next sweep retries this order
                    logger.exception("reaper.expire_failed", order_id=order_id)
                    continue
                if applied:
                    expired += 1
                    ecomm_reservations_expired_total.inc()
                    logger.info("order.expired", order_id=order_id)

            if order_ids:
                logger.info("reaper.sweep_done", candidates=len(order_ids), expired=expired)
            return expired
        finally:
            self._running = False

    async def run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("reaper.sweep_failed")

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
            logger.info("reaper.started", interval=self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("reaper.stopped")
