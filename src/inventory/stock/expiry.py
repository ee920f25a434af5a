"""Reservation expiry — background sweep that releases stale reservations.

Orders that are never paid keep their stock reserved until the reservation
TTL elapses; the sweep then hands the units back to the pool. ``sweep()`` can
be driven by an external scheduler (cron, K8s CronJob) or by ``start()``,
which runs it on a daemon thread every ``interval`` seconds.
"""

import threading
from datetime import datetime

import structlog

from shared.aggregate import utcnow
from shared.logging import add_context

from inventory.stock.ledger import ReservationToken, StockLedger

logger = structlog.get_logger(__name__)


class ReservationSweeper:
    def __init__(self, ledger: StockLedger, interval: float = 60.0):
        self.ledger = ledger
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def sweep(self, now: datetime | None = None) -> list[ReservationToken]:
        now = now or utcnow()
        logger.info("Checking for stale reservations", as_of=now.isoformat())

        released = self.ledger.expire_stale(now)
        if not released:
            logger.info("No stale reservations found")
            return released

        for token in released:
            logger.info(
                "Released stale reservation",
                product_id=token.product_id,
                reservation_id=token.reservation_id,
                order_ref=token.order_ref,
            )
        logger.info("Stale reservation cleanup complete", expired_count=len(released))
        return released

    def _run(self) -> None:
        add_context(component="reservation-sweeper")
        while not self._stop.wait(self.interval):
            try:
                self.sweep()
            except Exception:
                # Keep the sweeper alive; the next tick retries.
                logger.exception("Reservation sweep failed")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="reservation-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
