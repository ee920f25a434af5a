"""StockLedger — the reservation protocol over StockItem aggregates.

Every operation on a product runs as load → mutate → save while holding that
product's lock, so two reservations for the same product are linearized and
the loser sees the winner's counters. Locks are per product and are held
only for the duration of one ledger call; a reservation outlives the lock as
a ``ReservationToken``, so nothing is locked while a payment is in flight.

The repository's version check backs this up against writers that bypass
the ledger.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from shared.aggregate import DomainEvent, utcnow
from shared.errors import InsufficientStockError, ValidationError
from shared.repository import InMemoryRepository

from inventory.stock.stock import ReservationStatus, StockItem

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservationToken:
    """Handle for a pending, uncommitted stock deduction."""

    product_id: str
    reservation_id: str
    quantity: int
    order_ref: str | None = None


@dataclass(frozen=True)
class StockLevels:
    product_id: str
    sku: str
    available: int
    reserved: int
    backordered: int
    threshold: int
    track_inventory: bool
    allow_backorders: bool
    retired: bool

    @property
    def unreserved(self) -> int:
        return max(self.available - self.reserved, 0)


class StockLedger:
    def __init__(
        self,
        repository: InMemoryRepository[StockItem] | None = None,
        reservation_ttl: timedelta = timedelta(minutes=15),
    ):
        self.repository = repository if repository is not None else InMemoryRepository(StockItem)
        self.reservation_ttl = reservation_ttl
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._outbox: list[DomainEvent] = []
        self._outbox_lock = threading.Lock()

    # -------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------
    def _lock_for(self, product_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(product_id)
            if lock is None:
                lock = self._locks[product_id] = threading.Lock()
            return lock

    def _save(self, item: StockItem) -> None:
        self.repository.add(item)
        events = item.collect_events()
        with self._outbox_lock:
            self._outbox.extend(events)

    def drain_events(self) -> list[DomainEvent]:
        """Hand over (and forget) the events raised since the last drain."""
        with self._outbox_lock:
            events, self._outbox = self._outbox, []
        return events

    # -------------------------------------------------------------------
    # Enrollment and queries
    # -------------------------------------------------------------------
    def enroll(
        self,
        product_id: str,
        sku: str,
        available: int = 0,
        threshold: int = 0,
        allow_backorders: bool = False,
        track_inventory: bool = True,
    ) -> StockLevels:
        with self._lock_for(product_id):
            if self.repository.exists(product_id):
                raise ValidationError({"product_id": [f"Product {product_id} is already enrolled"]})
            item = StockItem.enroll(
                product_id=product_id,
                sku=sku,
                available=available,
                threshold=threshold,
                allow_backorders=allow_backorders,
                track_inventory=track_inventory,
            )
            self._save(item)
        logger.info("Product enrolled in stock ledger", product_id=product_id, available=available)
        return self._levels_of(item)

    def is_enrolled(self, product_id: str) -> bool:
        return self.repository.exists(product_id)

    def levels(self, product_id: str) -> StockLevels:
        return self._levels_of(self.repository.get(product_id))

    @staticmethod
    def _levels_of(item: StockItem) -> StockLevels:
        return StockLevels(
            product_id=item.id,
            sku=item.sku,
            available=item.available,
            reserved=item.reserved,
            backordered=item.backordered,
            threshold=item.threshold,
            track_inventory=item.track_inventory,
            allow_backorders=item.allow_backorders,
            retired=item.is_retired,
        )

    def available_to_reserve(self, product_id: str) -> int:
        return self.repository.get(product_id).unreserved

    def is_low_stock(self, product_id: str) -> bool:
        return self.repository.get(product_id).is_low_stock()

    def is_active(self, token: ReservationToken) -> bool:
        item = self.repository.get(token.product_id)
        reservation = item.find_reservation(token.reservation_id)
        return reservation is not None and ReservationStatus(reservation.status) == ReservationStatus.ACTIVE

    # -------------------------------------------------------------------
    # Reservation protocol
    # -------------------------------------------------------------------
    def reserve(
        self,
        product_id: str,
        quantity: int,
        order_ref: str | None = None,
        ttl: timedelta | None = None,
    ) -> ReservationToken:
        with self._lock_for(product_id):
            item = self.repository.get(product_id)
            expires_at = utcnow() + (ttl or self.reservation_ttl)
            try:
                reservation = item.reserve(quantity, order_ref=order_ref, expires_at=expires_at)
            except InsufficientStockError:
                logger.warning(
                    "Insufficient stock for reservation",
                    product_id=product_id,
                    requested=quantity,
                    unreserved=item.unreserved,
                    order_ref=order_ref,
                )
                raise
            self._save(item)

        logger.info(
            "Stock reserved",
            product_id=product_id,
            reservation_id=reservation.id,
            quantity=quantity,
            order_ref=order_ref,
        )
        return ReservationToken(
            product_id=product_id,
            reservation_id=reservation.id,
            quantity=quantity,
            order_ref=order_ref,
        )

    def commit(self, token: ReservationToken) -> bool:
        """Deduct the reserved units. Committing twice is a no-op."""
        with self._lock_for(token.product_id):
            item = self.repository.get(token.product_id)
            committed = item.commit(token.reservation_id)
            if committed:
                self._save(item)

        if committed:
            logger.info("Reservation committed", product_id=token.product_id, reservation_id=token.reservation_id)
        return committed

    def release(self, token: ReservationToken, reason: str = "released") -> bool:
        """Drop the hold. Releasing a settled reservation is a no-op."""
        with self._lock_for(token.product_id):
            item = self.repository.get(token.product_id)
            released = item.release(token.reservation_id, reason=reason)
            if released:
                self._save(item)

        if released:
            logger.info(
                "Reservation released",
                product_id=token.product_id,
                reservation_id=token.reservation_id,
                reason=reason,
            )
        return released

    def expire_stale(self, now: datetime | None = None) -> list[ReservationToken]:
        """Release every reservation whose TTL has elapsed, across all products."""
        now = now or utcnow()
        released: list[ReservationToken] = []

        candidates = [
            item.id
            for item in self.repository.all()
            if any(r.expires_at <= now for r in item.active_reservations())
        ]
        for product_id in candidates:
            with self._lock_for(product_id):
                item = self.repository.get(product_id)
                expired = item.expire(now)
                if expired:
                    self._save(item)
            released.extend(
                ReservationToken(
                    product_id=product_id,
                    reservation_id=r.id,
                    quantity=r.quantity,
                    order_ref=r.order_ref,
                )
                for r in expired
            )

        return released

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def receive(self, product_id: str, quantity: int) -> StockLevels:
        with self._lock_for(product_id):
            item = self.repository.get(product_id)
            item.receive(quantity)
            self._save(item)
        logger.info("Stock received", product_id=product_id, quantity=quantity)
        return self._levels_of(item)

    def retire(self, product_id: str) -> StockLevels:
        with self._lock_for(product_id):
            item = self.repository.get(product_id)
            item.retire()
            self._save(item)
        logger.info("Product retired from sale", product_id=product_id)
        return self._levels_of(item)
