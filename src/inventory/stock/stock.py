"""StockItem aggregate — the ledger entry for one product.

Stock Level Model:
    available:   Units on hand that have not been shipped out
    reserved:    Units held by unpaid orders (reservation tokens)
    backordered: Units committed beyond what was on hand
    unreserved:  available - reserved (what can still be promised)

A reservation is a hold, not a deduction: it raises ``reserved`` only.
Committing it deducts from ``available``; releasing it just drops the hold.
Products that don't track inventory hand out reservations without touching
any counter.
"""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import Field

from shared.aggregate import Aggregate, Entity, utcnow
from shared.errors import (
    InsufficientStockError,
    ReservationNotActiveError,
    ValidationError,
)

from inventory.stock.events import (
    LowStockDetected,
    ReservationCommitted,
    ReservationReleased,
    StockEnrolled,
    StockReceived,
    StockReserved,
    StockRetired,
)

DEFAULT_RESERVATION_TTL = timedelta(minutes=15)

# Settled reservations are kept this long, and at most this many, so repeated
# commit/release calls on them stay no-ops. Older ones are dropped.
SETTLED_RETENTION = timedelta(hours=1)
MAX_SETTLED_RESERVATIONS = 200


class ReservationStatus(Enum):
    ACTIVE = "Active"
    COMMITTED = "Committed"
    RELEASED = "Released"
    EXPIRED = "Expired"


class StockStatus(Enum):
    ACTIVE = "Active"
    RETIRED = "Retired"


class Reservation(Entity):
    """A hold on stock for one order line.

    Reservations transition ACTIVE → COMMITTED (payment captured) or
    ACTIVE → RELEASED / EXPIRED (cancelled or timed out). Recently settled
    reservations are kept so repeated commit/release calls are no-ops; a
    reservation that is no longer on record is treated as long settled.
    """

    order_ref: str | None = None
    quantity: int = Field(ge=1)
    status: ReservationStatus = ReservationStatus.ACTIVE
    reserved_at: datetime
    expires_at: datetime
    settled_at: datetime | None = None


class StockItem(Aggregate):
    """Aggregate tracking stock for one product; ``id`` is the product id."""

    sku: str = Field(min_length=1, max_length=50)
    available: int = Field(default=0, ge=0)
    reserved: int = Field(default=0, ge=0)
    backordered: int = Field(default=0, ge=0)
    threshold: int = 0
    allow_backorders: bool = False
    track_inventory: bool = True
    status: StockStatus = StockStatus.ACTIVE
    reservations: list[Reservation] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def enroll(
        cls,
        product_id: str,
        sku: str,
        available: int = 0,
        threshold: int = 0,
        allow_backorders: bool = False,
        track_inventory: bool = True,
    ) -> "StockItem":
        now = utcnow()
        item = cls(
            id=product_id,
            sku=sku,
            available=available,
            threshold=threshold,
            allow_backorders=allow_backorders,
            track_inventory=track_inventory,
            created_at=now,
            updated_at=now,
        )
        item.raise_(
            StockEnrolled(
                product_id=product_id,
                sku=sku,
                available=available,
                threshold=threshold,
                allow_backorders=allow_backorders,
                track_inventory=track_inventory,
            )
        )
        return item

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def product_id(self) -> str:
        return self.id

    @property
    def is_retired(self) -> bool:
        return StockStatus(self.status) == StockStatus.RETIRED

    @property
    def unreserved(self) -> int:
        return max(self.available - self.reserved, 0)

    def can_reserve(self, quantity: int) -> bool:
        if self.is_retired:
            return False
        if not self.track_inventory or self.allow_backorders:
            return True
        return quantity <= self.available - self.reserved

    def is_low_stock(self) -> bool:
        return self.track_inventory and self.available <= self.threshold

    def find_reservation(self, reservation_id: str) -> Reservation | None:
        return next((r for r in self.reservations if r.id == reservation_id), None)

    def reservation(self, reservation_id: str) -> Reservation:
        found = self.find_reservation(reservation_id)
        if found is None:
            raise ValidationError({"reservation_id": [f"Reservation {reservation_id} not found"]})
        return found

    def active_reservations(self) -> list[Reservation]:
        return [r for r in self.reservations if ReservationStatus(r.status) == ReservationStatus.ACTIVE]

    def _prune_settled(self, now: datetime) -> None:
        settled = [
            r
            for r in self.reservations
            if ReservationStatus(r.status) != ReservationStatus.ACTIVE
            and r.settled_at is not None
            and r.settled_at > now - SETTLED_RETENTION
        ]
        keep = {r.id for r in sorted(settled, key=lambda r: r.settled_at)[-MAX_SETTLED_RESERVATIONS:]}
        kept = [r for r in self.reservations if ReservationStatus(r.status) == ReservationStatus.ACTIVE or r.id in keep]
        if len(kept) != len(self.reservations):
            self.reservations = kept

    def _check_low_stock(self) -> None:
        if self.is_low_stock():
            self.raise_(
                LowStockDetected(
                    product_id=self.id,
                    sku=self.sku,
                    available=self.available,
                    threshold=self.threshold,
                )
            )

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, quantity: int, order_ref: str | None = None, expires_at: datetime | None = None) -> Reservation:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if self.is_retired:
            raise ValidationError({"product_id": [f"Product {self.id} is retired and cannot be reserved"]})
        if not self.can_reserve(quantity):
            raise InsufficientStockError(self.id, quantity, self.unreserved)

        now = utcnow()
        reservation = Reservation(
            order_ref=order_ref,
            quantity=quantity,
            reserved_at=now,
            expires_at=expires_at or now + DEFAULT_RESERVATION_TTL,
        )
        self.reservations = [*self.reservations, reservation]
        self._prune_settled(now)
        if self.track_inventory:
            self.reserved += quantity
        self.updated_at = now

        self.raise_(
            StockReserved(
                product_id=self.id,
                reservation_id=reservation.id,
                order_ref=order_ref,
                quantity=quantity,
                new_reserved=self.reserved,
                expires_at=reservation.expires_at,
            )
        )
        return reservation

    def commit(self, reservation_id: str) -> bool:
        """Turn a reservation into a deduction. Returns False if already committed."""
        reservation = self.find_reservation(reservation_id)
        if reservation is None:
            raise ReservationNotActiveError({"reservation_id": [f"Reservation {reservation_id} is no longer held"]})
        status = ReservationStatus(reservation.status)
        if status == ReservationStatus.COMMITTED:
            return False
        if status != ReservationStatus.ACTIVE:
            raise ReservationNotActiveError(
                {"reservation_id": [f"Cannot commit reservation in {status.value} state"]}
            )

        if self.track_inventory:
            deducted = min(reservation.quantity, self.available)
            self.reserved -= reservation.quantity
            self.available -= deducted
            self.backordered += reservation.quantity - deducted

        now = utcnow()
        reservation.status = ReservationStatus.COMMITTED
        reservation.settled_at = now
        self.updated_at = now
        self._prune_settled(now)

        self.raise_(
            ReservationCommitted(
                product_id=self.id,
                reservation_id=reservation.id,
                order_ref=reservation.order_ref,
                quantity=reservation.quantity,
                new_available=self.available,
                new_reserved=self.reserved,
                backordered=self.backordered,
            )
        )
        self._check_low_stock()
        return True

    def release(self, reservation_id: str, reason: str = "released", expired: bool = False) -> bool:
        """Drop a hold without deducting. Returns False if nothing was held.

        Committed stock is never handed back here; returning goods to stock
        is a separate flow.
        """
        reservation = self.find_reservation(reservation_id)
        if reservation is None or ReservationStatus(reservation.status) != ReservationStatus.ACTIVE:
            return False

        if self.track_inventory:
            self.reserved -= reservation.quantity

        now = utcnow()
        reservation.status = ReservationStatus.EXPIRED if expired else ReservationStatus.RELEASED
        reservation.settled_at = now
        self.updated_at = now
        self._prune_settled(now)

        self.raise_(
            ReservationReleased(
                product_id=self.id,
                reservation_id=reservation.id,
                order_ref=reservation.order_ref,
                quantity=reservation.quantity,
                reason=reason,
                new_reserved=self.reserved,
            )
        )
        return True

    def expire(self, now: datetime | None = None) -> list[Reservation]:
        """Release every active reservation whose TTL has elapsed."""
        now = now or utcnow()
        expired = [r for r in self.active_reservations() if r.expires_at <= now]
        for reservation in expired:
            self.release(reservation.id, reason="timeout", expired=True)
        return expired

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def receive(self, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        settled = min(quantity, self.backordered)
        self.backordered -= settled
        self.available += quantity - settled
        self.updated_at = utcnow()

        self.raise_(
            StockReceived(
                product_id=self.id,
                quantity=quantity,
                backorders_settled=settled,
                new_available=self.available,
            )
        )

    def retire(self) -> None:
        if self.is_retired:
            return
        self.status = StockStatus.RETIRED
        self.updated_at = utcnow()
        self.raise_(StockRetired(product_id=self.id))
