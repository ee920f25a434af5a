"""Domain events for the StockItem aggregate."""

from datetime import datetime

from shared.aggregate import DomainEvent


class StockEnrolled(DomainEvent):
    """A product was put up for sale and given a ledger entry."""

    product_id: str
    sku: str
    available: int
    threshold: int
    allow_backorders: bool
    track_inventory: bool


class StockReceived(DomainEvent):
    """Units arrived; backorders are settled before available grows."""

    product_id: str
    quantity: int
    backorders_settled: int
    new_available: int


class StockReserved(DomainEvent):
    product_id: str
    reservation_id: str
    order_ref: str | None = None
    quantity: int
    new_reserved: int
    expires_at: datetime


class ReservationCommitted(DomainEvent):
    """A reservation became a permanent deduction."""

    product_id: str
    reservation_id: str
    order_ref: str | None = None
    quantity: int
    new_available: int
    new_reserved: int
    backordered: int


class ReservationReleased(DomainEvent):
    """A reservation was cancelled or timed out without deducting stock."""

    product_id: str
    reservation_id: str
    order_ref: str | None = None
    quantity: int
    reason: str
    new_reserved: int


class LowStockDetected(DomainEvent):
    product_id: str
    sku: str
    available: int
    threshold: int


class StockRetired(DomainEvent):
    """The product was withdrawn from sale; its history is kept."""

    product_id: str
