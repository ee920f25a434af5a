"""Domain events for the Order aggregate.

Events are immutable facts. OrderProcessor returns them alongside the order
so the caller can drive notifications, accounting and projections.
"""

from shared.aggregate import DomainEvent
from shared.money import Money


class OrderPlaced(DomainEvent):
    """A cart was checked out: stock is reserved and payment is awaited."""

    order_id: str
    order_number: str
    customer_ref: str
    total_amount: Money
    item_count: int
    vendor_ids: list[str]


class OrderItemQuantityChanged(DomainEvent):
    order_id: str
    item_id: str
    previous_quantity: int
    new_quantity: int
    new_total: Money


class OrderItemRemoved(DomainEvent):
    order_id: str
    item_id: str
    new_total: Money


class OrderRepriced(DomainEvent):
    """Tax, shipping or discount changed; totals were recomputed."""

    order_id: str
    coupon_code: str | None = None
    discount_amount: Money
    new_total: Money


class OrderConfirmed(DomainEvent):
    """Payment was captured and stock committed."""

    order_id: str
    order_number: str
    customer_ref: str
    transaction_id: str
    amount: Money


class PaymentFailed(DomainEvent):
    order_id: str
    reason: str
    attempt: int


class OrderProcessing(DomainEvent):
    order_id: str


class OrderShipped(DomainEvent):
    order_id: str
    tracking_number: str | None = None


class OrderDelivered(DomainEvent):
    order_id: str


class OrderCancelled(DomainEvent):
    order_id: str
    reason: str
    cancelled_by: str
    refunded: bool = False


class OrderRefunded(DomainEvent):
    order_id: str
    refund_id: str | None = None
    amount: Money
