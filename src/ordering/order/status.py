"""Order status axes and the transition tables that govern them.

An order moves along three independent axes:

    OrderStatus        PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
                       CANCELLED from PENDING, CONFIRMED, PROCESSING
                       REFUNDED from any state reached after payment
    PaymentStatus      PENDING → PAID | FAILED, FAILED → PAID | FAILED (retry),
                       PAID → REFUNDED
    FulfillmentStatus  UNFULFILLED → SHIPPED → DELIVERED (order and item level)

Legality lives in the tables below, not in the enums, so the whole state
machine can be read in one place.
"""

from enum import Enum

from shared.errors import InvalidTransitionError


class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class FulfillmentStatus(Enum):
    UNFULFILLED = "Unfulfilled"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


_ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),
}

_FULFILLMENT_TRANSITIONS = {
    FulfillmentStatus.UNFULFILLED: {FulfillmentStatus.SHIPPED},
    FulfillmentStatus.SHIPPED: {FulfillmentStatus.DELIVERED},
    FulfillmentStatus.DELIVERED: set(),
}

_TABLES = {
    OrderStatus: ("status", _ORDER_TRANSITIONS),
    PaymentStatus: ("payment_status", _PAYMENT_TRANSITIONS),
    FulfillmentStatus: ("fulfillment_status", _FULFILLMENT_TRANSITIONS),
}

TERMINAL_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED})
CANCELLABLE_STATES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING})
SHIPPABLE_STATES = frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING})


def can_transition(current: Enum, target: Enum) -> bool:
    _, table = _TABLES[type(current)]
    return target in table.get(current, set())


def assert_transition(current: Enum, target: Enum) -> None:
    """Raise InvalidTransitionError unless ``current → target`` is legal."""
    if not can_transition(current, target):
        axis, _ = _TABLES[type(current)]
        raise InvalidTransitionError(axis, current.value, target.value)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------
def is_pending(status: OrderStatus) -> bool:
    return status == OrderStatus.PENDING


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATES


def is_paid(payment_status: PaymentStatus) -> bool:
    return payment_status == PaymentStatus.PAID


def awaits_payment(payment_status: PaymentStatus) -> bool:
    return payment_status in (PaymentStatus.PENDING, PaymentStatus.FAILED)


def has_left_warehouse(fulfillment_status: FulfillmentStatus) -> bool:
    return fulfillment_status in (FulfillmentStatus.SHIPPED, FulfillmentStatus.DELIVERED)


def can_be_cancelled(status: OrderStatus, fulfillment_status: FulfillmentStatus) -> bool:
    return status in CANCELLABLE_STATES and not has_left_warehouse(fulfillment_status)


def can_be_shipped(status: OrderStatus, payment_status: PaymentStatus) -> bool:
    return status in SHIPPABLE_STATES and is_paid(payment_status)


def can_be_refunded(status: OrderStatus, payment_status: PaymentStatus) -> bool:
    return is_paid(payment_status) and can_transition(status, OrderStatus.REFUNDED)
