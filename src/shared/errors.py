"""Error taxonomy shared by every bounded context.

All errors carry a ``messages`` dict keyed by the offending field (or a
logical key such as ``"status"``), so callers can report the specific unmet
condition without parsing exception text.
"""


class DomainError(Exception):
    """Root of all domain errors."""

    def __init__(self, messages: dict[str, list[str]] | str | None = None):
        if messages is None:
            messages = {}
        elif isinstance(messages, str):
            messages = {"_entity": [messages]}
        self.messages = messages
        super().__init__(messages)


class ValidationError(DomainError):
    """Input or state failed validation."""


class ObjectNotFoundError(DomainError):
    """No aggregate is stored under the requested identity."""


class InsufficientStockError(DomainError):
    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            {"quantity": [f"Insufficient stock for product {product_id}: {available} available, {requested} requested"]}
        )


class ReservationNotActiveError(DomainError):
    """A reservation token was committed after being released or expired."""


class InvalidCouponError(DomainError):
    def __init__(self, code: str, message: str | None = None):
        self.code = code
        super().__init__({"coupon_code": [message or f"Coupon {code} is not valid"]})


class CouponNotApplicableError(InvalidCouponError):
    """The coupon exists but one of its conditions is not met."""

    def __init__(self, code: str, condition: str, message: str):
        self.condition = condition
        super().__init__(code, message)


class InvalidTransitionError(DomainError):
    def __init__(self, axis: str, current: str, target: str, message: str | None = None):
        self.axis = axis
        self.current = current
        self.target = target
        super().__init__({axis: [message or f"Cannot transition from {current} to {target}"]})


class CurrencyMismatchError(DomainError):
    def __init__(self, left: str, right: str):
        super().__init__({"currency": [f"Currency mismatch: {left} vs {right}"]})


class NegativeResultError(DomainError):
    """Money arithmetic would produce a negative amount."""


class ConcurrentModificationError(DomainError):
    """The aggregate changed since it was loaded; reload and retry."""


class EmptyCartError(DomainError):
    def __init__(self, cart_id: str):
        super().__init__({"cart": [f"Cart {cart_id} has no items"]})


class PaymentFailedError(DomainError):
    """A charge or refund did not go through.

    ``reason`` is safe to show to the customer; ``internal_reason`` carries
    the gateway's diagnostic for operators.
    """

    def __init__(self, reason: str = "Payment could not be completed", internal_reason: str | None = None):
        self.reason = reason
        self.internal_reason = internal_reason
        super().__init__({"payment": [reason]})


class RefundFailedError(PaymentFailedError):
    def __init__(self, internal_reason: str | None = None):
        super().__init__("Refund could not be completed", internal_reason)
