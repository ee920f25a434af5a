"""Domain events for the Cart aggregate."""

from shared.aggregate import DomainEvent
from shared.money import Money


class CartItemAdded(DomainEvent):
    """A product was added to the cart (or its line quantity grew)."""

    cart_id: str
    line_id: str
    product_id: str
    quantity: int
    line_quantity: int


class CartQuantityUpdated(DomainEvent):
    cart_id: str
    line_id: str
    previous_quantity: int
    new_quantity: int


class CartItemRemoved(DomainEvent):
    cart_id: str
    line_id: str
    product_id: str


class CartCouponApplied(DomainEvent):
    cart_id: str
    coupon_code: str
    discount: Money
    free_shipping: bool = False


class CartCouponRemoved(DomainEvent):
    """The coupon was dropped, by the customer or because it stopped applying."""

    cart_id: str
    coupon_code: str
    reason: str


class CartConverted(DomainEvent):
    """The cart was checked out; it is read-only from now on."""

    cart_id: str
    owner_ref: str
    order_id: str


class CartAbandoned(DomainEvent):
    cart_id: str
    owner_ref: str
    item_count: int
