"""Cart aggregate — mutable pre-order basket that converts to an Order at checkout.

The cart snapshots each product's price, name and SKU when the line is
added. Those snapshots are for display only: checkout re-prices every line
against the live catalogue before any money or stock is committed.

The aggregate performs no I/O. Availability is checked against the
ProductSnapshot the caller looked up; coupon discounts are computed by the
CouponValidator and handed in.
"""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import Field

from catalogue.port import ProductSnapshot
from shared.aggregate import Aggregate, Entity, utcnow
from shared.errors import (
    CurrencyMismatchError,
    InsufficientStockError,
    InvalidTransitionError,
    ValidationError,
)
from shared.lines import PricedLine
from shared.money import Money

from ordering.cart.events import (
    CartAbandoned,
    CartConverted,
    CartCouponApplied,
    CartCouponRemoved,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)

DEFAULT_CART_TTL = timedelta(hours=24)


class CartStatus(Enum):
    ACTIVE = "Active"
    CONVERTED = "Converted"
    ABANDONED = "Abandoned"


class CartLine(Entity):
    product_id: str
    vendor_id: str
    quantity: int = Field(ge=1)
    unit_price: Money
    product_name: str
    product_sku: str
    category_ids: list[str] = Field(default_factory=list)
    attributes: dict[str, str] = Field(default_factory=dict)
    added_at: datetime | None = None

    @property
    def line_total(self) -> Money:
        return self.unit_price.multiply(self.quantity)


class Cart(Aggregate):
    owner_ref: str = Field(min_length=1)  # customer id, or session token for guests
    is_guest: bool = False
    currency: str = Field(min_length=3, max_length=3)
    items: list[CartLine] = Field(default_factory=list)
    coupon_code: str | None = None
    discount: Money | None = None
    free_shipping: bool = False
    status: CartStatus = CartStatus.ACTIVE
    ttl_seconds: int = Field(default=int(DEFAULT_CART_TTL.total_seconds()), ge=1)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    expires_at: datetime | None = None

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner_ref: str, currency: str, is_guest: bool = False, ttl: timedelta = DEFAULT_CART_TTL):
        now = utcnow()
        return cls(
            owner_ref=owner_ref,
            is_guest=is_guest,
            currency=currency.upper(),
            ttl_seconds=int(ttl.total_seconds()),
            created_at=now,
            updated_at=now,
            expires_at=now + ttl,
        )

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_active(self, action: str) -> None:
        current = CartStatus(self.status)
        if current != CartStatus.ACTIVE:
            raise InvalidTransitionError(
                "status",
                current.value,
                CartStatus.ACTIVE.value,
                f"Cannot {action}: cart is {current.value}",
            )

    def _touch(self) -> None:
        now = utcnow()
        self.updated_at = now
        self.expires_at = now + timedelta(seconds=self.ttl_seconds)

    def line(self, line_id: str) -> CartLine:
        found = next((line for line in self.items if line.id == line_id), None)
        if found is None:
            raise ValidationError({"line_id": [f"Line {line_id} not found in cart"]})
        return found

    def line_for_product(self, product_id: str) -> CartLine | None:
        return next((line for line in self.items if line.product_id == product_id), None)

    @property
    def subtotal(self) -> Money:
        return Money.total((line.line_total for line in self.items), self.currency)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    def priced_lines(self) -> list[PricedLine]:
        return [
            PricedLine(
                product_id=line.product_id,
                vendor_id=line.vendor_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                category_ids=tuple(line.category_ids),
            )
            for line in self.items
        ]

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return self.expires_at is not None and self.expires_at <= now

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, snapshot: ProductSnapshot, quantity: int, attributes: dict | None = None) -> CartLine:
        """Add a product, merging into the existing line for that product."""
        self._assert_active("add items")
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if snapshot.price.currency != self.currency:
            raise CurrencyMismatchError(self.currency, snapshot.price.currency)

        existing = self.line_for_product(snapshot.product_id)
        wanted = quantity + (existing.quantity if existing else 0)
        if not snapshot.can_supply(wanted):
            raise InsufficientStockError(snapshot.product_id, wanted, snapshot.available)

        if existing:
            existing.quantity = wanted
            if attributes:
                existing.attributes = {**existing.attributes, **attributes}
            line = existing
        else:
            line = CartLine(
                product_id=snapshot.product_id,
                vendor_id=snapshot.vendor_id,
                quantity=quantity,
                unit_price=snapshot.price,
                product_name=snapshot.name,
                product_sku=snapshot.sku,
                category_ids=list(snapshot.category_ids),
                attributes=dict(attributes or {}),
                added_at=utcnow(),
            )
            self.items = [*self.items, line]

        self._touch()
        self.raise_(
            CartItemAdded(
                cart_id=self.id,
                line_id=line.id,
                product_id=line.product_id,
                quantity=quantity,
                line_quantity=line.quantity,
            )
        )
        return line

    def update_item_quantity(self, line_id: str, quantity: int, snapshot: ProductSnapshot | None = None) -> None:
        """Set a line's quantity; zero or less removes the line."""
        self._assert_active("update quantities")
        if quantity <= 0:
            self.remove_item(line_id)
            return

        line = self.line(line_id)
        if snapshot is not None and not snapshot.can_supply(quantity):
            raise InsufficientStockError(line.product_id, quantity, snapshot.available)

        previous = line.quantity
        line.quantity = quantity
        self._touch()
        self.raise_(
            CartQuantityUpdated(
                cart_id=self.id,
                line_id=line_id,
                previous_quantity=previous,
                new_quantity=quantity,
            )
        )

    def remove_item(self, line_id: str) -> None:
        self._assert_active("remove items")
        line = self.line(line_id)
        self.items = [item for item in self.items if item.id != line_id]
        self._touch()
        self.raise_(CartItemRemoved(cart_id=self.id, line_id=line_id, product_id=line.product_id))

    # -------------------------------------------------------------------
    # Coupons
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code: str, discount: Money, free_shipping: bool = False) -> None:
        self._assert_active("apply coupons")
        if discount.currency != self.currency:
            raise CurrencyMismatchError(self.currency, discount.currency)

        self.coupon_code = coupon_code
        self.discount = discount
        self.free_shipping = free_shipping
        self._touch()
        self.raise_(
            CartCouponApplied(
                cart_id=self.id,
                coupon_code=coupon_code,
                discount=discount,
                free_shipping=free_shipping,
            )
        )

    def remove_coupon(self, reason: str = "removed") -> None:
        self._assert_active("remove coupons")
        if self.coupon_code is None:
            return
        code = self.coupon_code
        self.coupon_code = None
        self.discount = None
        self.free_shipping = False
        self._touch()
        self.raise_(CartCouponRemoved(cart_id=self.id, coupon_code=code, reason=reason))

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def convert(self, order_id: str) -> None:
        """Mark the cart as checked out. Happens exactly once."""
        self._assert_active("convert")
        if not self.items:
            raise ValidationError({"cart": ["Cannot convert an empty cart"]})

        self.status = CartStatus.CONVERTED
        self.updated_at = utcnow()
        self.raise_(CartConverted(cart_id=self.id, owner_ref=self.owner_ref, order_id=order_id))

    def abandon(self) -> None:
        self._assert_active("abandon")
        self.status = CartStatus.ABANDONED
        self.updated_at = utcnow()
        self.raise_(CartAbandoned(cart_id=self.id, owner_ref=self.owner_ref, item_count=self.item_count))
