"""Order aggregate — a placed purchase and its three status axes.

An order is created from a converted cart with every price snapshotted at
checkout. From then on it only moves through the transition tables in
``ordering.order.status``; amounts are kept consistent by recomputing

    total_amount = subtotal + tax_amount + shipping_amount - discount_amount

after every item or discount mutation. Items and amounts can only change
while the order is pending and unpaid.
"""

import secrets
from datetime import datetime

from pydantic import Field

from shared.address import Address
from shared.aggregate import Aggregate, Entity, utcnow
from shared.errors import CurrencyMismatchError, InvalidTransitionError, ValidationError
from shared.lines import PricedLine
from shared.money import Money

from ordering.order.events import (
    OrderCancelled,
    OrderConfirmed,
    OrderDelivered,
    OrderItemQuantityChanged,
    OrderItemRemoved,
    OrderPlaced,
    OrderProcessing,
    OrderRefunded,
    OrderRepriced,
    OrderShipped,
    PaymentFailed,
)
from ordering.order.status import (
    FulfillmentStatus,
    OrderStatus,
    PaymentStatus,
    assert_transition,
    awaits_payment,
    can_be_cancelled,
    can_be_shipped,
)


def generate_order_number(prefix: str = "ORD", now: datetime | None = None) -> str:
    """Human-readable order number, e.g. ``ORD-20261019-3F9A0C2B``."""
    now = now or utcnow()
    return f"{prefix}-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


class OrderItem(Entity):
    """A snapshotted order line. Owned by exactly one order."""

    order_id: str
    product_id: str
    vendor_id: str
    product_name: str
    product_sku: str
    quantity: int = Field(ge=1)
    unit_price: Money
    total_price: Money
    category_ids: list[str] = Field(default_factory=list)
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.UNFULFILLED
    tracking_number: str | None = None
    reservation_id: str | None = None  # None for untracked products

    def reprice(self) -> None:
        self.total_price = self.unit_price.multiply(self.quantity)

    def priced_line(self) -> PricedLine:
        return PricedLine(
            product_id=self.product_id,
            vendor_id=self.vendor_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            category_ids=tuple(self.category_ids),
        )


class Order(Aggregate):
    order_number: str
    customer_ref: str
    cart_id: str | None = None
    currency: str = Field(min_length=3, max_length=3)
    billing_address: Address
    shipping_address: Address
    shipping_method: str = "standard"
    items: list[OrderItem] = Field(default_factory=list)

    subtotal: Money
    tax_amount: Money
    shipping_amount: Money
    discount_amount: Money
    total_amount: Money
    coupon_code: str | None = None
    free_shipping: bool = False

    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.UNFULFILLED

    payment_method: str | None = None
    transaction_id: str | None = None
    refund_id: str | None = None
    payment_attempts: int = Field(default=0, ge=0)
    payment_failure_reason: str | None = None
    tracking_number: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None

    placed_at: datetime | None = None
    confirmed_at: datetime | None = None
    processing_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number: str,
        customer_ref: str,
        currency: str,
        items: list[dict],
        billing_address: Address,
        shipping_address: Address,
        tax_amount: Money,
        shipping_amount: Money,
        discount_amount: Money,
        shipping_method: str = "standard",
        payment_method: str | None = None,
        coupon_code: str | None = None,
        free_shipping: bool = False,
        cart_id: str | None = None,
    ) -> "Order":
        """Create a pending order.

        Args:
            items: dicts with product_id, vendor_id, product_name, product_sku,
                   quantity, unit_price and optionally category_ids and
                   reservation_id.
        """
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        currency = currency.upper()
        zero = Money.zero(currency)
        order = cls(
            order_number=order_number,
            customer_ref=customer_ref,
            cart_id=cart_id,
            currency=currency,
            billing_address=billing_address,
            shipping_address=shipping_address,
            shipping_method=shipping_method,
            payment_method=payment_method,
            coupon_code=coupon_code,
            free_shipping=free_shipping,
            subtotal=zero,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            discount_amount=discount_amount,
            total_amount=zero,
            placed_at=utcnow(),
        )
        order.items = [
            OrderItem(
                order_id=order.id,
                total_price=item["unit_price"].multiply(item["quantity"]),
                **item,
            )
            for item in items
        ]
        for item in order.items:
            if item.unit_price.currency != currency:
                raise CurrencyMismatchError(currency, item.unit_price.currency)
        order.recalculate_totals()

        order.raise_(
            OrderPlaced(
                order_id=order.id,
                order_number=order.order_number,
                customer_ref=order.customer_ref,
                total_amount=order.total_amount,
                item_count=sum(item.quantity for item in order.items),
                vendor_ids=order.vendor_ids,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def item(self, item_id: str) -> OrderItem:
        found = next((item for item in self.items if item.id == item_id), None)
        if found is None:
            raise ValidationError({"item_id": [f"Item {item_id} not found in order"]})
        return found

    @property
    def vendor_ids(self) -> list[str]:
        return list(dict.fromkeys(item.vendor_id for item in self.items))

    def items_for_vendor(self, vendor_id: str) -> list[OrderItem]:
        return [item for item in self.items if item.vendor_id == vendor_id]

    def priced_lines(self) -> list[PricedLine]:
        return [item.priced_line() for item in self.items]

    # -------------------------------------------------------------------
    # Amounts
    # -------------------------------------------------------------------
    def recalculate_totals(self) -> None:
        """Recompute subtotal and total from the items. Idempotent."""
        self.subtotal = Money.total((item.total_price for item in self.items), self.currency)
        # a discount can never exceed what it discounts
        self.discount_amount = self.discount_amount.min(self.subtotal)
        self.total_amount = (
            self.subtotal.add(self.tax_amount).add(self.shipping_amount).subtract(self.discount_amount)
        )

    def _assert_modifiable(self, action: str) -> None:
        current = OrderStatus(self.status)
        if current != OrderStatus.PENDING or not awaits_payment(PaymentStatus(self.payment_status)):
            raise InvalidTransitionError(
                "status",
                current.value,
                OrderStatus.PENDING.value,
                f"Cannot {action}: order is {current.value}",
            )

    def update_item_quantity(self, item_id: str, quantity: int) -> int:
        """Change a line's quantity; returns the previous quantity."""
        self._assert_modifiable("change quantities")
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        item = self.item(item_id)
        previous = item.quantity
        item.quantity = quantity
        item.reprice()
        self.recalculate_totals()
        self.raise_(
            OrderItemQuantityChanged(
                order_id=self.id,
                item_id=item_id,
                previous_quantity=previous,
                new_quantity=quantity,
                new_total=self.total_amount,
            )
        )
        return previous

    def remove_item(self, item_id: str) -> OrderItem:
        self._assert_modifiable("remove items")
        item = self.item(item_id)
        if len(self.items) == 1:
            raise ValidationError({"items": ["Cannot remove the last item; cancel the order instead"]})

        self.items = [i for i in self.items if i.id != item_id]
        self.recalculate_totals()
        self.raise_(OrderItemRemoved(order_id=self.id, item_id=item_id, new_total=self.total_amount))
        return item

    def reprice(
        self,
        tax_amount: Money,
        shipping_amount: Money,
        discount_amount: Money,
        coupon_code: str | None = None,
        free_shipping: bool = False,
    ) -> None:
        """Replace tax, shipping and discount, e.g. after items changed."""
        self._assert_modifiable("reprice")
        self.tax_amount = tax_amount
        self.shipping_amount = shipping_amount
        self.discount_amount = discount_amount
        self.coupon_code = coupon_code
        self.free_shipping = free_shipping
        self.recalculate_totals()
        self.raise_(
            OrderRepriced(
                order_id=self.id,
                coupon_code=coupon_code,
                discount_amount=self.discount_amount,
                new_total=self.total_amount,
            )
        )

    def apply_discount(self, coupon_code: str | None, discount_amount: Money, free_shipping: bool = False) -> None:
        shipping = Money.zero(self.currency) if free_shipping else self.shipping_amount
        self.reprice(self.tax_amount, shipping, discount_amount, coupon_code, free_shipping)

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def attach_reservation(self, item_id: str, reservation_id: str | None) -> None:
        self.item(item_id).reservation_id = reservation_id

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment_success(self, transaction_id: str, payment_method: str | None = None) -> None:
        """Payment captured: pending → confirmed, payment → paid."""
        assert_transition(OrderStatus(self.status), OrderStatus.CONFIRMED)
        assert_transition(PaymentStatus(self.payment_status), PaymentStatus.PAID)

        now = utcnow()
        self.payment_attempts += 1
        self.payment_status = PaymentStatus.PAID
        self.status = OrderStatus.CONFIRMED
        self.transaction_id = transaction_id
        self.payment_failure_reason = None
        if payment_method:
            self.payment_method = payment_method
        self.confirmed_at = now

        self.raise_(
            OrderConfirmed(
                order_id=self.id,
                order_number=self.order_number,
                customer_ref=self.customer_ref,
                transaction_id=transaction_id,
                amount=self.total_amount,
            )
        )

    def record_payment_failure(self, reason: str) -> None:
        """The charge failed. The order stays pending so payment can be retried."""
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise InvalidTransitionError(
                "status",
                OrderStatus(self.status).value,
                OrderStatus.PENDING.value,
                "Payment failures can only be recorded on pending orders",
            )
        assert_transition(PaymentStatus(self.payment_status), PaymentStatus.FAILED)

        self.payment_attempts += 1
        self.payment_status = PaymentStatus.FAILED
        self.payment_failure_reason = reason
        self.raise_(PaymentFailed(order_id=self.id, reason=reason, attempt=self.payment_attempts))

    def record_refund(self, refund_id: str | None) -> None:
        """Payment returned to the customer: paid → refunded."""
        assert_transition(PaymentStatus(self.payment_status), PaymentStatus.REFUNDED)
        self.payment_status = PaymentStatus.REFUNDED
        self.refund_id = refund_id
        self.refunded_at = utcnow()

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def mark_processing(self) -> None:
        assert_transition(OrderStatus(self.status), OrderStatus.PROCESSING)
        self.status = OrderStatus.PROCESSING
        self.processing_at = utcnow()
        self.raise_(OrderProcessing(order_id=self.id))

    def ship(self, tracking_number: str | None = None) -> None:
        current = OrderStatus(self.status)
        if not can_be_shipped(current, PaymentStatus(self.payment_status)):
            raise InvalidTransitionError(
                "status",
                current.value,
                OrderStatus.SHIPPED.value,
                f"Cannot ship an order that is {current.value} with payment "
                f"{PaymentStatus(self.payment_status).value}",
            )
        assert_transition(FulfillmentStatus(self.fulfillment_status), FulfillmentStatus.SHIPPED)

        for item in self.items:
            item.fulfillment_status = FulfillmentStatus.SHIPPED
            item.tracking_number = tracking_number
        self.status = OrderStatus.SHIPPED
        self.fulfillment_status = FulfillmentStatus.SHIPPED
        self.tracking_number = tracking_number
        self.shipped_at = utcnow()
        self.raise_(OrderShipped(order_id=self.id, tracking_number=tracking_number))

    def deliver(self) -> None:
        assert_transition(FulfillmentStatus(self.fulfillment_status), FulfillmentStatus.DELIVERED)
        assert_transition(OrderStatus(self.status), OrderStatus.DELIVERED)

        for item in self.items:
            item.fulfillment_status = FulfillmentStatus.DELIVERED
        self.status = OrderStatus.DELIVERED
        self.fulfillment_status = FulfillmentStatus.DELIVERED
        self.delivered_at = utcnow()
        self.raise_(OrderDelivered(order_id=self.id))

    # -------------------------------------------------------------------
    # Cancellation and refund
    # -------------------------------------------------------------------
    def cancel(self, reason: str, cancelled_by: str = "customer") -> None:
        current = OrderStatus(self.status)
        if not can_be_cancelled(current, FulfillmentStatus(self.fulfillment_status)):
            raise InvalidTransitionError(
                "status",
                current.value,
                OrderStatus.CANCELLED.value,
                f"Order cannot be cancelled in {current.value} state",
            )

        self.status = OrderStatus.CANCELLED
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.cancelled_at = utcnow()
        self.raise_(
            OrderCancelled(
                order_id=self.id,
                reason=reason,
                cancelled_by=cancelled_by,
                refunded=PaymentStatus(self.payment_status) == PaymentStatus.REFUNDED,
            )
        )

    def refund(self, refund_id: str | None) -> None:
        """Refund a paid order outside of cancellation: order and payment → refunded."""
        assert_transition(OrderStatus(self.status), OrderStatus.REFUNDED)
        self.record_refund(refund_id)
        self.status = OrderStatus.REFUNDED
        self.raise_(OrderRefunded(order_id=self.id, refund_id=refund_id, amount=self.total_amount))
