"""Tests for the Order aggregate — placement, amounts and item changes."""

import re

import pytest

from ordering.order.events import (
    OrderItemQuantityChanged,
    OrderItemRemoved,
    OrderPlaced,
    OrderRepriced,
)
from ordering.order.order import Order, generate_order_number
from ordering.order.status import FulfillmentStatus, OrderStatus, PaymentStatus
from shared.address import Address
from shared.errors import InvalidTransitionError, ValidationError
from shared.money import Money

ADDRESS = Address(street="1 St", city="Cairo", postal_code="11511", country="EG")


def _item(product_id="P1", vendor_id="vendor-1", quantity=2, price="50.00"):
    return {
        "product_id": product_id,
        "vendor_id": vendor_id,
        "product_name": f"Product {product_id}",
        "product_sku": f"SKU-{product_id}",
        "quantity": quantity,
        "unit_price": Money.of(price, "EGP"),
    }


def _make_order(items=None, tax="0", shipping="0", discount="0"):
    return Order.place(
        order_number=generate_order_number(),
        customer_ref="cust-001",
        currency="EGP",
        items=items or [_item()],
        billing_address=ADDRESS,
        shipping_address=ADDRESS,
        tax_amount=Money.of(tax, "EGP"),
        shipping_amount=Money.of(shipping, "EGP"),
        discount_amount=Money.of(discount, "EGP"),
        payment_method="card",
    )


class TestPlacement:
    def test_new_order_is_pending(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.fulfillment_status == FulfillmentStatus.UNFULFILLED.value
        assert order.placed_at is not None

    def test_items_are_snapshotted(self):
        order = _make_order()
        item = order.items[0]
        assert item.order_id == order.id
        assert item.total_price == Money.of("100.00", "EGP")
        assert item.fulfillment_status == FulfillmentStatus.UNFULFILLED.value

    def test_totals(self):
        order = _make_order(tax="14.00", shipping="25.00", discount="10.00")
        assert order.subtotal == Money.of("100.00", "EGP")
        assert order.total_amount == Money.of("129.00", "EGP")

    def test_order_placed_event(self):
        order = _make_order(items=[_item("P1", "vendor-1"), _item("P2", "vendor-2", quantity=1)])
        event = order._events[0]
        assert isinstance(event, OrderPlaced)
        assert event.item_count == 3
        assert event.vendor_ids == ["vendor-1", "vendor-2"]

    def test_order_needs_items(self):
        with pytest.raises(ValidationError):
            Order.place(
                order_number="ORD-1",
                customer_ref="cust-001",
                currency="EGP",
                items=[],
                billing_address=ADDRESS,
                shipping_address=ADDRESS,
                tax_amount=Money.zero("EGP"),
                shipping_amount=Money.zero("EGP"),
                discount_amount=Money.zero("EGP"),
            )

    def test_order_number_format(self):
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{8}", generate_order_number())


class TestRecalculation:
    def test_recalculation_is_idempotent(self):
        order = _make_order(tax="5", shipping="10", discount="20")
        first = order.total_amount
        order.recalculate_totals()
        order.recalculate_totals()
        assert order.total_amount == first

    def test_discount_never_exceeds_subtotal(self):
        order = _make_order(items=[_item(quantity=1, price="30")], discount="30")
        order.apply_discount("BIG", Money.of("500", "EGP"))
        assert order.discount_amount == Money.of("30", "EGP")
        assert order.total_amount == Money.zero("EGP")


class TestItemChanges:
    def test_update_quantity_recomputes_totals(self):
        order = _make_order(shipping="25")
        order._events.clear()
        order.update_item_quantity(order.items[0].id, 3)

        assert order.items[0].total_price == Money.of("150.00", "EGP")
        assert order.subtotal == Money.of("150.00", "EGP")
        assert order.total_amount == Money.of("175.00", "EGP")
        assert isinstance(order._events[0], OrderItemQuantityChanged)
        assert order._events[0].previous_quantity == 2

    def test_remove_item(self):
        order = _make_order(items=[_item("P1"), _item("P2", quantity=1)])
        order._events.clear()
        order.remove_item(order.items[1].id)

        assert len(order.items) == 1
        assert order.total_amount == Money.of("100.00", "EGP")
        assert isinstance(order._events[0], OrderItemRemoved)

    def test_cannot_remove_last_item(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.remove_item(order.items[0].id)

    def test_apply_discount(self):
        order = _make_order(shipping="25")
        order._events.clear()
        order.apply_discount("SAVE10", Money.of("10", "EGP"))

        assert order.coupon_code == "SAVE10"
        assert order.total_amount == Money.of("115.00", "EGP")
        assert isinstance(order._events[0], OrderRepriced)

    def test_free_shipping_discount_zeroes_shipping(self):
        order = _make_order(shipping="25")
        order.apply_discount("SHIPFREE", Money.zero("EGP"), free_shipping=True)
        assert order.shipping_amount == Money.zero("EGP")
        assert order.total_amount == Money.of("100.00", "EGP")

    def test_no_changes_once_paid(self):
        order = _make_order()
        order.record_payment_success("txn-1")
        with pytest.raises(InvalidTransitionError):
            order.update_item_quantity(order.items[0].id, 5)
        with pytest.raises(InvalidTransitionError):
            order.apply_discount("LATE", Money.of(1, "EGP"))

    def test_no_changes_once_cancelled(self):
        order = _make_order()
        order.cancel("changed my mind")
        with pytest.raises(InvalidTransitionError):
            order.update_item_quantity(order.items[0].id, 5)

    def test_changes_allowed_after_failed_payment(self):
        order = _make_order()
        order.record_payment_failure("Card declined")
        order.update_item_quantity(order.items[0].id, 1)
        assert order.total_amount == Money.of("50.00", "EGP")
