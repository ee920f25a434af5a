"""Application tests for checkout: cart → pending order with reserved stock."""

import pytest

from ordering.cart.cart import CartStatus
from ordering.cart.events import CartConverted
from ordering.order.events import OrderPlaced
from ordering.order.status import OrderStatus, PaymentStatus
from ordering.pricing.coupons import Coupon, CouponKind
from shared.errors import (
    ConcurrentModificationError,
    CouponNotApplicableError,
    EmptyCartError,
    InsufficientStockError,
    InvalidTransitionError,
)
from shared.money import Money


class TestCreateFromCart:
    def test_single_line_checkout(self, processor, add_product, make_cart, address, ledger):
        add_product("P1", price="50.00", available=5)
        cart = make_cart({"P1": 2})

        result = processor.create_from_cart(cart, address, address, payment_method="card")
        order = result.order

        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.subtotal == Money.of("100.00", "EGP")
        assert order.total_amount == Money.of("100.00", "EGP")
        assert ledger.levels("P1").reserved == 2
        assert order.items[0].reservation_id is not None
        assert [type(e) for e in result.events] == [OrderPlaced, CartConverted]

    def test_order_is_persisted_and_cart_converted(self, processor, add_product, make_cart, address, carts):
        add_product("P1")
        cart = make_cart({"P1": 1})

        order = processor.create_from_cart(cart, address, address).order

        assert processor.get(order.id).order_number == order.order_number
        assert processor.find_by_number(order.order_number).id == order.id
        assert carts.get(cart.id).status == CartStatus.CONVERTED.value

    def test_insufficient_stock_reserves_nothing(self, processor, add_product, make_cart, address, ledger):
        add_product("P1", price="50.00", available=5)
        cart = make_cart({"P1": 2})
        ledger.commit(ledger.reserve("P1", 4))

        with pytest.raises(InsufficientStockError) as exc_info:
            processor.create_from_cart(cart, address, address)

        assert exc_info.value.product_id == "P1"
        assert ledger.levels("P1").reserved == 0
        assert len(processor.orders) == 0

    def test_all_or_nothing_across_lines(self, processor, add_product, make_cart, address, ledger):
        add_product("P1", available=5)
        add_product("P2", available=5)
        add_product("P3", available=5)
        cart = make_cart({"P1": 1, "P2": 2, "P3": 3})
        ledger.reserve("P3", 4)

        with pytest.raises(InsufficientStockError) as exc_info:
            processor.create_from_cart(cart, address, address)

        assert exc_info.value.product_id == "P3"
        assert ledger.levels("P1").reserved == 0
        assert ledger.levels("P2").reserved == 0
        assert ledger.levels("P3").reserved == 4

    def test_empty_cart(self, processor, cart_service, address):
        cart = cart_service.create_cart("cust-001").cart
        with pytest.raises(EmptyCartError):
            processor.create_from_cart(cart, address, address)

    def test_converted_cart_cannot_check_out_again(self, processor, add_product, make_cart, address, carts):
        add_product("P1")
        cart = make_cart({"P1": 1})
        processor.create_from_cart(cart, address, address)

        with pytest.raises(InvalidTransitionError):
            processor.create_from_cart(carts.get(cart.id), address, address)

    def test_concurrent_checkout_of_same_cart(self, processor, add_product, make_cart, address, carts, ledger):
        add_product("P1", available=5)
        cart = make_cart({"P1": 2})
        twin = carts.get(cart.id)
        processor.create_from_cart(cart, address, address)

        with pytest.raises(ConcurrentModificationError):
            processor.create_from_cart(twin, address, address)
        assert ledger.levels("P1").reserved == 2


class TestLivePricing:
    def test_prices_come_from_the_catalogue(self, processor, add_product, make_cart, address, catalog):
        add_product("P1", price="50.00")
        cart = make_cart({"P1": 2})
        catalog.set_price("P1", Money.of("60.00", "EGP"))

        order = processor.create_from_cart(cart, address, address).order

        assert order.items[0].unit_price == Money.of("60.00", "EGP")
        assert order.subtotal == Money.of("120.00", "EGP")

    def test_tax_and_shipping(self, processor, add_product, make_cart, address, tax, carrier):
        tax.configure(rate=14)
        carrier.configure(rates={"standard": "15", "express": "30"})
        add_product("P1", vendor_id="vendor-1")
        add_product("P2", vendor_id="vendor-2", price="25.00")
        cart = make_cart({"P1": 2, "P2": 2})

        order = processor.create_from_cart(cart, address, address, shipping_method="express").order

        assert order.subtotal == Money.of("150.00", "EGP")
        assert order.tax_amount == Money.of("21.00", "EGP")
        assert order.shipping_amount == Money.of("60.00", "EGP")
        assert order.total_amount == Money.of("231.00", "EGP")

    def test_percentage_coupon(self, processor, add_product, make_cart, address, coupons):
        coupons.repository.add(
            Coupon.create("SAVE10", CouponKind.PERCENTAGE, 10, maximum_discount=20)
        )
        add_product("P1", price="50.00")
        cart = make_cart({"P1": 2}, coupon_code="SAVE10")

        order = processor.create_from_cart(cart, address, address).order

        assert order.coupon_code == "SAVE10"
        assert order.discount_amount == Money.of("10.00", "EGP")
        assert order.total_amount == Money.of("90.00", "EGP")

    def test_coupon_revalidated_at_checkout(self, processor, add_product, make_cart, address, coupons, ledger):
        coupons.repository.add(Coupon.create("SAVE10", CouponKind.PERCENTAGE, 10, usage_limit=1))
        add_product("P1")
        cart = make_cart({"P1": 1}, coupon_code="SAVE10")
        coupons.record_usage("SAVE10", "someone-else", "order-x")

        with pytest.raises(CouponNotApplicableError):
            processor.create_from_cart(cart, address, address)
        assert ledger.levels("P1").reserved == 0

    def test_untracked_product_needs_no_ledger_entry(self, processor, catalog, make_cart, address):
        catalog.add_product("GIFT", vendor_id="vendor-1", price=Money.of("5", "EGP"), track_inventory=False)
        cart = make_cart({"GIFT": 3})

        order = processor.create_from_cart(cart, address, address).order

        assert order.items[0].reservation_id is None
        assert order.total_amount == Money.of("15", "EGP")
