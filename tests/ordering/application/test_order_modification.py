import pytest

from ordering.order.events import OrderItemQuantityChanged, OrderItemRemoved, OrderRepriced
from ordering.pricing.coupons import Coupon, CouponKind
from shared.errors import InsufficientStockError, InvalidTransitionError, ValidationError
from shared.money import Money


class TestChangeItemQuantity:
    def test_increase_moves_reservation(self, processor, add_product, place_order, ledger):
        add_product("P1", price="50.00", available=5)
        order = place_order({"P1": 2})
        item = order.items[0]

        result = processor.change_item_quantity(order.id, item.id, 4)

        assert result.order.items[0].quantity == 4
        assert result.order.subtotal == Money.of("200.00", "EGP")
        assert result.order.total_amount == Money.of("200.00", "EGP")
        assert result.order.items[0].reservation_id != item.reservation_id
        assert ledger.levels("P1").reserved == 4

        changed = next(e for e in result.events if isinstance(e, OrderItemQuantityChanged))
        assert changed.previous_quantity == 2
        assert changed.new_quantity == 4
        assert any(isinstance(e, OrderRepriced) for e in result.events)

    def test_decrease_frees_units(self, processor, add_product, place_order, ledger):
        add_product("P1", available=5)
        order = place_order({"P1": 3})

        processor.change_item_quantity(order.id, order.items[0].id, 1)

        assert ledger.levels("P1").reserved == 1
        assert ledger.available_to_reserve("P1") == 4

    def test_increase_beyond_stock_is_refused(self, processor, add_product, place_order, ledger):
        add_product("P1", available=3)
        order = place_order({"P1": 2})

        with pytest.raises(InsufficientStockError):
            processor.change_item_quantity(order.id, order.items[0].id, 5)

        stored = processor.get(order.id)
        assert stored.items[0].quantity == 2
        assert stored.subtotal == Money.of("100.00", "EGP")

    def test_order_still_payable_after_refused_change(self, processor, add_product, place_order, ledger):
        add_product("P1", available=3)
        order = place_order({"P1": 2})
        with pytest.raises(InsufficientStockError):
            processor.change_item_quantity(order.id, order.items[0].id, 5)

        processor.process_payment(order.id)

        assert ledger.levels("P1").available == 1
        assert ledger.levels("P1").reserved == 0

    def test_coupon_requoted_on_change(self, processor, add_product, place_order, coupons):
        coupons.repository.add(Coupon.create("SAVE10", CouponKind.PERCENTAGE, 10, maximum_discount=20))
        add_product("P1", price="50.00", available=10)
        order = place_order({"P1": 2}, coupon_code="SAVE10")
        assert order.discount_amount == Money.of("10.00", "EGP")

        result = processor.change_item_quantity(order.id, order.items[0].id, 6)

        assert result.order.discount_amount == Money.of("20.00", "EGP")
        assert result.order.total_amount == Money.of("280.00", "EGP")

    def test_coupon_dropped_when_no_longer_met(self, processor, add_product, place_order, coupons):
        coupons.repository.add(Coupon.create("BIG", CouponKind.FIXED, 25, currency="EGP", minimum_amount=100))
        add_product("P1", price="50.00")
        order = place_order({"P1": 2}, coupon_code="BIG")

        result = processor.change_item_quantity(order.id, order.items[0].id, 1)

        assert result.order.coupon_code is None
        assert result.order.discount_amount == Money.zero("EGP")
        assert result.order.total_amount == Money.of("50.00", "EGP")

    def test_zero_quantity_is_rejected(self, processor, add_product, place_order, ledger):
        add_product("P1")
        order = place_order({"P1": 2})

        with pytest.raises(ValidationError):
            processor.change_item_quantity(order.id, order.items[0].id, 0)
        assert ledger.levels("P1").reserved == 2

    def test_paid_order_cannot_be_modified(self, processor, add_product, paid_order):
        add_product("P1")
        order = paid_order({"P1": 1})

        with pytest.raises(InvalidTransitionError):
            processor.change_item_quantity(order.id, order.items[0].id, 2)


class TestRemoveItem:
    def test_remove_releases_the_line(self, processor, add_product, place_order, ledger):
        add_product("P1", price="50.00")
        add_product("P2", price="30.00")
        order = place_order({"P1": 1, "P2": 2})
        p2 = next(item for item in order.items if item.product_id == "P2")

        result = processor.remove_item(order.id, p2.id)

        assert [item.product_id for item in result.order.items] == ["P1"]
        assert result.order.total_amount == Money.of("50.00", "EGP")
        assert ledger.levels("P2").reserved == 0
        assert ledger.levels("P1").reserved == 1
        assert any(isinstance(e, OrderItemRemoved) for e in result.events)

    def test_last_item_cannot_be_removed(self, processor, add_product, place_order, ledger):
        add_product("P1")
        order = place_order({"P1": 1})

        with pytest.raises(ValidationError):
            processor.remove_item(order.id, order.items[0].id)
        assert ledger.levels("P1").reserved == 1

    def test_unknown_item(self, processor, add_product, place_order):
        add_product("P1")
        add_product("P2")
        order = place_order({"P1": 1, "P2": 1})

        with pytest.raises(ValidationError):
            processor.remove_item(order.id, "missing")
