from decimal import Decimal

import pytest

from ordering.order.order import Order
from shared.address import Address
from shared.config import reset_settings
from shared.errors import InvalidTransitionError
from shared.money import Money
from vendors.commission import get_commission_calculator
from vendors.commission.calculator import CommissionCalculator
from vendors.commission.commission import CommissionStatus
from vendors.commission.rates import set_rate_book
from vendors.commission.rates.fake_adapter import InMemoryRateBook


def _item(product_id, vendor_id, price, quantity):
    return {
        "product_id": product_id,
        "vendor_id": vendor_id,
        "product_name": product_id,
        "product_sku": product_id.upper(),
        "quantity": quantity,
        "unit_price": Money.of(price, "EGP"),
    }


@pytest.fixture
def order():
    address = Address(street="5 Corniche", city="Alexandria", postal_code="21500", country="EG")
    order = Order.place(
        order_number="ORD-20260101-ABCDEF12",
        customer_ref="cust-001",
        currency="EGP",
        items=[
            _item("P1", "vendor-1", "50.00", 2),
            _item("P2", "vendor-2", "20.00", 5),
            _item("P3", "vendor-1", "30.00", 1),
        ],
        billing_address=address,
        shipping_address=address,
        tax_amount=Money.of("14.00", "EGP"),
        shipping_amount=Money.of("15.00", "EGP"),
        discount_amount=Money.zero("EGP"),
    )
    order.record_payment_success("txn-1", "card")
    return order


@pytest.fixture
def rate_book():
    return InMemoryRateBook(default_rate=Decimal("10"))


@pytest.fixture
def calculator(rate_book):
    return CommissionCalculator(rate_book, platform_fee_rate=Decimal("1"))


class TestAccrue:
    def test_one_record_per_vendor(self, calculator, order):
        result = calculator.accrue(order)

        by_vendor = {c.vendor_id: c for c in result.commissions}
        assert set(by_vendor) == {"vendor-1", "vendor-2"}
        assert by_vendor["vendor-1"].order_items_amount == Money.of("130.00", "EGP")
        assert by_vendor["vendor-1"].commission_amount == Money.of("13.00", "EGP")
        assert by_vendor["vendor-1"].platform_fee == Money.of("1.30", "EGP")
        assert by_vendor["vendor-2"].commission_amount == Money.of("10.00", "EGP")
        assert len(result.events) == 2

    def test_tax_and_shipping_are_not_commissioned(self, calculator, order):
        result = calculator.accrue(order)

        total_items = Money.total((c.order_items_amount for c in result.commissions), "EGP")
        assert total_items == order.subtotal

    def test_accrual_is_exactly_once(self, calculator, order):
        calculator.accrue(order)
        again = calculator.accrue(order)

        assert again.commissions == []
        assert again.events == []
        assert len(calculator.for_order(order.id)) == 2

    def test_rate_captured_at_accrual(self, calculator, rate_book, order):
        rate_book.set_rate("vendor-2", 20)
        calculator.accrue(order)
        rate_book.set_rate("vendor-2", 5)

        [commission] = calculator.for_vendor("vendor-2")
        assert commission.commission_rate == Decimal("20")
        assert commission.commission_amount == Money.of("20.00", "EGP")

    def test_unpaid_order_is_refused(self, calculator):
        address = Address(street="5 Corniche", city="Alexandria", postal_code="21500", country="EG")
        unpaid = Order.place(
            order_number="ORD-20260101-00000000",
            customer_ref="cust-001",
            currency="EGP",
            items=[_item("P1", "vendor-1", "50.00", 1)],
            billing_address=address,
            shipping_address=address,
            tax_amount=Money.zero("EGP"),
            shipping_amount=Money.zero("EGP"),
            discount_amount=Money.zero("EGP"),
        )

        with pytest.raises(InvalidTransitionError):
            calculator.accrue(unpaid)
        assert calculator.for_order(unpaid.id) == []


class TestStatusChanges:
    def test_approve_and_pay_out(self, calculator, order):
        calculator.accrue(order)

        calculator.approve("vendor-1", order.id)
        result = calculator.mark_paid("vendor-1", order.id, payout_reference="PAYOUT-1")

        [commission] = result.commissions
        assert commission.status == CommissionStatus.PAID.value
        assert calculator.repository.get(commission.id).payout_reference == "PAYOUT-1"

    def test_cancel_for_order_skips_paid(self, calculator, order):
        calculator.accrue(order)
        calculator.approve("vendor-1", order.id)
        calculator.mark_paid("vendor-1", order.id)

        result = calculator.cancel_for_order(order.id, reason="order_cancelled")

        assert [c.vendor_id for c in result.commissions] == ["vendor-2"]
        statuses = {c.vendor_id: c.status for c in calculator.for_order(order.id)}
        assert statuses == {
            "vendor-1": CommissionStatus.PAID.value,
            "vendor-2": CommissionStatus.CANCELLED.value,
        }

    def test_cancel_for_order_without_commissions(self, calculator):
        result = calculator.cancel_for_order("no-such-order", reason="order_cancelled")
        assert result.commissions == []


class TestRegistry:
    def test_calculator_uses_configured_rate_book(self, monkeypatch):
        monkeypatch.setenv("SOUQ_PLATFORM_FEE_RATE", "2.5")
        reset_settings()
        book = InMemoryRateBook(default_rate=Decimal("8"))
        set_rate_book(book)

        calculator = get_commission_calculator()

        assert calculator.rate_book is book
        assert calculator.platform_fee_rate == Decimal("2.5")
        assert get_commission_calculator() is calculator
