from decimal import Decimal

import pytest

from catalogue.fake_adapter import InMemoryCatalog
from fulfillment.carrier.fake_adapter import FakeCarrier
from inventory.stock.ledger import StockLedger
from notifications.channel.fake_notifier import FakeNotifier
from ordering.cart.cart import Cart
from ordering.cart.management import CartService
from ordering.order.processor import OrderProcessor
from ordering.pricing.coupons import CouponValidator
from ordering.pricing.engine import PricingEngine
from payments.gateway.fake_adapter import FakeGateway
from payments.tax.fake_adapter import FlatRateTax
from shared.address import Address
from shared.money import Money
from shared.repository import InMemoryRepository
from vendors.commission.calculator import CommissionCalculator
from vendors.commission.rates.fake_adapter import InMemoryRateBook


@pytest.fixture
def address():
    return Address(street="12 Tahrir St", city="Cairo", postal_code="11511", country="EG")


@pytest.fixture
def ledger():
    return StockLedger()


@pytest.fixture
def catalog(ledger):
    return InMemoryCatalog(ledger)


@pytest.fixture
def add_product(catalog, ledger):
    """Register a product in the catalogue and enroll it in the stock ledger."""

    def _add(
        product_id,
        price="50.00",
        available=5,
        vendor_id="vendor-1",
        currency="EGP",
        threshold=0,
        allow_backorders=False,
        track_inventory=True,
        category_ids=(),
    ):
        catalog.add_product(
            product_id,
            vendor_id=vendor_id,
            price=Money.of(price, currency),
            category_ids=category_ids,
        )
        ledger.enroll(
            product_id,
            sku=product_id.upper(),
            available=available,
            threshold=threshold,
            allow_backorders=allow_backorders,
            track_inventory=track_inventory,
        )
        return product_id

    return _add


@pytest.fixture
def tax():
    return FlatRateTax()


@pytest.fixture
def carrier():
    return FakeCarrier()


@pytest.fixture
def pricing(tax, carrier):
    return PricingEngine(tax=tax, carrier=carrier)


@pytest.fixture
def coupons():
    return CouponValidator()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def rate_book():
    return InMemoryRateBook(default_rate=Decimal("10.00"))


@pytest.fixture
def commissions(rate_book):
    return CommissionCalculator(rate_book)


@pytest.fixture
def carts():
    return InMemoryRepository(Cart)


@pytest.fixture
def cart_service(catalog, pricing, coupons, carts):
    return CartService(catalog=catalog, pricing=pricing, coupons=coupons, carts=carts)


@pytest.fixture
def processor(ledger, catalog, pricing, coupons, gateway, notifier, commissions, carts):
    return OrderProcessor(
        ledger=ledger,
        catalog=catalog,
        pricing=pricing,
        coupons=coupons,
        gateway=gateway,
        notifier=notifier,
        commissions=commissions,
        carts=carts,
    )


@pytest.fixture
def make_cart(cart_service):
    """Create a saved cart holding ``{product_id: quantity}`` lines."""

    def _make(lines, owner_ref="cust-001", coupon_code=None):
        cart = cart_service.create_cart(owner_ref).cart
        for product_id, quantity in lines.items():
            cart_service.add_item(cart.id, product_id, quantity)
        if coupon_code:
            cart_service.apply_coupon(cart.id, coupon_code)
        return cart_service.get(cart.id)

    return _make


@pytest.fixture
def place_order(processor, make_cart, address):
    """Check out a fresh cart and return the pending order."""

    def _place(lines, payment_method="card", **cart_options):
        cart = make_cart(lines, **cart_options)
        return processor.create_from_cart(cart, address, address, payment_method=payment_method).order

    return _place


@pytest.fixture
def paid_order(processor, place_order):
    def _paid(lines, **options):
        order = place_order(lines, **options)
        return processor.process_payment(order.id).order

    return _paid
