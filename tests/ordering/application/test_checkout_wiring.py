"""The checkout builders share one ledger, catalogue, coupon book and repositories."""

from datetime import timedelta

from catalogue import get_catalog, set_catalog
from catalogue.fake_adapter import InMemoryCatalog
from fulfillment.carrier.fake_adapter import FakeCarrier
from inventory.stock import get_ledger
from inventory.stock.ledger import StockLedger
from inventory.stock.stock import StockItem
from notifications.channel.fake_notifier import FakeNotifier
from ordering.cart.cart import CartStatus
from ordering.checkout import build_cart_service, build_order_processor, get_cart_repository, get_order_repository
from ordering.order.order import Order
from ordering.order.processor import OrderProcessor
from ordering.order.status import OrderStatus
from ordering.pricing import get_coupon_validator
from ordering.pricing.coupons import Coupon, CouponValidator
from ordering.pricing.engine import PricingEngine
from payments.gateway.fake_adapter import FakeGateway
from payments.tax.fake_adapter import FlatRateTax
from shared.address import Address
from shared.config import reset_settings
from shared.money import Money
from shared.repository import InMemoryRepository
from vendors.commission import get_commission_calculator
from vendors.commission.calculator import CommissionCalculator
from vendors.commission.commission import VendorCommission


def _address():
    return Address(street="1 Nile Corniche", city="Cairo", postal_code="11511", country="EG")


class TestCheckoutWiring:
    def test_services_share_collaborators(self):
        carts = build_cart_service()
        processor = build_order_processor()

        assert processor.carts is carts.carts is get_cart_repository()
        assert processor.orders is get_order_repository()
        assert processor.ledger is get_ledger()
        assert processor.catalog is carts.catalog is get_catalog()
        assert processor.coupons is carts.coupons is get_coupon_validator()
        assert processor.commissions is get_commission_calculator()

    def test_catalogue_reads_the_shared_ledger(self):
        build_cart_service()
        assert get_catalog().ledger is get_ledger()

    def test_replaced_catalogue_gets_the_shared_ledger(self):
        catalog = InMemoryCatalog()
        set_catalog(catalog)

        processor = build_order_processor()

        assert processor.catalog is catalog
        assert catalog.ledger is get_ledger()

    def test_settings_flow_into_services(self, monkeypatch):
        monkeypatch.setenv("SOUQ_DEFAULT_CURRENCY", "USD")
        monkeypatch.setenv("SOUQ_ORDER_NUMBER_PREFIX", "SQ")
        monkeypatch.setenv("SOUQ_RESERVATION_TTL_MINUTES", "5")
        monkeypatch.setenv("SOUQ_CART_TTL_HOURS", "2")
        reset_settings()

        carts = build_cart_service()
        processor = build_order_processor()

        assert carts.default_currency == "USD"
        assert carts.cart_ttl == timedelta(hours=2)
        assert processor.order_number_prefix == "SQ"
        assert processor.ledger.reservation_ttl == timedelta(minutes=5)

    def test_end_to_end_through_built_services(self):
        catalog = get_catalog()
        catalog.add_product("P1", vendor_id="vendor-1", price=Money.of("50.00", "EGP"))
        get_ledger().enroll("P1", sku="P1", available=5)

        carts = build_cart_service()
        cart = carts.create_cart("cust-001").cart
        carts.add_item(cart.id, "P1", 2)

        processor = build_order_processor()
        order = processor.create_from_cart(carts.get(cart.id), _address(), _address(), payment_method="card").order
        confirmed = processor.process_payment(order.id).order

        assert confirmed.status == OrderStatus.CONFIRMED.value
        assert confirmed.order_number.startswith("ORD-")
        assert get_ledger().levels("P1").available == 3
        assert len(get_commission_calculator().for_order(order.id)) == 1


class TestInjectedRepositories:
    def test_empty_repositories_are_used_as_given(self, carts, cart_service, processor):
        assert len(carts) == 0
        assert cart_service.carts is carts
        assert processor.carts is carts

    def test_every_service_keeps_an_empty_repository(self, rate_book):
        stock = InMemoryRepository(StockItem)
        coupon_book = InMemoryRepository(Coupon)
        commission_book = InMemoryRepository(VendorCommission)
        orders = InMemoryRepository(Order)

        ledger = StockLedger(repository=stock)
        coupons = CouponValidator(repository=coupon_book)
        commissions = CommissionCalculator(rate_book, repository=commission_book)
        processor = OrderProcessor(
            ledger=ledger,
            catalog=InMemoryCatalog(ledger),
            pricing=PricingEngine(tax=FlatRateTax(), carrier=FakeCarrier()),
            coupons=coupons,
            gateway=FakeGateway(),
            notifier=FakeNotifier(),
            commissions=commissions,
            orders=orders,
        )

        assert ledger.repository is stock
        assert coupons.repository is coupon_book
        assert commissions.repository is commission_book
        assert processor.orders is orders

    def test_cart_saved_by_one_service_is_converted_by_the_other(self, add_product, make_cart, processor, address):
        add_product("P1")
        cart = make_cart({"P1": 1})

        order = processor.create_from_cart(cart, address, address).order

        assert processor.carts.get(cart.id).status == CartStatus.CONVERTED.value
        assert processor.get(order.id).cart_id == cart.id
