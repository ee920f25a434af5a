"""Checkout wiring — builds the cart service and order processor.

This is the one place that reads the adapter registries. Everything it
builds receives its collaborators through the constructor, so tests can
build their own instances without touching any global.

The cart and order repositories are shared between the two services: the
processor converts carts the cart service saved.
"""

from datetime import timedelta

from catalogue import get_catalog
from catalogue.fake_adapter import InMemoryCatalog
from fulfillment.carrier import get_carrier
from inventory.stock import get_ledger
from notifications.channel import get_notifier
from payments.gateway import get_gateway
from payments.tax import get_tax
from shared.config import get_settings
from shared.repository import InMemoryRepository
from vendors.commission import get_commission_calculator

from ordering.cart.cart import Cart
from ordering.cart.management import CartService
from ordering.order.order import Order
from ordering.order.processor import OrderProcessor
from ordering.pricing import get_coupon_validator
from ordering.pricing.engine import PricingEngine

_carts: InMemoryRepository[Cart] | None = None
_orders: InMemoryRepository[Order] | None = None


def get_cart_repository() -> InMemoryRepository[Cart]:
    global _carts
    if _carts is None:
        _carts = InMemoryRepository(Cart)
    return _carts


def get_order_repository() -> InMemoryRepository[Order]:
    global _orders
    if _orders is None:
        _orders = InMemoryRepository(Order)
    return _orders


def reset_repositories() -> None:
    global _carts, _orders
    _carts = None
    _orders = None


def _catalog():
    catalog = get_catalog()
    if isinstance(catalog, InMemoryCatalog) and catalog.ledger is None:
        catalog.attach_ledger(get_ledger())
    return catalog


def build_pricing_engine() -> PricingEngine:
    return PricingEngine(tax=get_tax(), carrier=get_carrier())


def build_cart_service() -> CartService:
    settings = get_settings()
    return CartService(
        catalog=_catalog(),
        pricing=build_pricing_engine(),
        coupons=get_coupon_validator(),
        carts=get_cart_repository(),
        default_currency=settings.default_currency,
        cart_ttl=timedelta(hours=settings.cart_ttl_hours),
    )


def build_order_processor() -> OrderProcessor:
    return OrderProcessor(
        ledger=get_ledger(),
        catalog=_catalog(),
        pricing=build_pricing_engine(),
        coupons=get_coupon_validator(),
        gateway=get_gateway(),
        notifier=get_notifier(),
        commissions=get_commission_calculator(),
        orders=get_order_repository(),
        carts=get_cart_repository(),
        order_number_prefix=get_settings().order_number_prefix,
    )
