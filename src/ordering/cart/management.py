"""Cart management — the application service in front of the Cart aggregate.

Handles cart creation, line changes, coupons, totals and abandonment. Every
mutating call loads the cart, mutates it and saves it against the version
it was loaded at, then returns the cart with the events it raised.

A coupon stays quoted against the current lines: after every line change
the discount is recomputed, and a coupon the cart no longer qualifies for
is dropped with the unmet condition as the reason.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog

from catalogue.port import CatalogPort
from shared.address import Address
from shared.aggregate import DomainEvent, utcnow
from shared.errors import ConcurrentModificationError, CouponNotApplicableError, InvalidCouponError
from shared.money import Money
from shared.repository import InMemoryRepository

from ordering.cart.cart import DEFAULT_CART_TTL, Cart, CartStatus
from ordering.pricing.coupons import CouponValidator
from ordering.pricing.engine import PriceBreakdown, PricingEngine

logger = structlog.get_logger(__name__)


@dataclass
class CartResult:
    cart: Cart
    events: list[DomainEvent] = field(default_factory=list)


class CartService:
    def __init__(
        self,
        catalog: CatalogPort,
        pricing: PricingEngine,
        coupons: CouponValidator,
        carts: InMemoryRepository[Cart] | None = None,
        default_currency: str = "EGP",
        cart_ttl: timedelta = DEFAULT_CART_TTL,
    ):
        self.catalog = catalog
        self.pricing = pricing
        self.coupons = coupons
        self.carts = carts if carts is not None else InMemoryRepository(Cart)
        self.default_currency = default_currency
        self.cart_ttl = cart_ttl

    def get(self, cart_id: str) -> Cart:
        return self.carts.get(cart_id)

    def _save(self, cart: Cart) -> CartResult:
        self.carts.add(cart)
        return CartResult(cart=cart, events=cart.collect_events())

    def _requote_coupon(self, cart: Cart) -> None:
        if cart.coupon_code is None:
            return
        if not cart.items:
            cart.remove_coupon(reason="cart_emptied")
            return
        try:
            quote = self.coupons.validate_cart(cart.coupon_code, cart)
        except CouponNotApplicableError as e:
            logger.info(
                "Coupon no longer applies", cart_id=cart.id, coupon_code=cart.coupon_code, condition=e.condition
            )
            cart.remove_coupon(reason=e.condition)
            return
        except InvalidCouponError:
            cart.remove_coupon(reason="invalid")
            return
        if quote.discount != cart.discount or quote.free_shipping != cart.free_shipping:
            cart.apply_coupon(quote.code, quote.discount, quote.free_shipping)

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    def create_cart(self, owner_ref: str, currency: str | None = None, is_guest: bool = False) -> CartResult:
        cart = Cart.create(owner_ref, currency or self.default_currency, is_guest=is_guest, ttl=self.cart_ttl)
        result = self._save(cart)
        logger.info("Cart created", cart_id=cart.id, owner_ref=owner_ref, is_guest=is_guest)
        return result

    def start_cart(
        self,
        owner_ref: str,
        product_id: str,
        quantity: int,
        attributes: dict | None = None,
        currency: str | None = None,
        is_guest: bool = False,
    ) -> CartResult:
        """Open a cart holding its first line. Nothing is saved if the line is refused."""
        snapshot = self.catalog.get_product_snapshot(product_id)
        cart = Cart.create(owner_ref, currency or self.default_currency, is_guest=is_guest, ttl=self.cart_ttl)
        cart.add_item(snapshot, quantity, attributes)
        result = self._save(cart)
        logger.info("Cart created", cart_id=cart.id, owner_ref=owner_ref, is_guest=is_guest, product_id=product_id)
        return result

    def add_item(self, cart_id: str, product_id: str, quantity: int, attributes: dict | None = None) -> CartResult:
        cart = self.carts.get(cart_id)
        snapshot = self.catalog.get_product_snapshot(product_id)
        cart.add_item(snapshot, quantity, attributes)
        self._requote_coupon(cart)
        result = self._save(cart)
        logger.info("Item added to cart", cart_id=cart_id, product_id=product_id, quantity=quantity)
        return result

    def update_item_quantity(self, cart_id: str, line_id: str, quantity: int) -> CartResult:
        cart = self.carts.get(cart_id)
        snapshot = None
        if quantity > 0:
            snapshot = self.catalog.get_product_snapshot(cart.line(line_id).product_id)
        cart.update_item_quantity(line_id, quantity, snapshot)
        self._requote_coupon(cart)
        return self._save(cart)

    def remove_item(self, cart_id: str, line_id: str) -> CartResult:
        cart = self.carts.get(cart_id)
        cart.remove_item(line_id)
        self._requote_coupon(cart)
        return self._save(cart)

    def apply_coupon(self, cart_id: str, code: str) -> CartResult:
        """Price ``code`` against the cart. Raises InvalidCouponError if it doesn't qualify."""
        cart = self.carts.get(cart_id)
        quote = self.coupons.validate_cart(code, cart)
        cart.apply_coupon(quote.code, quote.discount, quote.free_shipping)
        result = self._save(cart)
        logger.info("Coupon applied", cart_id=cart_id, coupon_code=quote.code, discount=str(quote.discount))
        return result

    def remove_coupon(self, cart_id: str) -> CartResult:
        cart = self.carts.get(cart_id)
        cart.remove_coupon()
        return self._save(cart)

    def abandon(self, cart_id: str) -> CartResult:
        cart = self.carts.get(cart_id)
        cart.abandon()
        return self._save(cart)

    def abandon_expired_carts(self, now: datetime | None = None) -> list[CartResult]:
        """Flag active carts idle past their expiry as abandoned."""
        now = now or utcnow()
        logger.info("Checking for abandoned carts", as_of=now.isoformat())

        expired = self.carts.find(lambda c: CartStatus(c.status) == CartStatus.ACTIVE and c.is_expired(now))
        if not expired:
            logger.info("No abandoned carts found")
            return []

        results = []
        for cart in expired:
            cart.abandon()
            try:
                results.append(self._save(cart))
            except ConcurrentModificationError as e:
                # Changed since the scan; the next sweep looks at it again.
                logger.warning("Cart not abandoned", cart_id=cart.id, error=str(e))
        logger.info(
            "Abandoned cart sweep complete",
            abandoned_count=len(results),
            skipped_count=len(expired) - len(results),
        )
        return results

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def compute_totals(
        self,
        cart_id: str,
        destination: Address | None = None,
        shipping_method: str = "standard",
    ) -> PriceBreakdown:
        """Subtotal, tax, shipping, discount and total for the cart as it stands."""
        cart = self.carts.get(cart_id)
        discount = cart.discount if cart.coupon_code and cart.discount else Money.zero(cart.currency)
        return self.pricing.compute_totals(
            cart.priced_lines(),
            cart.currency,
            destination=destination,
            shipping_method=shipping_method,
            discount=discount,
            free_shipping=cart.free_shipping,
        )
