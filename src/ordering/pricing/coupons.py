"""Coupons — the Coupon aggregate and the validator that prices it.

A coupon is a code-based discount rule. It is checked, in order, for being
active, inside its validity window, under its global and per-customer usage
limits, applicable to at least one line, and above its minimum amount. The
first unmet condition is reported by name in CouponNotApplicableError.

Discounts:
    fixed          min(value, eligible subtotal)
    percentage     eligible subtotal * value / 100, capped at maximum_discount
    free shipping  no discount; the shipping amount is zeroed instead
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

import structlog
from pydantic import Field

from shared.aggregate import Aggregate, DomainEvent, utcnow
from shared.errors import CouponNotApplicableError, InvalidCouponError, ObjectNotFoundError
from shared.lines import PricedLine
from shared.money import Money
from shared.repository import InMemoryRepository

logger = structlog.get_logger(__name__)


class CouponKind(Enum):
    FIXED = "Fixed"
    PERCENTAGE = "Percentage"
    FREE_SHIPPING = "Free_Shipping"


class CouponRedeemed(DomainEvent):
    coupon_code: str
    customer_ref: str
    order_id: str
    used_count: int


class CouponRedemptionReleased(DomainEvent):
    coupon_code: str
    customer_ref: str
    order_id: str
    used_count: int


class Coupon(Aggregate):
    """``id`` is the normalized (upper-case) coupon code."""

    kind: CouponKind
    value: Decimal = Field(default=Decimal(0), ge=0)
    currency: str | None = None  # required for fixed-amount coupons
    maximum_discount: Decimal | None = Field(default=None, ge=0)
    minimum_amount: Decimal | None = Field(default=None, ge=0)
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = Field(default=None, ge=0)
    per_customer_limit: int | None = Field(default=None, ge=0)
    used_count: int = Field(default=0, ge=0)
    usage_by_customer: dict[str, int] = Field(default_factory=dict)
    redeemed_orders: list[str] = Field(default_factory=list)
    product_ids: list[str] = Field(default_factory=list)
    category_ids: list[str] = Field(default_factory=list)
    active: bool = True

    @classmethod
    def create(cls, code: str, kind: CouponKind, value=0, **options) -> "Coupon":
        return cls(id=code.strip().upper(), kind=kind, value=Decimal(str(value)), **options)

    @property
    def code(self) -> str:
        return self.id

    def applies_to(self, line: PricedLine) -> bool:
        if not self.product_ids and not self.category_ids:
            return True
        if line.product_id in self.product_ids:
            return True
        return any(category in self.category_ids for category in line.category_ids)

    def uses_by(self, customer_ref: str) -> int:
        return self.usage_by_customer.get(customer_ref, 0)

    def limit_reached(self, customer_ref: str) -> str | None:
        """Name of the usage limit that blocks another redemption, if any."""
        if self.usage_limit is not None and self.used_count >= self.usage_limit:
            return "usage_limit"
        if self.per_customer_limit is not None and self.uses_by(customer_ref) >= self.per_customer_limit:
            return "per_customer_limit"
        return None

    def record_usage(self, customer_ref: str, order_id: str) -> bool:
        """Count one redemption. An order is only ever counted once.

        Raises CouponNotApplicableError if a usage limit is already used up.
        """
        if order_id in self.redeemed_orders:
            return False
        exhausted = self.limit_reached(customer_ref)
        if exhausted is not None:
            raise CouponNotApplicableError(self.code, exhausted, f"Coupon {self.code} has no redemptions left")
        self.used_count += 1
        self.usage_by_customer = {**self.usage_by_customer, customer_ref: self.uses_by(customer_ref) + 1}
        self.redeemed_orders = [*self.redeemed_orders, order_id]
        self.raise_(
            CouponRedeemed(
                coupon_code=self.code,
                customer_ref=customer_ref,
                order_id=order_id,
                used_count=self.used_count,
            )
        )
        return True

    def release_usage(self, customer_ref: str, order_id: str) -> bool:
        """Give back the redemption counted for ``order_id``. False if none was counted."""
        if order_id not in self.redeemed_orders:
            return False
        self.used_count -= 1
        usage = dict(self.usage_by_customer)
        remaining = self.uses_by(customer_ref) - 1
        if remaining > 0:
            usage[customer_ref] = remaining
        else:
            usage.pop(customer_ref, None)
        self.usage_by_customer = usage
        self.redeemed_orders = [o for o in self.redeemed_orders if o != order_id]
        self.raise_(
            CouponRedemptionReleased(
                coupon_code=self.code,
                customer_ref=customer_ref,
                order_id=order_id,
                used_count=self.used_count,
            )
        )
        return True


@dataclass(frozen=True)
class CouponQuote:
    code: str
    discount: Money
    free_shipping: bool = False


class CouponValidator:
    def __init__(self, repository: InMemoryRepository[Coupon] | None = None):
        self.repository = repository if repository is not None else InMemoryRepository(Coupon)
        self._usage_lock = threading.Lock()

    def _load(self, code: str) -> Coupon:
        try:
            return self.repository.get(code.strip().upper())
        except ObjectNotFoundError:
            raise InvalidCouponError(code, f"Coupon {code} does not exist") from None

    def validate(
        self,
        code: str,
        lines: list[PricedLine],
        customer_ref: str,
        currency: str,
        now: datetime | None = None,
    ) -> CouponQuote:
        now = now or utcnow()
        coupon = self._load(code)

        def fail(condition: str, message: str):
            logger.info("Coupon rejected", coupon_code=coupon.code, condition=condition)
            raise CouponNotApplicableError(coupon.code, condition, message)

        if not coupon.active:
            fail("inactive", f"Coupon {coupon.code} is no longer active")
        if coupon.starts_at is not None and now < coupon.starts_at:
            fail("not_started", f"Coupon {coupon.code} is not valid before {coupon.starts_at.isoformat()}")
        if coupon.expires_at is not None and now > coupon.expires_at:
            fail("expired", f"Coupon {coupon.code} expired on {coupon.expires_at.isoformat()}")
        exhausted = coupon.limit_reached(customer_ref)
        if exhausted == "usage_limit":
            fail("usage_limit", f"Coupon {coupon.code} has reached its usage limit")
        if exhausted == "per_customer_limit":
            fail("per_customer_limit", f"Coupon {coupon.code} has already been used the maximum number of times")
        if coupon.currency is not None and coupon.currency.upper() != currency.upper():
            fail("currency", f"Coupon {coupon.code} is only valid for {coupon.currency} orders")

        eligible = [line for line in lines if coupon.applies_to(line)]
        if not eligible:
            fail("applicability", f"Coupon {coupon.code} does not apply to any item in the cart")

        subtotal = Money.total((line.line_total for line in lines), currency)
        if coupon.minimum_amount is not None and subtotal.amount < coupon.minimum_amount:
            fail(
                "minimum_amount",
                f"Coupon {coupon.code} requires a minimum of {coupon.minimum_amount} {currency}",
            )

        base = Money.total((line.line_total for line in eligible), currency)
        kind = CouponKind(coupon.kind)
        if kind == CouponKind.FREE_SHIPPING:
            return CouponQuote(code=coupon.code, discount=Money.zero(currency), free_shipping=True)

        if kind == CouponKind.FIXED:
            discount = Money.of(coupon.value, currency).min(base)
        else:
            discount = base.percentage(coupon.value)
            if coupon.maximum_discount is not None:
                discount = discount.min(Money.of(coupon.maximum_discount, currency))

        return CouponQuote(code=coupon.code, discount=discount)

    def validate_cart(self, code: str, cart, now: datetime | None = None) -> CouponQuote:
        return self.validate(code, cart.priced_lines(), cart.owner_ref, cart.currency, now=now)

    def record_usage(self, code: str, customer_ref: str, order_id: str) -> list[DomainEvent]:
        """Claim one redemption for ``order_id``.

        Raises CouponNotApplicableError when the coupon's global or
        per-customer limit is already used up. Claiming again for the same
        order is a no-op.
        """
        with self._usage_lock:
            coupon = self._load(code)
            try:
                counted = coupon.record_usage(customer_ref, order_id)
            except CouponNotApplicableError as e:
                logger.info(
                    "Coupon redemption refused", coupon_code=coupon.code, order_id=order_id, condition=e.condition
                )
                raise
            if not counted:
                return []
            self.repository.add(coupon)
        logger.info("Coupon redeemed", coupon_code=coupon.code, order_id=order_id, used_count=coupon.used_count)
        return coupon.collect_events()

    def release_usage(self, code: str, customer_ref: str, order_id: str) -> list[DomainEvent]:
        """Return a redemption claimed for an order whose payment didn't complete."""
        with self._usage_lock:
            coupon = self._load(code)
            if not coupon.release_usage(customer_ref, order_id):
                return []
            self.repository.add(coupon)
        logger.info("Coupon redemption released", coupon_code=coupon.code, order_id=order_id)
        return coupon.collect_events()
