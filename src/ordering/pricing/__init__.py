"""Coupon validator registry; one coupon book per process."""

from ordering.pricing.coupons import CouponValidator

_current_validator: CouponValidator | None = None


def get_coupon_validator() -> CouponValidator:
    global _current_validator
    if _current_validator is None:
        _current_validator = CouponValidator()
    return _current_validator


def set_coupon_validator(validator: CouponValidator) -> None:
    global _current_validator
    _current_validator = validator


def reset_coupon_validator() -> None:
    global _current_validator
    _current_validator = None
