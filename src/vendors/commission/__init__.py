"""Commission calculator registry.

The calculator is built from the active rate book and the
``platform_fee_rate`` setting on first use.
"""

from shared.config import get_settings

from vendors.commission.calculator import CommissionCalculator
from vendors.commission.rates import get_rate_book

_current_calculator: CommissionCalculator | None = None


def get_commission_calculator() -> CommissionCalculator:
    global _current_calculator
    if _current_calculator is None:
        _current_calculator = CommissionCalculator(
            rate_book=get_rate_book(),
            platform_fee_rate=get_settings().platform_fee_rate,
        )
    return _current_calculator


def set_commission_calculator(calculator: CommissionCalculator) -> None:
    global _current_calculator
    _current_calculator = calculator


def reset_commission_calculator() -> None:
    global _current_calculator
    _current_calculator = None
