"""Commission rate registry.

Provides get_rate_book() / set_rate_book(); defaults to an InMemoryRateBook
seeded with the ``default_commission_rate`` setting.
"""

from shared.config import get_settings

from vendors.commission.rates.fake_adapter import InMemoryRateBook
from vendors.commission.rates.port import CommissionRatePort

_current_rate_book: CommissionRatePort | None = None


def get_rate_book() -> CommissionRatePort:
    global _current_rate_book
    if _current_rate_book is None:
        _current_rate_book = InMemoryRateBook(default_rate=get_settings().default_commission_rate)
    return _current_rate_book


def set_rate_book(rate_book: CommissionRatePort) -> None:
    """Override the active rate book (useful for tests)."""
    global _current_rate_book
    _current_rate_book = rate_book


def reset_rate_book() -> None:
    global _current_rate_book
    _current_rate_book = None
