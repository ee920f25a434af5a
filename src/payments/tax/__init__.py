"""Tax adapter registry."""

from shared.config import get_settings

from payments.tax.fake_adapter import FlatRateTax
from payments.tax.port import TaxPort

_current_tax: TaxPort | None = None


def get_tax() -> TaxPort:
    """Return the configured tax adapter. Defaults to a zero-rate FlatRateTax."""
    global _current_tax
    if _current_tax is None:
        adapter = get_settings().tax_adapter
        if adapter != "fake":
            raise ValueError(f"Unknown tax adapter: {adapter}")
        _current_tax = FlatRateTax()
    return _current_tax


def set_tax(tax: TaxPort) -> None:
    global _current_tax
    _current_tax = tax


def reset_tax() -> None:
    global _current_tax
    _current_tax = None
