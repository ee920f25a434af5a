"""Stock ledger registry.

Provides get_ledger() / set_ledger() so every service in the process
reserves against the same ledger.
"""

from datetime import timedelta

from shared.config import get_settings

from inventory.stock.ledger import StockLedger

_current_ledger: StockLedger | None = None


def get_ledger() -> StockLedger:
    """Return the process-wide ledger, creating it on first use."""
    global _current_ledger
    if _current_ledger is None:
        ttl = timedelta(minutes=get_settings().reservation_ttl_minutes)
        _current_ledger = StockLedger(reservation_ttl=ttl)
    return _current_ledger


def set_ledger(ledger: StockLedger) -> None:
    global _current_ledger
    _current_ledger = ledger


def reset_ledger() -> None:
    global _current_ledger
    _current_ledger = None
