"""In-memory rate book with a marketplace-wide default."""

from decimal import Decimal

from vendors.commission.rates.port import CommissionRatePort


class InMemoryRateBook(CommissionRatePort):
    def __init__(self, default_rate: Decimal = Decimal("10.00"), rates: dict[str, Decimal] | None = None):
        self.default_rate = Decimal(str(default_rate))
        self.rates = {vendor: Decimal(str(rate)) for vendor, rate in (rates or {}).items()}

    def set_rate(self, vendor_id: str, rate) -> None:
        rate = Decimal(str(rate))
        if not Decimal(0) <= rate <= Decimal(100):
            raise ValueError(f"Commission rate must be between 0 and 100, got {rate}")
        self.rates[vendor_id] = rate

    def rate_for(self, vendor_id: str) -> Decimal:
        return self.rates.get(vendor_id, self.default_rate)
