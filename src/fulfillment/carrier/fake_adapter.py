"""Fake carrier adapter — deterministic rates for testing and development.

Every vendor ships its own parcel, so the quote is the per-parcel rate for
the chosen method times the number of vendors. Orders whose goods total
reaches ``free_over`` ship for free.
"""

from decimal import Decimal

from shared.address import Address
from shared.errors import ValidationError
from shared.lines import PricedLine
from shared.money import Money

from fulfillment.carrier.port import ShippingRatePort

DEFAULT_RATES = {
    "standard": Decimal("0"),
    "express": Decimal("25"),
}


class FakeCarrier(ShippingRatePort):
    """Fake carrier with a flat per-parcel rate table."""

    def __init__(self, rates: dict[str, Decimal] | None = None, free_over: Decimal | None = None):
        self.rates = dict(DEFAULT_RATES if rates is None else rates)
        self.free_over = free_over
        self.quotes: list[dict] = []

    def configure(self, rates: dict | None = None, free_over=None) -> None:
        """Configure the fake carrier rate table for testing."""
        if rates is not None:
            self.rates = {method: Decimal(str(rate)) for method, rate in rates.items()}
        self.free_over = Decimal(str(free_over)) if free_over is not None else None

    def quote(
        self,
        items_by_vendor: dict[str, list[PricedLine]],
        destination: Address | None,
        method: str,
        currency: str,
    ) -> Money:
        if method not in self.rates:
            raise ValidationError({"shipping_method": [f"Unknown shipping method: {method}"]})

        self.quotes.append(
            {
                "vendors": sorted(items_by_vendor),
                "destination": destination,
                "method": method,
            }
        )

        if self.free_over is not None:
            goods = Money.total(
                (line.line_total for lines in items_by_vendor.values() for line in lines),
                currency,
            )
            if goods.amount >= self.free_over:
                return Money.zero(currency)

        return Money.of(self.rates[method], currency).multiply(len(items_by_vendor))
