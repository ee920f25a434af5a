"""Flat-rate tax adapter for development and testing."""

from decimal import Decimal

from shared.address import Address
from shared.lines import PricedLine
from shared.money import Money

from payments.tax.port import TaxPort


class FlatRateTax(TaxPort):
    """Applies one percentage to the goods total, optionally per country."""

    def __init__(self, rate: Decimal | str | int = 0, country_rates: dict[str, Decimal] | None = None):
        self.rate = Decimal(str(rate))
        self.country_rates = {k.upper(): Decimal(str(v)) for k, v in (country_rates or {}).items()}

    def configure(self, rate, country_rates: dict | None = None) -> None:
        self.rate = Decimal(str(rate))
        self.country_rates = {k.upper(): Decimal(str(v)) for k, v in (country_rates or {}).items()}

    def rate_for(self, destination: Address | None) -> Decimal:
        if destination is not None and destination.country.upper() in self.country_rates:
            return self.country_rates[destination.country.upper()]
        return self.rate

    def compute_tax(self, lines: list[PricedLine], destination: Address | None, currency: str) -> Money:
        goods = Money.total((line.line_total for line in lines), currency)
        return goods.percentage(self.rate_for(destination))
