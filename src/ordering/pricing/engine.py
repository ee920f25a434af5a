"""Pricing engine — aggregates tax, shipping and discount into order totals.

Tax and shipping rates come from external capabilities; the engine only
groups lines by vendor, asks each capability for its figure and applies
    total = subtotal + tax + shipping - discount
It holds no state, so the same inputs always produce the same breakdown.
"""

from pydantic import BaseModel, ConfigDict

from fulfillment.carrier.port import ShippingRatePort
from payments.tax.port import TaxPort
from shared.address import Address
from shared.lines import PricedLine, group_by_vendor
from shared.money import Money


class PriceBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal: Money
    tax: Money
    shipping: Money
    discount: Money
    total: Money

    @classmethod
    def compose(cls, subtotal: Money, tax: Money, shipping: Money, discount: Money) -> "PriceBreakdown":
        # NegativeResultError if the discount exceeds everything else
        total = subtotal.add(tax).add(shipping).subtract(discount)
        return cls(subtotal=subtotal, tax=tax, shipping=shipping, discount=discount, total=total)


class PricingEngine:
    def __init__(self, tax: TaxPort, carrier: ShippingRatePort):
        self.tax = tax
        self.carrier = carrier

    def compute_subtotal(self, lines: list[PricedLine], currency: str) -> Money:
        return Money.total((line.line_total for line in lines), currency)

    def compute_tax(self, lines: list[PricedLine], destination: Address | None, currency: str) -> Money:
        if not lines:
            return Money.zero(currency)
        return self.tax.compute_tax(lines, destination, currency)

    def compute_shipping(
        self,
        lines: list[PricedLine],
        destination: Address | None,
        method: str,
        currency: str,
    ) -> Money:
        if not lines:
            return Money.zero(currency)
        return self.carrier.quote(group_by_vendor(lines), destination, method, currency)

    def compute_totals(
        self,
        lines: list[PricedLine],
        currency: str,
        destination: Address | None = None,
        shipping_method: str = "standard",
        discount: Money | None = None,
        free_shipping: bool = False,
    ) -> PriceBreakdown:
        subtotal = self.compute_subtotal(lines, currency)
        tax = self.compute_tax(lines, destination, currency)
        if free_shipping:
            shipping = Money.zero(currency)
        else:
            shipping = self.compute_shipping(lines, destination, shipping_method, currency)
        return PriceBreakdown.compose(
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            discount=discount or Money.zero(currency),
        )
