"""Priced line items handed to the rate capabilities (tax, shipping)."""

from dataclasses import dataclass, field

from shared.money import Money


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    vendor_id: str
    quantity: int
    unit_price: Money
    category_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def line_total(self) -> Money:
        return self.unit_price.multiply(self.quantity)


def group_by_vendor(lines) -> dict[str, list[PricedLine]]:
    """Group lines by vendor, preserving first-seen vendor order."""
    grouped: dict[str, list[PricedLine]] = {}
    for line in lines:
        grouped.setdefault(line.vendor_id, []).append(line)
    return grouped
