"""Catalogue port — the product lookup capability the ordering core consumes.

Browsing, search and category management live elsewhere; checkout only needs
a point-in-time snapshot of a product's price, owner and stock position.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from shared.money import Money


@dataclass(frozen=True)
class ProductSnapshot:
    """What the catalogue knows about a product at the moment of the query."""

    product_id: str
    vendor_id: str
    name: str
    sku: str
    price: Money
    available: int
    track_inventory: bool = True
    allow_backorders: bool = False
    category_ids: tuple[str, ...] = field(default_factory=tuple)
    retired: bool = False

    def can_supply(self, quantity: int) -> bool:
        if self.retired:
            return False
        if not self.track_inventory or self.allow_backorders:
            return True
        return quantity <= self.available


class CatalogPort(ABC):
    """Abstract catalogue query interface."""

    @abstractmethod
    def get_product_snapshot(self, product_id: str) -> ProductSnapshot:
        """Return the live snapshot for a product.

        Raises:
            ObjectNotFoundError: if the product is unknown.
        """
        ...
