"""In-memory catalogue for development and testing.

When attached to a StockLedger, availability is read live from the ledger so
the cart sees the same numbers reservations are checked against.
"""

from shared.errors import ObjectNotFoundError
from shared.money import Money

from catalogue.port import CatalogPort, ProductSnapshot


class InMemoryCatalog(CatalogPort):
    def __init__(self, ledger=None):
        self.ledger = ledger
        self._products: dict[str, dict] = {}

    def attach_ledger(self, ledger) -> None:
        self.ledger = ledger

    def add_product(
        self,
        product_id: str,
        vendor_id: str,
        price: Money,
        name: str | None = None,
        sku: str | None = None,
        available: int = 0,
        track_inventory: bool = True,
        allow_backorders: bool = False,
        category_ids: tuple[str, ...] = (),
    ) -> None:
        self._products[product_id] = {
            "product_id": product_id,
            "vendor_id": vendor_id,
            "name": name or product_id,
            "sku": sku or product_id.upper(),
            "price": price,
            "available": available,
            "track_inventory": track_inventory,
            "allow_backorders": allow_backorders,
            "category_ids": tuple(category_ids),
            "retired": False,
        }

    def set_price(self, product_id: str, price: Money) -> None:
        self._record(product_id)["price"] = price

    def set_available(self, product_id: str, available: int) -> None:
        self._record(product_id)["available"] = available

    def retire(self, product_id: str) -> None:
        self._record(product_id)["retired"] = True

    def _record(self, product_id: str) -> dict:
        try:
            return self._products[product_id]
        except KeyError:
            raise ObjectNotFoundError({"product_id": [f"Product {product_id} does not exist"]}) from None

    def get_product_snapshot(self, product_id: str) -> ProductSnapshot:
        record = dict(self._record(product_id))
        if self.ledger is not None and self.ledger.is_enrolled(product_id):
            record["available"] = self.ledger.available_to_reserve(product_id)
            levels = self.ledger.levels(product_id)
            record["track_inventory"] = levels.track_inventory
            record["allow_backorders"] = levels.allow_backorders
            record["retired"] = record["retired"] or levels.retired
        return ProductSnapshot(**record)
