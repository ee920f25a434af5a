"""Tax capability port — tax-table lookup is an external service."""

from abc import ABC, abstractmethod

from shared.address import Address
from shared.lines import PricedLine
from shared.money import Money


class TaxPort(ABC):
    @abstractmethod
    def compute_tax(self, lines: list[PricedLine], destination: Address | None, currency: str) -> Money:
        """Return the total tax owed on ``lines`` shipped to ``destination``."""
        ...
