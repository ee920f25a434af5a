"""Carrier port — abstract interface for shipping-rate quotes.

Carrier integrations are external; checkout only needs a price for moving
each vendor's parcel to the customer. The domain code programs against the
port; adapters are swapped via configuration.
"""

from abc import ABC, abstractmethod

from shared.address import Address
from shared.lines import PricedLine
from shared.money import Money


class ShippingRatePort(ABC):
    """Abstract interface for carrier rate adapters."""

    @abstractmethod
    def quote(
        self,
        items_by_vendor: dict[str, list[PricedLine]],
        destination: Address | None,
        method: str,
        currency: str,
    ) -> Money:
        """Quote the shipping price for all vendor parcels of one order.

        Raises:
            ValidationError: if the shipping method is not offered.
        """
        ...
