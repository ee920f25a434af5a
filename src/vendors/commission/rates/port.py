"""Commission rate port — where a vendor's current commission rate comes from.

Rates are negotiated per vendor during onboarding, which is outside this
system. The calculator reads the rate once, at accrual, and stores it on the
commission record.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class CommissionRatePort(ABC):
    @abstractmethod
    def rate_for(self, vendor_id: str) -> Decimal:
        """Current commission rate for the vendor, as a percentage (0-100)."""
        ...
