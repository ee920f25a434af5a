"""Domain events for the VendorCommission aggregate."""

from decimal import Decimal

from shared.aggregate import DomainEvent
from shared.money import Money


class CommissionAccrued(DomainEvent):
    commission_id: str
    vendor_id: str
    order_id: str
    order_items_amount: Money
    commission_rate: Decimal
    commission_amount: Money
    platform_fee: Money


class CommissionApproved(DomainEvent):
    commission_id: str
    vendor_id: str
    order_id: str


class CommissionPaid(DomainEvent):
    commission_id: str
    vendor_id: str
    order_id: str
    payout_reference: str | None = None


class CommissionCancelled(DomainEvent):
    commission_id: str
    vendor_id: str
    order_id: str
    reason: str
