"""VendorCommission aggregate — the platform's cut of one vendor's share of an order.

Keyed by ``vendor_id:order_id``, so a (vendor, order) pair can only ever
hold one record. Amounts are fixed at accrual; afterwards only the status
moves:

    PENDING → APPROVED → PAID
    PENDING | APPROVED → CANCELLED
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import Field

from shared.aggregate import Aggregate, utcnow
from shared.errors import InvalidTransitionError
from shared.money import Money

from vendors.commission.events import (
    CommissionAccrued,
    CommissionApproved,
    CommissionCancelled,
    CommissionPaid,
)


class CommissionStatus(Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    PAID = "Paid"
    CANCELLED = "Cancelled"


_VALID_TRANSITIONS = {
    CommissionStatus.PENDING: {CommissionStatus.APPROVED, CommissionStatus.CANCELLED},
    CommissionStatus.APPROVED: {CommissionStatus.PAID, CommissionStatus.CANCELLED},
    CommissionStatus.PAID: set(),  # Terminal
    CommissionStatus.CANCELLED: set(),  # Terminal
}


def commission_id(vendor_id: str, order_id: str) -> str:
    return f"{vendor_id}:{order_id}"


class VendorCommission(Aggregate):
    vendor_id: str
    order_id: str
    order_items_amount: Money
    commission_rate: Decimal = Field(ge=0, le=100)
    commission_amount: Money
    platform_fee: Money
    status: CommissionStatus = CommissionStatus.PENDING
    payout_reference: str | None = None
    cancellation_reason: str | None = None
    accrued_at: datetime | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None

    @classmethod
    def accrue(
        cls,
        vendor_id: str,
        order_id: str,
        order_items_amount: Money,
        commission_rate: Decimal,
        platform_fee_rate: Decimal = Decimal(0),
    ) -> "VendorCommission":
        commission = cls(
            id=commission_id(vendor_id, order_id),
            vendor_id=vendor_id,
            order_id=order_id,
            order_items_amount=order_items_amount,
            commission_rate=commission_rate,
            commission_amount=order_items_amount.percentage(commission_rate),
            platform_fee=order_items_amount.percentage(platform_fee_rate),
            accrued_at=utcnow(),
        )
        commission.raise_(
            CommissionAccrued(
                commission_id=commission.id,
                vendor_id=vendor_id,
                order_id=order_id,
                order_items_amount=commission.order_items_amount,
                commission_rate=commission.commission_rate,
                commission_amount=commission.commission_amount,
                platform_fee=commission.platform_fee,
            )
        )
        return commission

    def _assert_can_transition(self, target: CommissionStatus) -> None:
        current = CommissionStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError("status", current.value, target.value)

    @property
    def is_open(self) -> bool:
        return CommissionStatus(self.status) in (CommissionStatus.PENDING, CommissionStatus.APPROVED)

    def approve(self) -> None:
        self._assert_can_transition(CommissionStatus.APPROVED)
        self.status = CommissionStatus.APPROVED
        self.approved_at = utcnow()
        self.raise_(CommissionApproved(commission_id=self.id, vendor_id=self.vendor_id, order_id=self.order_id))

    def mark_paid(self, payout_reference: str | None = None) -> None:
        self._assert_can_transition(CommissionStatus.PAID)
        self.status = CommissionStatus.PAID
        self.payout_reference = payout_reference
        self.paid_at = utcnow()
        self.raise_(
            CommissionPaid(
                commission_id=self.id,
                vendor_id=self.vendor_id,
                order_id=self.order_id,
                payout_reference=payout_reference,
            )
        )

    def cancel(self, reason: str) -> None:
        self._assert_can_transition(CommissionStatus.CANCELLED)
        self.status = CommissionStatus.CANCELLED
        self.cancellation_reason = reason
        self.cancelled_at = utcnow()
        self.raise_(
            CommissionCancelled(
                commission_id=self.id,
                vendor_id=self.vendor_id,
                order_id=self.order_id,
                reason=reason,
            )
        )
