"""CommissionCalculator — splits a paid order into per-vendor commission records.

``accrue(order)`` creates one VendorCommission per distinct vendor on the
order: the vendor's item total times the rate the rate book quotes *now*.
The rate is stored on the record, so later rate changes never touch
historical orders. Accrual is exactly-once per (vendor, order): calling it
again for the same order returns nothing new.
"""

import threading
from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from shared.aggregate import DomainEvent
from shared.errors import InvalidTransitionError
from shared.money import Money
from shared.repository import InMemoryRepository

from ordering.order.status import PaymentStatus
from vendors.commission.commission import VendorCommission, commission_id
from vendors.commission.rates.port import CommissionRatePort

logger = structlog.get_logger(__name__)


@dataclass
class CommissionResult:
    commissions: list[VendorCommission] = field(default_factory=list)
    events: list[DomainEvent] = field(default_factory=list)


class CommissionCalculator:
    def __init__(
        self,
        rate_book: CommissionRatePort,
        repository: InMemoryRepository[VendorCommission] | None = None,
        platform_fee_rate: Decimal = Decimal(0),
    ):
        self.rate_book = rate_book
        self.repository = repository if repository is not None else InMemoryRepository(VendorCommission)
        self.platform_fee_rate = Decimal(str(platform_fee_rate))
        self._lock = threading.Lock()

    def _save(self, commission: VendorCommission, result: CommissionResult) -> None:
        self.repository.add(commission)
        result.commissions.append(commission)
        result.events.extend(commission.collect_events())

    # -------------------------------------------------------------------
    # Accrual
    # -------------------------------------------------------------------
    def accrue(self, order) -> CommissionResult:
        payment_status = PaymentStatus(order.payment_status)
        if payment_status != PaymentStatus.PAID:
            raise InvalidTransitionError(
                "payment_status",
                payment_status.value,
                PaymentStatus.PAID.value,
                "Commissions accrue only on paid orders",
            )

        result = CommissionResult()
        with self._lock:
            for vendor_id in order.vendor_ids:
                if self.repository.exists(commission_id(vendor_id, order.id)):
                    logger.debug("Commission already accrued", vendor_id=vendor_id, order_id=order.id)
                    continue

                items_amount = Money.total(
                    (item.total_price for item in order.items_for_vendor(vendor_id)), order.currency
                )
                commission = VendorCommission.accrue(
                    vendor_id=vendor_id,
                    order_id=order.id,
                    order_items_amount=items_amount,
                    commission_rate=self.rate_book.rate_for(vendor_id),
                    platform_fee_rate=self.platform_fee_rate,
                )
                self._save(commission, result)
                logger.info(
                    "Commission accrued",
                    vendor_id=vendor_id,
                    order_id=order.id,
                    rate=str(commission.commission_rate),
                    amount=str(commission.commission_amount),
                )
        return result

    # -------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------
    def approve(self, vendor_id: str, order_id: str) -> CommissionResult:
        result = CommissionResult()
        commission = self.repository.get(commission_id(vendor_id, order_id))
        commission.approve()
        self._save(commission, result)
        logger.info("Commission approved", vendor_id=vendor_id, order_id=order_id)
        return result

    def mark_paid(self, vendor_id: str, order_id: str, payout_reference: str | None = None) -> CommissionResult:
        result = CommissionResult()
        commission = self.repository.get(commission_id(vendor_id, order_id))
        commission.mark_paid(payout_reference)
        self._save(commission, result)
        logger.info("Commission paid out", vendor_id=vendor_id, order_id=order_id, payout_reference=payout_reference)
        return result

    def cancel_for_order(self, order_id: str, reason: str) -> CommissionResult:
        """Cancel every open commission of an order. Paid ones are left alone."""
        result = CommissionResult()
        with self._lock:
            for commission in self.for_order(order_id):
                if not commission.is_open:
                    logger.warning(
                        "Commission already settled; not cancelled",
                        vendor_id=commission.vendor_id,
                        order_id=order_id,
                        status=commission.status,
                    )
                    continue
                commission.cancel(reason)
                self._save(commission, result)

        if result.commissions:
            logger.info("Commissions cancelled", order_id=order_id, count=len(result.commissions), reason=reason)
        return result

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def for_order(self, order_id: str) -> list[VendorCommission]:
        return self.repository.find(lambda c: c.order_id == order_id)

    def for_vendor(self, vendor_id: str) -> list[VendorCommission]:
        return self.repository.find(lambda c: c.vendor_id == vendor_id)
