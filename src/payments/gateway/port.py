"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
Order processing talks to this port only, so the fake gateway used in
development and tests can be swapped for a real provider without touching
domain code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from shared.money import Money


class PaymentGatewayError(Exception):
    """The gateway could not be reached or returned garbage.

    Callers treat this like a declined charge: the outcome is a failure whose
    reason is the exception text.
    """


@dataclass(frozen=True)
class ChargeResult:
    """Result of a payment charge attempt."""

    success: bool
    transaction_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    refund_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_charge(
        self,
        amount: Money,
        payment_method: str,
        details: dict,
        idempotency_key: str,
    ) -> ChargeResult:
        """Charge the customer via the payment gateway."""
        ...

    @abstractmethod
    def create_refund(
        self,
        transaction_id: str,
        amount: Money,
        reason: str,
        idempotency_key: str,
    ) -> RefundResult:
        """Refund a previous charge.

        A retry with the same ``idempotency_key`` must return the original
        refund instead of paying the customer again.
        """
        ...
