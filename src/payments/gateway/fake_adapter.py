"""Configurable fake payment gateway for development and testing.

Simulates a gateway without any external calls. Charges and refunds can be
told to succeed or fail independently, and every call is recorded so tests
can assert on what was sent.

Refunds honour their idempotency key the way a real provider does: a
successful refund replayed under the same key returns the original result
and no money moves a second time.
"""

from uuid import uuid4

from shared.money import Money

from payments.gateway.port import ChargeResult, PaymentGateway, RefundResult


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.refunds_succeed: bool = True
        self.calls: list[dict] = []
        self._refunds_by_key: dict[str, RefundResult] = {}

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Card declined",
        refunds_succeed: bool = True,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.refunds_succeed = refunds_succeed

    def create_charge(
        self,
        amount: Money,
        payment_method: str,
        details: dict,
        idempotency_key: str,
    ) -> ChargeResult:
        self.calls.append(
            {
                "method": "create_charge",
                "amount": amount,
                "payment_method": payment_method,
                "details": dict(details),
                "idempotency_key": idempotency_key,
            }
        )

        if self.should_succeed:
            return ChargeResult(
                success=True,
                transaction_id=f"fake_txn_{uuid4().hex[:12]}",
                gateway_status="succeeded",
            )
        return ChargeResult(
            success=False,
            gateway_status="failed",
            failure_reason=self.failure_reason,
        )

    def create_refund(
        self,
        transaction_id: str,
        amount: Money,
        reason: str,
        idempotency_key: str,
    ) -> RefundResult:
        previous = self._refunds_by_key.get(idempotency_key)
        self.calls.append(
            {
                "method": "create_refund",
                "transaction_id": transaction_id,
                "amount": amount,
                "reason": reason,
                "idempotency_key": idempotency_key,
                "replayed": previous is not None,
            }
        )
        if previous is not None:
            return previous

        if self.refunds_succeed:
            result = RefundResult(
                success=True,
                refund_id=f"fake_ref_{uuid4().hex[:12]}",
                gateway_status="succeeded",
            )
            self._refunds_by_key[idempotency_key] = result
            return result
        return RefundResult(
            success=False,
            gateway_status="failed",
            failure_reason=self.failure_reason,
        )

    def charges(self) -> list[dict]:
        return [call for call in self.calls if call["method"] == "create_charge"]

    def refunds(self) -> list[dict]:
        """Refunds that actually paid money back; replays are left out."""
        return [call for call in self.calls if call["method"] == "create_refund" and not call["replayed"]]
