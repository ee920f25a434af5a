"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations. The adapter
is chosen by the ``payment_adapter`` setting; only "fake" ships with the
project.
"""

from shared.config import get_settings

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        adapter = get_settings().payment_adapter
        if adapter != "fake":
            raise ValueError(f"Unknown payment adapter: {adapter}")
        _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
