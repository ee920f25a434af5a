"""Carrier adapter abstraction — pluggable shipping-rate integration."""

from shared.config import get_settings

from fulfillment.carrier.port import ShippingRatePort

_carrier_instance: ShippingRatePort | None = None


def get_carrier() -> ShippingRatePort:
    """Return the configured carrier adapter (singleton).

    Uses FakeCarrier by default. In production, configure via the
    ``carrier_adapter`` setting.
    """
    global _carrier_instance
    if _carrier_instance is None:
        adapter = get_settings().carrier_adapter
        if adapter == "fake":
            from fulfillment.carrier.fake_adapter import FakeCarrier

            _carrier_instance = FakeCarrier()
        else:
            raise ValueError(f"Unknown carrier adapter: {adapter}")
    return _carrier_instance


def set_carrier(carrier: ShippingRatePort) -> None:
    global _carrier_instance
    _carrier_instance = carrier


def reset_carrier():
    """Reset the carrier singleton (useful for testing)."""
    global _carrier_instance
    _carrier_instance = None
