"""Tests for the carrier shipping-rate adapter."""

import pytest

from fulfillment.carrier import get_carrier, set_carrier
from fulfillment.carrier.fake_adapter import FakeCarrier
from shared.errors import ValidationError
from shared.lines import PricedLine
from shared.money import Money


def _line(product_id, vendor_id, price="40.00", quantity=1):
    return PricedLine(
        product_id=product_id,
        vendor_id=vendor_id,
        quantity=quantity,
        unit_price=Money.of(price, "EGP"),
    )


class TestFakeCarrier:
    def test_one_parcel_per_vendor(self):
        carrier = FakeCarrier()
        carrier.configure(rates={"express": "30"})
        parcels = {"vendor-1": [_line("P1", "vendor-1")], "vendor-2": [_line("P2", "vendor-2")]}

        assert carrier.quote(parcels, None, "express", "EGP") == Money.of("60.00", "EGP")

    def test_standard_is_free_by_default(self):
        carrier = FakeCarrier()
        assert carrier.quote({"vendor-1": [_line("P1", "vendor-1")]}, None, "standard", "EGP") == Money.zero("EGP")

    def test_free_over_threshold(self):
        carrier = FakeCarrier()
        carrier.configure(rates={"standard": "15"}, free_over="100")

        cheap = {"vendor-1": [_line("P1", "vendor-1", "40.00")]}
        big = {"vendor-1": [_line("P1", "vendor-1", "40.00", quantity=3)]}

        assert carrier.quote(cheap, None, "standard", "EGP") == Money.of("15", "EGP")
        assert carrier.quote(big, None, "standard", "EGP") == Money.zero("EGP")

    def test_unknown_method(self):
        carrier = FakeCarrier()
        with pytest.raises(ValidationError) as exc_info:
            carrier.quote({}, None, "teleport", "EGP")
        assert "shipping_method" in exc_info.value.messages

    def test_quotes_are_recorded(self):
        carrier = FakeCarrier()
        carrier.quote({"vendor-2": [], "vendor-1": []}, None, "standard", "EGP")
        assert carrier.quotes[0]["vendors"] == ["vendor-1", "vendor-2"]


class TestCarrierRegistry:
    def test_default_is_fake(self):
        assert isinstance(get_carrier(), FakeCarrier)
        assert get_carrier() is get_carrier()

    def test_override(self):
        carrier = FakeCarrier(rates={"standard": "5"})
        set_carrier(carrier)
        assert get_carrier() is carrier
