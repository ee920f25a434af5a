import os
from pathlib import Path

import pytest

os.environ["SOUQ_ENVIRONMENT"] = "test"


def pytest_sessionstart(session):
    """Configure logging once, with the test environment's level."""
    from shared.config import reset_settings
    from shared.logging import configure_logging

    reset_settings()
    configure_logging()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Reset every adapter registry and cached setting after each test."""
    yield

    from catalogue import reset_catalog
    from fulfillment.carrier import reset_carrier
    from inventory.stock import reset_ledger
    from notifications.channel import reset_notifier
    from ordering.checkout import reset_repositories
    from ordering.pricing import reset_coupon_validator
    from payments.gateway import reset_gateway
    from payments.tax import reset_tax
    from shared.config import reset_settings
    from shared.logging import clear_context
    from vendors.commission import reset_commission_calculator
    from vendors.commission.rates import reset_rate_book

    reset_catalog()
    reset_carrier()
    reset_ledger()
    reset_notifier()
    reset_repositories()
    reset_coupon_validator()
    reset_gateway()
    reset_tax()
    reset_commission_calculator()
    reset_rate_book()
    reset_settings()
    clear_context()
