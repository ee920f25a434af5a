"""Catalogue adapter registry.

Provides get_catalog() / set_catalog() to swap implementations; defaults to
an empty InMemoryCatalog.
"""

from catalogue.fake_adapter import InMemoryCatalog
from catalogue.port import CatalogPort

_current_catalog: CatalogPort | None = None


def get_catalog() -> CatalogPort:
    """Return the current catalogue adapter. Defaults to InMemoryCatalog."""
    global _current_catalog
    if _current_catalog is None:
        _current_catalog = InMemoryCatalog()
    return _current_catalog


def set_catalog(catalog: CatalogPort) -> None:
    """Override the active catalogue adapter (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    """Reset to default catalogue adapter."""
    global _current_catalog
    _current_catalog = None
