"""Product catalogue factory.

Provides get_catalogue() / set_catalogue() to swap implementations; the
in-memory FakeCatalogue is the default.
"""

from settlement.catalogue.fake_adapter import FakeCatalogue
from settlement.catalogue.port import ProductCatalogue

_current_catalogue: ProductCatalogue | None = None


def get_catalogue() -> ProductCatalogue:
    """Return the current catalogue. Defaults to FakeCatalogue."""
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = FakeCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: ProductCatalogue) -> None:
    """Override the active catalogue (useful for tests)."""
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    """Reset to the default catalogue."""
    global _current_catalogue
    _current_catalogue = None
