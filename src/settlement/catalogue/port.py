"""Product catalogue port (abstract interface).

The engine never owns product data. Order creation asks the catalogue
whether the referenced product and variant exist and are orderable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProductRecord:
    """What the catalogue reports about a product at order time."""

    product_id: str
    seller_id: str
    unit_price: float = 0.0
    available: bool = True
    variant_ids: frozenset[str] = field(default_factory=frozenset)


class ProductCatalogue(ABC):
    """Abstract catalogue lookup."""

    @abstractmethod
    def lookup(self, product_id: str) -> ProductRecord | None:
        """Return the product, or None when the id is unknown."""
        ...
