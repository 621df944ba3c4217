"""In-memory product catalogue for development and testing.

Products must be registered before they can be ordered; unknown ids look
up as missing, just as they would against the real catalogue service.
"""

from settlement.catalogue.port import ProductCatalogue, ProductRecord


class FakeCatalogue(ProductCatalogue):
    def __init__(self) -> None:
        self.products: dict[str, ProductRecord] = {}
        self.calls: list[str] = []

    def register(
        self,
        product_id: str,
        seller_id: str,
        unit_price: float = 0.0,
        variant_ids: list[str] | None = None,
        available: bool = True,
    ) -> ProductRecord:
        record = ProductRecord(
            product_id=str(product_id),
            seller_id=str(seller_id),
            unit_price=unit_price,
            available=available,
            variant_ids=frozenset(str(v) for v in (variant_ids or [])),
        )
        self.products[record.product_id] = record
        return record

    def lookup(self, product_id: str) -> ProductRecord | None:
        self.calls.append(str(product_id))
        return self.products.get(str(product_id))
