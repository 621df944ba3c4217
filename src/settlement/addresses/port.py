"""Address book port (abstract interface).

Deliveries embed a copy of the address as it was when the order was placed,
so later edits in the customer's address book never reach an existing order.
"""

from abc import ABC, abstractmethod


class AddressBook(ABC):
    @abstractmethod
    def snapshot(self, address_id: str) -> dict | None:
        """Return a detached copy of the address, or None when unknown."""
        ...
