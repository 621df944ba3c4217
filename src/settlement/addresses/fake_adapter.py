"""In-memory address book for development and testing."""

from settlement.addresses.port import AddressBook


class FakeAddressBook(AddressBook):
    def __init__(self) -> None:
        self.addresses: dict[str, dict] = {}

    def register(self, address_id: str, **fields) -> None:
        self.addresses[str(address_id)] = dict(fields)

    def snapshot(self, address_id: str) -> dict | None:
        address = self.addresses.get(str(address_id))
        return dict(address) if address is not None else None
