"""Address book factory: get_address_book() / set_address_book()."""

from settlement.addresses.fake_adapter import FakeAddressBook
from settlement.addresses.port import AddressBook

_current_book: AddressBook | None = None


def get_address_book() -> AddressBook:
    """Return the current address book. Defaults to FakeAddressBook."""
    global _current_book
    if _current_book is None:
        _current_book = FakeAddressBook()
    return _current_book


def set_address_book(book: AddressBook) -> None:
    global _current_book
    _current_book = book


def reset_address_book() -> None:
    global _current_book
    _current_book = None
