import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture
from settlement.access.context import CallerContext
from settlement.addresses import reset_address_book, set_address_book
from settlement.addresses.fake_adapter import FakeAddressBook
from settlement.catalogue import reset_catalogue, set_catalogue
from settlement.catalogue.fake_adapter import FakeCatalogue

BUYER_ID = "buyer-001"
OTHER_BUYER_ID = "buyer-002"
SELLER_A = "seller-a"
SELLER_B = "seller-b"
SELLER_C = "seller-c"
ADMIN_ID = "admin-001"


@pytest.fixture(scope="session")
def settlement_bed():
    from settlement.domain import settlement

    bed = DomainFixture(settlement)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(settlement_bed):
    with settlement_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def catalogue():
    fake = FakeCatalogue()
    fake.register("prod-kb", SELLER_A, unit_price=50.0, variant_ids=["var-kb-red", "var-kb-blue"])
    fake.register("prod-mouse", SELLER_B, unit_price=20.0)
    fake.register("prod-retired", SELLER_B, unit_price=5.0, available=False)
    set_catalogue(fake)
    yield fake
    reset_catalogue()


@pytest.fixture(autouse=True)
def address_book():
    fake = FakeAddressBook()
    fake.register("addr-home", line1="12 Harbor Road", city="Busan", postal_code="48058", country="KR")
    set_address_book(fake)
    yield fake
    reset_address_book()


# ---------------------------------------------------------------------------
# Callers
# ---------------------------------------------------------------------------
@pytest.fixture()
def admin():
    return CallerContext.of("admin", ADMIN_ID)


@pytest.fixture()
def buyer():
    return CallerContext.of("buyer", BUYER_ID)


@pytest.fixture()
def other_buyer():
    return CallerContext.of("customer", OTHER_BUYER_ID)


@pytest.fixture()
def seller_a():
    return CallerContext.of("seller", SELLER_A)


@pytest.fixture()
def seller_b():
    return CallerContext.of("seller", SELLER_B)


@pytest.fixture()
def seller_c():
    return CallerContext.of("seller", SELLER_C)


# ---------------------------------------------------------------------------
# Order factory
# ---------------------------------------------------------------------------
DEFAULT_ITEMS = [
    {"product_id": "prod-kb", "variant_id": "var-kb-red", "quantity": 2},
    {"product_id": "prod-mouse", "quantity": 1},
]


@pytest.fixture()
def place_order(buyer):
    """Return a function that places an order through the command pipeline."""
    from settlement.order.creation import CreateOrder

    def _place(items=None, total_amount=120.0, currency="KRW", deliveries=None, payments=None, caller=None):
        caller = caller or buyer
        command = CreateOrder(
            buyer_id=BUYER_ID,
            currency=currency,
            total_amount=total_amount,
            items=json.dumps(items or DEFAULT_ITEMS),
            deliveries=json.dumps(deliveries or []),
            payments=json.dumps(payments or []),
            **caller.as_command_fields(),
        )
        return current_domain.process(command, asynchronous=False)

    return _place
