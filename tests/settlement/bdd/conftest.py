"""Shared BDD fixtures and step definitions for the settlement engine."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then
from settlement.ledger import book
from settlement.order.queries import load_order
from settlement.refund.refund import Refund
from settlement.shipment.items import AddShipmentItem
from settlement.shipment.listing import load_shipment
from settlement.shipment.registration import CreateShipment


@pytest.fixture()
def world():
    """Ids collected across steps, plus the last captured error."""
    return {"exc": None}


@pytest.fixture()
def attempt(world):
    """Dispatch a command, capturing any error for a later ``then`` step."""

    def _attempt(command):
        try:
            return current_domain.process(command, asynchronous=False)
        except Exception as exc:
            world["exc"] = exc
            return None

    return _attempt


@pytest.fixture()
def ship_keyboard(world, attempt, admin):
    """Register a shipment and try to load the keyboard line onto it."""

    def _ship(tracking_number, quantity):
        order_id = world["order_id"]
        shipment_id = current_domain.process(
            CreateShipment(
                order_id=order_id,
                carrier="CJ Logistics",
                tracking_number=tracking_number,
                **admin.as_command_fields(),
            ),
            asynchronous=False,
        )
        shipment_item_id = attempt(
            AddShipmentItem(
                order_id=order_id,
                shipment_id=shipment_id,
                order_item_id=world["kb_item_id"],
                shipped_quantity=quantity,
                **admin.as_command_fields(),
            )
        )
        return shipment_id, shipment_item_id

    return _ship


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("an order with a keyboard line of quantity {quantity:d}"))
def keyboard_order(world, place_order, quantity):
    order_id = place_order(items=[{"product_id": "prod-kb", "quantity": quantity}], total_amount=50.0 * quantity)
    world["order_id"] = order_id
    world["kb_item_id"] = str(load_order(order_id).items[0].id)


@given(parsers.cfparse("a shipment carrying {quantity:d} of the keyboard line"))
def shipment_with_keyboard(world, ship_keyboard, quantity):
    world["shipment_id"], world["shipment_item_id"] = ship_keyboard("TRK-BDD-1", quantity)
    assert world["exc"] is None


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the action fails with "{error_name}"'))
def action_fails(world, error_name):
    exc = world["exc"]
    assert exc is not None, f"Expected {error_name} but nothing was raised"
    assert error_name in [cls.__name__ for cls in type(exc).__mro__]


@then(parsers.cfparse('the shipment status is "{status}"'))
def shipment_status_is(world, status):
    assert load_shipment(world["order_id"], world["shipment_id"]).status == status


@then(parsers.cfparse("the keyboard line has {quantity:d} shipped"))
def keyboard_shipped(world, quantity):
    assert book.position(world["kb_item_id"])["shipped_quantity"] == quantity


@then(parsers.cfparse("the keyboard line has {quantity:d} delivered"))
def keyboard_delivered(world, quantity):
    assert book.position(world["kb_item_id"])["delivered_quantity"] == quantity


@then(parsers.cfparse('the keyboard line status is "{status}"'))
def keyboard_status_is(world, status):
    assert load_order(world["order_id"]).item(world["kb_item_id"]).status == status


@then(parsers.cfparse('the refund status is "{status}"'))
def refund_status_is(world, status):
    assert current_domain.repository_for(Refund).get(world["refund_id"]).status == status


@then("the refund is resolved")
def refund_resolved(world):
    assert current_domain.repository_for(Refund).get(world["refund_id"]).resolved_at is not None
