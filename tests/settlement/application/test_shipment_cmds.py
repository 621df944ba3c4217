"""Application tests for shipment registration, items and status."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from settlement.errors import (
    Conflict,
    DuplicateTracking,
    Forbidden,
    ImmutableStateViolation,
    NotFound,
    OrderNotFound,
    QuantityExceeded,
)
from settlement.ledger import book
from settlement.order.order import DeliveryStatus, ItemStatus, OrderStatus
from settlement.order.queries import load_order
from settlement.shipment.items import AddShipmentItem, UpdateShipmentItem
from settlement.shipment.registration import CreateShipment
from settlement.shipment.shipment import Shipment, ShipmentStatus
from settlement.shipment.status import UpdateShipmentStatus


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _item(order_id, product_id):
    return next(i for i in load_order(order_id).items if i.product_id == product_id)


def _create_shipment(order_id, caller, tracking_number="TRK-001", **extra):
    return _process(
        CreateShipment(
            order_id=order_id,
            carrier=extra.pop("carrier", "CJ Logistics"),
            tracking_number=tracking_number,
            **extra,
            **caller.as_command_fields(),
        )
    )


def _add_item(order_id, shipment_id, order_item_id, quantity, caller):
    return _process(
        AddShipmentItem(
            order_id=order_id,
            shipment_id=shipment_id,
            order_item_id=order_item_id,
            shipped_quantity=quantity,
            **caller.as_command_fields(),
        )
    )


def _update_item(order_id, shipment_id, shipment_item_id, quantity, caller):
    return _process(
        UpdateShipmentItem(
            order_id=order_id,
            shipment_id=shipment_id,
            shipment_item_id=shipment_item_id,
            shipped_quantity=quantity,
            **caller.as_command_fields(),
        )
    )


def _set_status(order_id, shipment_id, status, caller):
    _process(UpdateShipmentStatus(order_id=order_id, shipment_id=shipment_id, status=status, **caller.as_command_fields()))


class TestCreateShipment:
    def test_admin_registers_shipment(self, place_order, admin):
        order_id = place_order()
        shipment_id = _create_shipment(order_id, admin)
        shipment = current_domain.repository_for(Shipment).get(shipment_id)
        assert shipment.order_id == order_id
        assert shipment.status == ShipmentStatus.PENDING.value
        assert shipment.seller_id is None

    def test_seller_shipment_is_owned_by_seller(self, place_order, seller_a):
        order_id = place_order()
        shipment = current_domain.repository_for(Shipment).get(_create_shipment(order_id, seller_a))
        assert shipment.seller_id == "seller-a"

    def test_unknown_order(self, admin):
        with pytest.raises(OrderNotFound):
            _create_shipment("ord-missing", admin)

    def test_duplicate_tracking_number_conflicts(self, place_order, admin):
        order_id = place_order()
        _create_shipment(order_id, admin, tracking_number="TRK-DUP")
        with pytest.raises(DuplicateTracking):
            _create_shipment(order_id, admin, tracking_number="TRK-DUP")

    def test_same_tracking_number_on_another_order_is_fine(self, place_order, admin):
        _create_shipment(place_order(), admin, tracking_number="TRK-SHARED")
        _create_shipment(place_order(), admin, tracking_number="TRK-SHARED")

    def test_unknown_status_rejected(self, place_order, admin):
        with pytest.raises(ValidationError):
            _create_shipment(place_order(), admin, status="lost")

    def test_buyer_cannot_register(self, place_order, buyer):
        with pytest.raises(Forbidden):
            _create_shipment(place_order(), buyer)

    def test_unrelated_seller_cannot_register(self, place_order, seller_c):
        with pytest.raises(Forbidden):
            _create_shipment(place_order(), seller_c)

    def test_links_delivery(self, place_order, admin):
        order_id = place_order(deliveries=[{"recipient_name": "Kim", "recipient_phone": "010"}])
        delivery_id = load_order(order_id).deliveries[0].id
        shipment_id = _create_shipment(order_id, admin, delivery_id=delivery_id, status="shipped")
        delivery = load_order(order_id).deliveries[0]
        assert delivery.shipment_id == shipment_id
        assert delivery.delivery_status == DeliveryStatus.IN_TRANSIT.value


class TestShipmentItems:
    def test_add_item_allocates_on_ledger(self, place_order, admin):
        order_id = place_order()
        kb = _item(order_id, "prod-kb")
        shipment_id = _create_shipment(order_id, admin)
        shipment_item_id = _add_item(order_id, shipment_id, kb.id, 1, admin)

        shipment = current_domain.repository_for(Shipment).get(shipment_id)
        assert shipment.item(shipment_item_id).shipped_quantity == 1
        assert book.position(kb.id)["shipped_quantity"] == 1

    def test_order_item_from_another_order_not_found(self, place_order, admin):
        first = place_order()
        second = place_order()
        foreign = _item(second, "prod-kb")
        shipment_id = _create_shipment(first, admin)
        with pytest.raises(NotFound):
            _add_item(first, shipment_id, foreign.id, 1, admin)

    def test_shipment_of_another_order_not_found(self, place_order, admin):
        first = place_order()
        second = place_order()
        shipment_id = _create_shipment(second, admin)
        with pytest.raises(NotFound):
            _add_item(first, shipment_id, _item(first, "prod-kb").id, 1, admin)

    def test_same_line_twice_in_one_shipment_conflicts(self, place_order, admin):
        order_id = place_order()
        kb = _item(order_id, "prod-kb")
        shipment_id = _create_shipment(order_id, admin)
        _add_item(order_id, shipment_id, kb.id, 1, admin)
        with pytest.raises(Conflict):
            _add_item(order_id, shipment_id, kb.id, 1, admin)

    def test_split_shipments_cannot_exceed_ordered_quantity(self, place_order, admin):
        order_id = place_order()
        kb = _item(order_id, "prod-kb")
        first = _create_shipment(order_id, admin, tracking_number="TRK-A")
        second = _create_shipment(order_id, admin, tracking_number="TRK-B")
        _add_item(order_id, first, kb.id, 1, admin)
        with pytest.raises(QuantityExceeded):
            _add_item(order_id, second, kb.id, 2, admin)
        assert book.position(kb.id)["shipped_quantity"] == 1
        assert current_domain.repository_for(Shipment).get(second).items == []

    def test_update_recomputes_delta(self, place_order, admin):
        order_id = place_order()
        kb = _item(order_id, "prod-kb")
        shipment_id = _create_shipment(order_id, admin)
        shipment_item_id = _add_item(order_id, shipment_id, kb.id, 1, admin)
        _update_item(order_id, shipment_id, shipment_item_id, 2, admin)
        _update_item(order_id, shipment_id, shipment_item_id, 2, admin)
        assert book.position(kb.id)["shipped_quantity"] == 2

    def test_update_down_releases(self, place_order, admin):
        order_id = place_order()
        kb = _item(order_id, "prod-kb")
        shipment_id = _create_shipment(order_id, admin)
        shipment_item_id = _add_item(order_id, shipment_id, kb.id, 2, admin)
        _update_item(order_id, shipment_id, shipment_item_id, 1, admin)
        assert book.position(kb.id)["shipped_quantity"] == 1

    def test_update_beyond_ordered_rejected(self, place_order, admin):
        order_id = place_order()
        kb = _item(order_id, "prod-kb")
        shipment_id = _create_shipment(order_id, admin)
        shipment_item_id = _add_item(order_id, shipment_id, kb.id, 1, admin)
        with pytest.raises(QuantityExceeded):
            _update_item(order_id, shipment_id, shipment_item_id, 3, admin)
        shipment = current_domain.repository_for(Shipment).get(shipment_id)
        assert shipment.item(shipment_item_id).shipped_quantity == 1

    def test_seller_limited_to_own_lines(self, place_order, seller_a):
        order_id = place_order()
        shipment_id = _create_shipment(order_id, seller_a)
        _add_item(order_id, shipment_id, _item(order_id, "prod-kb").id, 1, seller_a)
        with pytest.raises(Forbidden):
            _add_item(order_id, shipment_id, _item(order_id, "prod-mouse").id, 1, seller_a)

    def test_seller_cannot_touch_other_sellers_shipment(self, place_order, seller_a, seller_b):
        order_id = place_order()
        shipment_id = _create_shipment(order_id, seller_a)
        with pytest.raises(Forbidden):
            _add_item(order_id, shipment_id, _item(order_id, "prod-mouse").id, 1, seller_b)


class TestShipmentStatus:
    def test_shipped_stamps_time_and_moves_delivery(self, place_order, admin):
        order_id = place_order(deliveries=[{"recipient_name": "Kim", "recipient_phone": "010"}])
        delivery_id = load_order(order_id).deliveries[0].id
        shipment_id = _create_shipment(order_id, admin, delivery_id=delivery_id)
        _set_status(order_id, shipment_id, "shipped", admin)

        shipment = current_domain.repository_for(Shipment).get(shipment_id)
        assert shipment.shipped_at is not None
        assert load_order(order_id).deliveries[0].delivery_status == DeliveryStatus.IN_TRANSIT.value

    def test_backward_move_rejected(self, place_order, admin):
        order_id = place_order()
        shipment_id = _create_shipment(order_id, admin)
        _set_status(order_id, shipment_id, "shipped", admin)
        with pytest.raises(ImmutableStateViolation):
            _set_status(order_id, shipment_id, "pending", admin)

    def test_unknown_status_rejected(self, place_order, admin):
        order_id = place_order()
        shipment_id = _create_shipment(order_id, admin)
        with pytest.raises(ValidationError):
            _set_status(order_id, shipment_id, "teleported", admin)

    def test_buyer_cannot_change_status(self, place_order, admin, buyer):
        order_id = place_order()
        shipment_id = _create_shipment(order_id, admin)
        with pytest.raises(Forbidden):
            _set_status(order_id, shipment_id, "shipped", buyer)

    def test_seller_cannot_deliver_unassigned_shipment_of_other_seller(self, place_order, admin, seller_a):
        order_id = place_order()
        mouse = _item(order_id, "prod-mouse")
        shipment_id = _create_shipment(order_id, admin)
        _add_item(order_id, shipment_id, mouse.id, 1, admin)

        with pytest.raises(Forbidden):
            _set_status(order_id, shipment_id, "delivered", seller_a)

        assert _item(order_id, "prod-mouse").status == ItemStatus.ORDERED.value
        assert book.position(mouse.id)["delivered_quantity"] == 0
        assert current_domain.repository_for(Shipment).get(shipment_id).status == ShipmentStatus.PENDING.value

    def test_seller_moves_unassigned_shipment_of_own_lines(self, place_order, admin, seller_a):
        order_id = place_order()
        shipment_id = _create_shipment(order_id, admin)
        _add_item(order_id, shipment_id, _item(order_id, "prod-kb").id, 1, admin)
        _set_status(order_id, shipment_id, "shipped", seller_a)
        assert current_domain.repository_for(Shipment).get(shipment_id).status == ShipmentStatus.SHIPPED.value

    def test_full_delivery_fulfils_lines_and_order(self, place_order, admin):
        order_id = place_order(deliveries=[{"recipient_name": "Kim", "recipient_phone": "010"}])
        delivery_id = load_order(order_id).deliveries[0].id
        shipment_id = _create_shipment(order_id, admin, delivery_id=delivery_id)
        _add_item(order_id, shipment_id, _item(order_id, "prod-kb").id, 2, admin)
        _add_item(order_id, shipment_id, _item(order_id, "prod-mouse").id, 1, admin)
        _set_status(order_id, shipment_id, "shipped", admin)
        _set_status(order_id, shipment_id, "delivered", admin)

        order = load_order(order_id)
        assert all(i.status == ItemStatus.FULFILLED.value for i in order.items)
        assert order.status == OrderStatus.FULFILLED.value
        delivery = order.deliveries[0]
        assert delivery.delivery_status == DeliveryStatus.DELIVERED.value
        assert delivery.delivery_attempts == 1
        assert delivery.confirmed_at is not None

    def test_partial_delivery_leaves_line_ordered(self, place_order, admin):
        order_id = place_order()
        shipment_id = _create_shipment(order_id, admin)
        _add_item(order_id, shipment_id, _item(order_id, "prod-kb").id, 1, admin)
        _set_status(order_id, shipment_id, "delivered", admin)

        assert _item(order_id, "prod-kb").status == ItemStatus.ORDERED.value
        assert book.position(_item(order_id, "prod-kb").id)["delivered_quantity"] == 1
        assert load_order(order_id).status == OrderStatus.PLACED.value


class TestDeliveredShipmentIsFrozen:
    def test_ship_one_update_to_two_deliver_then_update_fails(self, place_order, admin, seller_a):
        order_id = place_order()
        kb = _item(order_id, "prod-kb")
        assert kb.quantity == 2

        shipment_id = _create_shipment(order_id, seller_a)
        shipment_item_id = _add_item(order_id, shipment_id, kb.id, 1, seller_a)
        _update_item(order_id, shipment_id, shipment_item_id, 2, seller_a)
        _set_status(order_id, shipment_id, "delivered", seller_a)

        for caller in (seller_a, admin):
            with pytest.raises(ImmutableStateViolation):
                _update_item(order_id, shipment_id, shipment_item_id, 1, caller)

        assert book.position(kb.id) == {
            "order_item_id": str(kb.id),
            "ordered_quantity": 2,
            "shipped_quantity": 2,
            "delivered_quantity": 2,
            "refunded_quantity": 0,
        }

    def test_cannot_add_items_after_delivery(self, place_order, admin):
        order_id = place_order()
        shipment_id = _create_shipment(order_id, admin)
        _set_status(order_id, shipment_id, "delivered", admin)
        with pytest.raises(ImmutableStateViolation):
            _add_item(order_id, shipment_id, _item(order_id, "prod-kb").id, 1, admin)
