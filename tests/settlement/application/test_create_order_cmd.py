"""Application tests for order creation via domain.process()."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from settlement.access.context import CallerContext
from settlement.errors import Forbidden, NotFound, OrderNotFound, Unauthorized
from settlement.ledger import book
from settlement.ledger.line import LedgerLine
from settlement.order.creation import CreateOrder
from settlement.order.order import Order, OrderStatus
from settlement.order.queries import get_order, get_order_item, load_order


class TestCreateOrder:
    def test_persists_order_with_items(self, place_order):
        order_id = place_order()
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PLACED.value
        assert order.buyer_id == "buyer-001"
        assert len(order.items) == 2

    def test_seller_and_price_come_from_catalogue(self, place_order):
        order = load_order(place_order())
        kb = next(i for i in order.items if i.product_id == "prod-kb")
        mouse = next(i for i in order.items if i.product_id == "prod-mouse")
        assert kb.seller_id == "seller-a"
        assert kb.unit_price == 50.0
        assert kb.final_price == 100.0
        assert mouse.seller_id == "seller-b"

    def test_opens_one_ledger_line_per_item(self, place_order):
        order = load_order(place_order())
        lines = book.lines_for_order(order.id)
        assert len(lines) == 2
        for item in order.items:
            position = book.position(item.id)
            assert position["ordered_quantity"] == item.quantity
            assert position["shipped_quantity"] == 0

    def test_unknown_product_not_found(self, place_order):
        with pytest.raises(NotFound) as exc:
            place_order(items=[{"product_id": "prod-ghost", "quantity": 1}])
        assert exc.value.resource == "product"

    def test_unknown_variant_not_found(self, place_order):
        with pytest.raises(NotFound) as exc:
            place_order(items=[{"product_id": "prod-kb", "variant_id": "var-kb-green", "quantity": 1}])
        assert exc.value.resource == "variant"

    def test_unavailable_product_rejected(self, place_order):
        with pytest.raises(ValidationError):
            place_order(items=[{"product_id": "prod-retired", "quantity": 1}])

    def test_failed_creation_writes_nothing(self, place_order):
        with pytest.raises(NotFound):
            place_order(items=[{"product_id": "prod-kb", "quantity": 1}, {"product_id": "prod-ghost", "quantity": 1}])
        assert current_domain.repository_for(LedgerLine)._dao.query.all().items == []

    def test_total_mismatch_is_accepted(self, place_order):
        order = load_order(place_order(total_amount=999.0))
        assert order.total_amount == 999.0
        assert order.items_total() == 120.0

    def test_address_id_resolved_to_snapshot(self, place_order, address_book):
        order_id = place_order(
            deliveries=[{"recipient_name": "Kim", "recipient_phone": "010-1234", "address_id": "addr-home"}]
        )
        address_book.register("addr-home", line1="Somewhere else", city="Daegu")
        delivery = load_order(order_id).deliveries[0]
        assert delivery.address_snapshot.city == "Busan"
        assert delivery.address_snapshot.line1 == "12 Harbor Road"

    def test_unknown_address_not_found(self, place_order):
        with pytest.raises(NotFound):
            place_order(deliveries=[{"recipient_name": "Kim", "recipient_phone": "010", "address_id": "addr-none"}])

    def test_payments_recorded(self, place_order):
        order = load_order(
            place_order(
                payments=[
                    {
                        "payment_type": "card",
                        "status": "paid",
                        "amount": 120.0,
                        "requested_at": "2024-05-01T10:00:00+00:00",
                    }
                ]
            )
        )
        payment = order.payments[0]
        assert payment.customer_id == "buyer-001"
        assert payment.currency == "KRW"
        assert order.paid_amount == 120.0

    def test_admin_may_place_for_buyer(self, place_order, admin):
        order = load_order(place_order(caller=admin))
        assert order.buyer_id == "buyer-001"

    def test_seller_may_not_place_orders(self, place_order, seller_a):
        with pytest.raises(Forbidden):
            place_order(caller=seller_a)

    def test_missing_caller_unauthorized(self):
        command = CreateOrder(
            buyer_id="buyer-001",
            currency="KRW",
            total_amount=50.0,
            items=json.dumps([{"product_id": "prod-kb", "quantity": 1}]),
        )
        with pytest.raises(Unauthorized):
            current_domain.process(command, asynchronous=False)


class TestOrderQueries:
    def test_get_order_scoped(self, place_order, buyer, other_buyer, seller_a):
        order_id = place_order()
        assert str(get_order(buyer, order_id).id) == order_id
        assert str(get_order(seller_a, order_id).id) == order_id
        with pytest.raises(Forbidden):
            get_order(other_buyer, order_id)

    def test_unknown_order(self, buyer):
        with pytest.raises(OrderNotFound):
            get_order(buyer, "ord-missing")

    def test_get_order_item_detail(self, place_order, buyer, seller_b):
        order = load_order(place_order())
        kb = next(i for i in order.items if i.product_id == "prod-kb")
        _, item = get_order_item(buyer, order.id, kb.id)
        assert item.created_at is not None
        assert item.updated_at is not None
        with pytest.raises(Forbidden):
            get_order_item(seller_b, order.id, kb.id)

    def test_get_unknown_item(self, place_order, admin):
        order_id = place_order()
        with pytest.raises(NotFound):
            get_order_item(admin, order_id, "oi-missing")

    def test_caller_context_is_explicit(self, place_order):
        order_id = place_order()
        stranger = CallerContext.of("seller", "seller-z")
        with pytest.raises(Forbidden):
            get_order(stranger, order_id)
