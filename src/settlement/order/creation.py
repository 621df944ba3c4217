"""Order creation: command and handler.

An order is written from a cart snapshot in a single unit of work: the
Order with its items, deliveries and payments, plus one ledger line per item.
"""

import json
from datetime import datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_order_create
from settlement.addresses import get_address_book
from settlement.catalogue import get_catalogue
from settlement.domain import settlement
from settlement.errors import NotFound
from settlement.ledger import book
from settlement.order.order import Order

logger = structlog.get_logger(__name__)


@settlement.command(part_of="Order")
class CreateOrder:
    """Place an order from a cart snapshot."""

    buyer_id = Identifier(required=True)
    currency = String(required=True, max_length=3)
    total_amount = Float(required=True, min_value=0.0)
    items = Text(required=True)  # JSON list of item dicts
    deliveries = Text()  # JSON list of delivery dicts
    payments = Text()  # JSON list of payment dicts
    channel_id = Identifier()
    section_id = Identifier()
    cart_id = Identifier()
    external_order_ref = String(max_length=255)
    order_type = String(max_length=50)
    caller_role = String(max_length=20)
    caller_id = Identifier()


def _load_list(value) -> list[dict]:
    if not value:
        return []
    return json.loads(value) if isinstance(value, str) else list(value)


def resolve_item(item_data: dict) -> dict:
    """Check a line against the catalogue and fill in seller and price defaults."""
    product_id = item_data.get("product_id")
    record = get_catalogue().lookup(str(product_id)) if product_id else None
    if record is None:
        raise NotFound("product", product_id)

    variant_id = item_data.get("variant_id")
    if variant_id and str(variant_id) not in record.variant_ids:
        raise NotFound("variant", variant_id)
    if not record.available:
        raise ValidationError({"product_id": [f"Product '{product_id}' is not available"]})

    resolved = dict(item_data)
    if not resolved.get("seller_id"):
        resolved["seller_id"] = record.seller_id
    if resolved.get("unit_price") is None:
        resolved["unit_price"] = record.unit_price
    return resolved


def resolve_delivery(delivery_data: dict) -> dict:
    """Replace an ``address_id`` with a copy of the address it points to."""
    resolved = dict(delivery_data)
    address_id = resolved.pop("address_id", None)
    if address_id:
        snapshot = get_address_book().snapshot(str(address_id))
        if snapshot is None:
            raise NotFound("address", address_id)
        resolved["address_snapshot"] = snapshot
    return resolved


def _resolve_payment(payment_data: dict, buyer_id: str, currency: str) -> dict:
    resolved = dict(payment_data)
    resolved.setdefault("customer_id", buyer_id)
    resolved.setdefault("currency", currency)
    if isinstance(resolved.get("requested_at"), str):
        resolved["requested_at"] = datetime.fromisoformat(resolved["requested_at"])
    return resolved


@settlement.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        caller = CallerContext.from_command(command)
        authorize_order_create(caller, command.buyer_id)

        items_data = [resolve_item(i) for i in _load_list(command.items)]
        deliveries_data = [resolve_delivery(d) for d in _load_list(command.deliveries)]
        payments_data = [
            _resolve_payment(p, str(command.buyer_id), command.currency.upper()) for p in _load_list(command.payments)
        ]

        order = Order.create(
            buyer_id=command.buyer_id,
            currency=command.currency,
            total_amount=command.total_amount,
            items_data=items_data,
            deliveries_data=deliveries_data,
            payments_data=payments_data,
            channel_id=command.channel_id,
            section_id=command.section_id,
            cart_id=command.cart_id,
            external_order_ref=command.external_order_ref,
            order_type=command.order_type,
        )

        items_total = order.items_total()
        if abs(items_total - order.total_amount) > 0.005:
            logger.warning(
                "Order total differs from item sum",
                order_id=str(order.id),
                total_amount=order.total_amount,
                items_total=items_total,
            )

        for item in order.items:
            book.reserve(order.id, item.id, item.quantity, item.seller_id)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            buyer_id=str(order.buyer_id),
            item_count=len(order.items),
        )
        return str(order.id)
