"""Order line administration: add, re-quantify, cancel and override lines.

Every command here is admin-only. Quantity changes and cancellations are
refused once any shipment item holds quantity against the line.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_admin
from settlement.domain import settlement
from settlement.errors import ImmutableStateViolation
from settlement.ledger import book
from settlement.order.creation import resolve_item
from settlement.order.order import ItemStatus, Order
from settlement.order.queries import load_order


@settlement.command(part_of="Order")
class AddOrderItem:
    order_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    seller_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(min_value=0.0)
    final_price = Float(min_value=0.0)
    discount_snapshot = Text()
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command(part_of="Order")
class UpdateOrderItemQuantity:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command(part_of="Order")
class CancelOrderItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    reason = String(max_length=500)
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command(part_of="Order")
class OverrideOrderItemStatus:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command(part_of="Order")
class UpdateOrderItem:
    """Quantity and status change applied together, or not at all."""

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(min_value=1)
    status = String(max_length=20)
    caller_role = String(max_length=20)
    caller_id = Identifier()


def _locked_by_shipments(order_item_id) -> None:
    if book.is_referenced(order_item_id):
        raise ImmutableStateViolation({"item_id": [f"Order item '{order_item_id}' is already referenced by a shipment"]})


def _check_item_status(status: str) -> None:
    if status not in {s.value for s in ItemStatus}:
        raise ValidationError({"status": [f"Unknown item status '{status}'"]})


def _change_quantity(order, item_id, quantity: int) -> None:
    item = order.item(item_id)
    _locked_by_shipments(item.id)
    order.change_item_quantity(item.id, quantity)
    book.amend_ordered_quantity(item.id, quantity)


@settlement.command_handler(part_of=Order)
class OrderItemsHandler:
    @handle(AddOrderItem)
    def add_order_item(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        authorize_admin(caller, "add order items", order.id)

        item_data = resolve_item(
            {
                "product_id": command.product_id,
                "variant_id": command.variant_id,
                "seller_id": command.seller_id,
                "quantity": command.quantity,
                "unit_price": command.unit_price,
                "final_price": command.final_price,
                "discount_snapshot": command.discount_snapshot,
            }
        )
        item = order.add_item(item_data)
        book.reserve(order.id, item.id, item.quantity, item.seller_id)
        current_domain.repository_for(Order).add(order)
        return str(item.id)

    @handle(UpdateOrderItemQuantity)
    def update_order_item_quantity(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        authorize_admin(caller, "change order item quantities", order.id)

        _change_quantity(order, command.item_id, command.quantity)
        current_domain.repository_for(Order).add(order)

    @handle(CancelOrderItem)
    def cancel_order_item(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        authorize_admin(caller, "cancel order items", order.id)

        item = order.item(command.item_id)
        _locked_by_shipments(item.id)
        order.cancel_item(item.id, reason=command.reason)
        current_domain.repository_for(Order).add(order)

    @handle(OverrideOrderItemStatus)
    def override_order_item_status(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        authorize_admin(caller, "override order item status", order.id)

        _check_item_status(command.status)
        order.override_item_status(command.item_id, command.status)
        current_domain.repository_for(Order).add(order)

    @handle(UpdateOrderItem)
    def update_order_item(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        authorize_admin(caller, "update order items", order.id)

        if command.quantity is None and command.status is None:
            raise ValidationError({"body": ["Provide quantity or status"]})
        order.item(command.item_id)
        if command.status is not None:
            _check_item_status(command.status)

        if command.quantity is not None:
            _change_quantity(order, command.item_id, command.quantity)
        if command.status is not None:
            order.override_item_status(command.item_id, command.status)
        current_domain.repository_for(Order).add(order)
