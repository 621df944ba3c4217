"""Shipment items: put order lines into a shipment and re-quantify them.

Each change is mirrored on the inventory ledger as the absolute quantity
of the shipment item, so the ledger rejects anything that would ship more
than was ordered.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_shipment_write
from settlement.domain import settlement
from settlement.ledger import book
from settlement.order.order import ItemStatus
from settlement.order.queries import load_order
from settlement.shipment.listing import load_shipment
from settlement.shipment.shipment import Shipment


@settlement.command(part_of="Shipment")
class AddShipmentItem:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    shipped_quantity = Integer(required=True, min_value=1)
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command(part_of="Shipment")
class UpdateShipmentItem:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    shipment_item_id = Identifier(required=True)
    shipped_quantity = Integer(required=True, min_value=1)
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command_handler(part_of=Shipment)
class ShipmentItemsHandler:
    @handle(AddShipmentItem)
    def add_shipment_item(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        shipment = load_shipment(order.id, command.shipment_id)
        order_item = order.item(command.order_item_id)
        authorize_shipment_write(caller, order, shipment, order_item.id)

        if order_item.status == ItemStatus.CANCELLED.value:
            raise ValidationError({"order_item_id": [f"Order item '{order_item.id}' has been cancelled"]})

        item = shipment.add_item(str(order_item.id), command.shipped_quantity)
        book.allocate_shipment(order_item.id, shipment.id, item.id, command.shipped_quantity)
        current_domain.repository_for(Shipment).add(shipment)
        return str(item.id)

    @handle(UpdateShipmentItem)
    def update_shipment_item(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        shipment = load_shipment(order.id, command.shipment_id)
        shipment.assert_mutable()
        item = shipment.item(command.shipment_item_id)
        authorize_shipment_write(caller, order, shipment, item.order_item_id)

        shipment.update_item(item.id, command.shipped_quantity)
        book.allocate_shipment(item.order_item_id, shipment.id, item.id, command.shipped_quantity)
        current_domain.repository_for(Shipment).add(shipment)
