"""Shipment status: command and handler.

Delivering a shipment settles it everywhere at once: the ledger marks its
allocations delivered, linked deliveries move to ``delivered`` and every
order line that is now fully delivered becomes ``fulfilled``.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_shipment_status
from settlement.domain import settlement
from settlement.ledger import book
from settlement.order.order import DeliveryStatus, Order
from settlement.order.queries import load_order
from settlement.shipment.listing import load_shipment
from settlement.shipment.shipment import Shipment, ShipmentStatus

logger = structlog.get_logger(__name__)


@settlement.command(part_of="Shipment")
class UpdateShipmentStatus:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command_handler(part_of=Shipment)
class ShipmentStatusHandler:
    @handle(UpdateShipmentStatus)
    def update_shipment_status(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        shipment = load_shipment(order.id, command.shipment_id)
        authorize_shipment_status(caller, order, shipment)

        if command.status not in {s.value for s in ShipmentStatus}:
            raise ValidationError({"status": [f"Unknown shipment status '{command.status}'"]})

        target = shipment.advance(command.status)
        if target == ShipmentStatus.SHIPPED:
            order.progress_deliveries(shipment.id, DeliveryStatus.IN_TRANSIT)
        elif target == ShipmentStatus.DELIVERED:
            for line in book.record_delivery(shipment):
                if line.is_fully_delivered():
                    order.mark_item_fulfilled(line.order_item_id)
            order.progress_deliveries(shipment.id, DeliveryStatus.DELIVERED)

        current_domain.repository_for(Shipment).add(shipment)
        current_domain.repository_for(Order).add(order)
        logger.info(
            "Shipment status changed",
            order_id=str(order.id),
            shipment_id=str(shipment.id),
            status=target.value,
            order_status=order.status,
        )
