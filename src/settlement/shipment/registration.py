"""Shipment registration: command and handler."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_shipment_create
from settlement.domain import settlement
from settlement.errors import DuplicateTracking
from settlement.order.order import DeliveryStatus, Order
from settlement.order.queries import load_order
from settlement.shipment.shipment import Shipment, ShipmentStatus

logger = structlog.get_logger(__name__)


@settlement.command(part_of="Shipment")
class CreateShipment:
    """Register a parcel against an order."""

    order_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)
    status = String(max_length=20)
    seller_id = Identifier()
    shipment_code = String(max_length=50)
    delivery_id = Identifier()
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command_handler(part_of=Shipment)
class CreateShipmentHandler:
    @handle(CreateShipment)
    def create_shipment(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        authorize_shipment_create(caller, order, command.seller_id)

        if command.status and command.status not in {s.value for s in ShipmentStatus}:
            raise ValidationError({"status": [f"Unknown shipment status '{command.status}'"]})

        repo = current_domain.repository_for(Shipment)
        existing = repo._dao.query.filter(
            order_id=str(order.id),
            tracking_number=command.tracking_number,
        ).all()
        if existing.items:
            raise DuplicateTracking(order.id, command.tracking_number)

        seller_id = command.seller_id
        if seller_id is None and caller.is_seller():
            seller_id = caller.subject_id

        shipment = Shipment.register(
            order_id=str(order.id),
            carrier=command.carrier,
            tracking_number=command.tracking_number,
            status=command.status,
            seller_id=seller_id,
            shipment_code=command.shipment_code,
        )

        if command.delivery_id:
            order.assign_delivery(command.delivery_id, shipment.id)
            if shipment.status == ShipmentStatus.SHIPPED.value:
                order.progress_deliveries(shipment.id, DeliveryStatus.IN_TRANSIT)
            current_domain.repository_for(Order).add(order)

        repo.add(shipment)
        logger.info(
            "Shipment registered",
            order_id=str(order.id),
            shipment_id=str(shipment.id),
            carrier=shipment.carrier,
            tracking_number=shipment.tracking_number,
        )
        return str(shipment.id)
