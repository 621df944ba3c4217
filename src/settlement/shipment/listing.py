"""Shipment reads: scoped detail and filtered, paginated lists."""

from datetime import datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_shipment_read, visible_shipments
from settlement.errors import Forbidden, InvalidQuery, NotFound
from settlement.order.queries import load_order
from settlement.shared.pagination import Page, paginate, within
from settlement.shipment.shipment import Shipment, ShipmentStatus


def load_shipment(order_id, shipment_id) -> Shipment:
    """Fetch a shipment that belongs to ``order_id`` or raise ``NotFound``."""
    try:
        shipment = current_domain.repository_for(Shipment).get(str(shipment_id))
    except ObjectNotFoundError:
        raise NotFound("shipment", shipment_id) from None
    if str(shipment.order_id) != str(order_id):
        raise NotFound("shipment", shipment_id)
    return shipment


def shipments_for_order(order_id) -> list[Shipment]:
    repo = current_domain.repository_for(Shipment)
    return repo._dao.query.filter(order_id=str(order_id)).all().items


def get_shipment(caller: CallerContext, order_id, shipment_id) -> Shipment:
    order = load_order(order_id)
    authorize_shipment_read(caller, order)
    shipment = load_shipment(order.id, shipment_id)
    if not visible_shipments(caller, [shipment]):
        raise Forbidden(f"{caller.role.value} '{caller.subject_id}' may not read shipment '{shipment_id}'")
    return shipment


def list_shipments(
    caller: CallerContext,
    order_id,
    status: str | None = None,
    carrier: str | None = None,
    shipped_from: datetime | None = None,
    shipped_to: datetime | None = None,
    page: int = 1,
    limit: int | None = None,
) -> Page:
    """List an order's shipments, oldest first.

    ``carrier`` matches case-insensitively but exactly; ``shipped_from`` and
    ``shipped_to`` bound ``shipped_at`` as a half-open range.
    """
    if status and status not in {s.value for s in ShipmentStatus}:
        raise InvalidQuery({"status": [f"Unknown shipment status '{status}'"]})

    order = load_order(order_id)
    authorize_shipment_read(caller, order)

    shipments = visible_shipments(caller, shipments_for_order(order.id))
    if status:
        shipments = [s for s in shipments if s.status == status]
    if carrier:
        wanted = carrier.strip().casefold()
        shipments = [s for s in shipments if (s.carrier or "").strip().casefold() == wanted]
    shipments = [s for s in shipments if within(s.shipped_at, shipped_from, shipped_to)]
    shipments.sort(key=lambda s: (s.created_at, str(s.id)))

    return paginate(shipments, page, limit)
