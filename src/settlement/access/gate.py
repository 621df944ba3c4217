"""Access control gate: role-scoped authorization for orders, shipments and refunds.

Policy:
    Admin   full read/write on every order, shipment and refund.
    Seller  shipments and shipment items only for order lines it sells;
            refunds it requested itself.
    Buyer   reads its own orders, deliveries, shipments and refunds;
            requests refunds on its own orders.

Cross-tenant access raises ``Forbidden`` rather than pretending the
resource does not exist, and listing another tenant's refunds is refused
outright instead of returning an empty page.
"""

import structlog

from settlement.access.context import CallerContext
from settlement.errors import Forbidden

logger = structlog.get_logger(__name__)


def _deny(caller: CallerContext, action: str, resource_id) -> None:
    logger.warning(
        "Access denied",
        role=caller.role.value,
        subject_id=caller.subject_id,
        action=action,
        resource_id=str(resource_id),
    )
    raise Forbidden(f"{caller.role.value} '{caller.subject_id}' may not {action}")


def seller_item_ids(order, seller_id: str) -> set[str]:
    """Return ids of the order lines sold by ``seller_id``."""
    return {str(item.id) for item in (order.items or []) if str(item.seller_id) == str(seller_id)}


def sells_on(order, seller_id: str) -> bool:
    return bool(seller_item_ids(order, seller_id))


def owns_order(caller: CallerContext, order) -> bool:
    return caller.is_buyer() and str(order.buyer_id) == caller.subject_id


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
def authorize_admin(caller: CallerContext, action: str, resource_id="") -> None:
    if not caller.is_admin():
        _deny(caller, action, resource_id)


def authorize_order_create(caller: CallerContext, buyer_id: str) -> None:
    if caller.is_admin():
        return
    if caller.is_buyer() and str(buyer_id) == caller.subject_id:
        return
    _deny(caller, "place orders for another customer", buyer_id)


def authorize_order_read(caller: CallerContext, order) -> None:
    if caller.is_admin() or owns_order(caller, order):
        return
    if caller.is_seller() and sells_on(order, caller.subject_id):
        return
    _deny(caller, "read this order", order.id)


def authorize_order_update(caller: CallerContext, order) -> None:
    if caller.is_admin() or owns_order(caller, order):
        return
    _deny(caller, "update this order", order.id)


def authorize_item_read(caller: CallerContext, order, item) -> None:
    if caller.is_admin() or owns_order(caller, order):
        return
    if caller.is_seller() and str(item.seller_id) == caller.subject_id:
        return
    _deny(caller, "read this order item", item.id)


# ---------------------------------------------------------------------------
# Shipments
# ---------------------------------------------------------------------------
def authorize_shipment_create(caller: CallerContext, order, seller_id: str | None) -> None:
    if caller.is_admin():
        return
    if caller.is_seller() and sells_on(order, caller.subject_id):
        if seller_id and str(seller_id) != caller.subject_id:
            _deny(caller, "register shipments for another seller", order.id)
        return
    _deny(caller, "register shipments on this order", order.id)


def authorize_shipment_write(caller: CallerContext, order, shipment, order_item_id=None) -> None:
    """Sellers may only touch their own shipments, and only lines they sell."""
    if caller.is_admin():
        return
    if caller.is_seller():
        owned = seller_item_ids(order, caller.subject_id)
        shipment_owner = str(shipment.seller_id) if shipment.seller_id else None
        if owned and shipment_owner in (None, caller.subject_id):
            if order_item_id is None or str(order_item_id) in owned:
                return
    _deny(caller, "modify this shipment", shipment.id)


def authorize_shipment_status(caller: CallerContext, order, shipment) -> None:
    """A seller may move only its own shipment, or an unassigned one whose lines are all its own."""
    if caller.is_admin():
        return
    if caller.is_seller():
        owned = seller_item_ids(order, caller.subject_id)
        if shipment.seller_id:
            if str(shipment.seller_id) == caller.subject_id and owned:
                return
        else:
            carried = {str(item.order_item_id) for item in (shipment.items or [])}
            if carried and carried <= owned:
                return
    _deny(caller, "change the status of this shipment", shipment.id)


def authorize_shipment_read(caller: CallerContext, order) -> None:
    authorize_order_read(caller, order)


def visible_shipments(caller: CallerContext, shipments: list) -> list:
    if caller.is_seller():
        return [s for s in shipments if not s.seller_id or str(s.seller_id) == caller.subject_id]
    return list(shipments)


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------
def eligible_refund_actor(order, actor_id: str) -> bool:
    """The buyer of the order or a seller of one of its lines."""
    return str(order.buyer_id) == str(actor_id) or sells_on(order, actor_id)


def authorize_refund_create(caller: CallerContext, order, actor_id: str) -> None:
    actor_id = str(actor_id)
    if caller.is_admin():
        if actor_id == caller.subject_id or eligible_refund_actor(order, actor_id):
            return
        _deny(caller, "request a refund on behalf of an unrelated actor", order.id)
    if actor_id != caller.subject_id:
        _deny(caller, "request a refund under another actor's id", order.id)
    if owns_order(caller, order):
        return
    if caller.is_seller() and sells_on(order, caller.subject_id):
        return
    _deny(caller, "request a refund on this order", order.id)


def authorize_refund_read(caller: CallerContext, order) -> None:
    authorize_order_read(caller, order)


def visible_refunds(caller: CallerContext, refunds: list) -> list:
    if caller.is_seller():
        return [r for r in refunds if str(r.actor_id) == caller.subject_id]
    return list(refunds)


def authorize_refund_detail(caller: CallerContext, order, refund) -> None:
    authorize_refund_read(caller, order)
    if caller.is_seller() and str(refund.actor_id) != caller.subject_id:
        _deny(caller, "read another actor's refund", refund.id)
