"""Order reads: loading orders and scoped item detail."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_item_read, authorize_order_read
from settlement.errors import OrderNotFound
from settlement.order.order import Order


def load_order(order_id) -> Order:
    """Fetch an order or raise ``OrderNotFound``."""
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError:
        raise OrderNotFound(order_id) from None


def get_order(caller: CallerContext, order_id) -> Order:
    order = load_order(order_id)
    authorize_order_read(caller, order)
    return order


def get_order_item(caller: CallerContext, order_id, item_id):
    """Return ``(order, item)`` for a line the caller may see."""
    order = load_order(order_id)
    item = order.item(item_id)
    authorize_item_read(caller, order, item)
    return order, item
