"""Customer edits to an order's own fields: status, type, paid amount and currency."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_order_update
from settlement.domain import settlement
from settlement.ledger import book
from settlement.order.order import Order
from settlement.order.queries import load_order

logger = structlog.get_logger(__name__)


@settlement.command(part_of="Order")
class UpdateOrder:
    order_id = Identifier(required=True)
    status = String(max_length=20)
    order_type = String(max_length=50)
    paid_amount = Float(min_value=0.0)
    currency = String(max_length=3)
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command_handler(part_of=Order)
class UpdateOrderHandler:
    @handle(UpdateOrder)
    def update_order(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        authorize_order_update(caller, order)

        if any(line.has_allocations() for line in book.lines_for_order(order.id)):
            raise ValidationError({"status": ["Cannot update an order whose shipping is underway"]})

        changes = order.update_details(
            caller.subject_id,
            status=command.status,
            order_type=command.order_type,
            paid_amount=command.paid_amount,
            currency=command.currency,
        )
        current_domain.repository_for(Order).add(order)

        logger.info("Order updated", order_id=str(order.id), actor_id=caller.subject_id, fields=sorted(changes))
