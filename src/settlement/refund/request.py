"""Refund request: command and handler.

An order carries at most one refund for its whole lifetime. The check runs
inside the per-order lock the API holds around the dispatch, so two racing
requests cannot both pass it.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext, Role
from settlement.access.gate import authorize_refund_create
from settlement.domain import settlement
from settlement.errors import DuplicateRefund
from settlement.ledger import book
from settlement.order.queries import load_order
from settlement.refund.refund import Refund

logger = structlog.get_logger(__name__)


@settlement.command(part_of="Refund")
class RequestRefund:
    order_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)
    currency = String(required=True, max_length=3)
    reason = Text()
    actor_id = Identifier()
    order_item_id = Identifier()
    quantity = Integer(min_value=1)
    caller_role = String(max_length=20)
    caller_id = Identifier()


def _actor_role(caller: CallerContext, order, actor_id: str) -> str:
    if actor_id == caller.subject_id:
        return caller.role.value
    if str(order.buyer_id) == actor_id:
        return Role.BUYER.value
    return Role.SELLER.value


def _validate_against_order(command, order) -> None:
    errors = {}
    if command.currency.upper() != order.currency:
        errors["currency"] = [f"Refund currency must match order currency {order.currency}"]
    if command.amount <= 0:
        errors["amount"] = ["Refund amount must be positive"]
    elif command.amount > order.total_amount:
        errors["amount"] = [f"Refund amount exceeds order total {order.total_amount}"]
    if (command.order_item_id is None) != (command.quantity is None):
        errors["quantity"] = ["order_item_id and quantity must be given together"]
    if errors:
        raise ValidationError(errors)


@settlement.command_handler(part_of=Refund)
class RequestRefundHandler:
    @handle(RequestRefund)
    def request_refund(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        actor_id = str(command.actor_id or caller.subject_id)
        authorize_refund_create(caller, order, actor_id)

        repo = current_domain.repository_for(Refund)
        if repo._dao.query.filter(order_id=str(order.id)).all().items:
            raise DuplicateRefund(order.id)

        _validate_against_order(command, order)
        if command.order_item_id:
            item = order.item(command.order_item_id)
            book.record_refund(item.id, command.quantity)

        refund = Refund.request(
            order_id=str(order.id),
            actor_id=actor_id,
            actor_role=_actor_role(caller, order, actor_id),
            amount=command.amount,
            currency=command.currency,
            reason=command.reason,
            order_item_id=command.order_item_id,
            quantity=command.quantity,
        )
        repo.add(refund)
        logger.info(
            "Refund requested",
            order_id=str(order.id),
            refund_id=str(refund.id),
            refund_code=refund.refund_code,
            actor_id=actor_id,
            amount=refund.amount,
        )
        return str(refund.id)
