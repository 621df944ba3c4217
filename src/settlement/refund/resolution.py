"""Refund resolution: admin moves a refund through its workflow."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_admin
from settlement.domain import settlement
from settlement.order.queries import load_order
from settlement.refund.listing import load_refund
from settlement.refund.refund import Refund, RefundStatus


@settlement.command(part_of="Refund")
class UpdateRefundStatus:
    order_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    note = Text()
    caller_role = String(max_length=20)
    caller_id = Identifier()


@settlement.command_handler(part_of=Refund)
class RefundResolutionHandler:
    @handle(UpdateRefundStatus)
    def update_refund_status(self, command):
        caller = CallerContext.from_command(command)
        order = load_order(command.order_id)
        authorize_admin(caller, "change refund status", command.refund_id)
        refund = load_refund(order.id, command.refund_id)

        if command.status not in {s.value for s in RefundStatus}:
            raise ValidationError({"status": [f"Unknown refund status '{command.status}'"]})
        refund.resolve(command.status, note=command.note)
        current_domain.repository_for(Refund).add(refund)
