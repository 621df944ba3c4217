"""Refund aggregate (CQRS): the single refund an order may ever carry.

State Machine:
    PENDING → APPROVED → COMPLETED
    PENDING → DENIED

DENIED and COMPLETED are terminal. A denied refund still counts as the
order's one refund.
"""

import secrets
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from settlement.domain import settlement
from settlement.refund.events import RefundRequested, RefundStatusChanged


class RefundStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    COMPLETED = "completed"


_VALID_TRANSITIONS = {
    RefundStatus.PENDING: {RefundStatus.APPROVED, RefundStatus.DENIED},
    RefundStatus.APPROVED: {RefundStatus.COMPLETED},
    RefundStatus.DENIED: set(),  # terminal
    RefundStatus.COMPLETED: set(),  # terminal
}


def _refund_code() -> str:
    return f"RF-{secrets.token_hex(5).upper()}"


@settlement.aggregate
class Refund:
    order_id = Identifier(required=True)
    refund_code = String(required=True, max_length=20)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    amount = Float(required=True, min_value=0.0)
    currency = String(required=True, max_length=3)
    reason = Text()
    order_item_id = Identifier()
    quantity = Integer(min_value=1)
    status = String(
        max_length=20,
        choices=RefundStatus,
        default=RefundStatus.PENDING.value,
    )
    note = Text()
    requested_at = DateTime()
    resolved_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def request(
        cls,
        order_id: str,
        actor_id: str,
        actor_role: str,
        amount: float,
        currency: str,
        reason: str | None = None,
        order_item_id: str | None = None,
        quantity: int | None = None,
    ):
        now = datetime.now(UTC)
        refund = cls(
            order_id=order_id,
            refund_code=_refund_code(),
            actor_id=actor_id,
            actor_role=actor_role,
            amount=amount,
            currency=currency.upper(),
            reason=reason,
            order_item_id=order_item_id,
            quantity=quantity,
            requested_at=now,
            updated_at=now,
        )
        refund.raise_(
            RefundRequested(
                refund_id=str(refund.id),
                order_id=str(order_id),
                refund_code=refund.refund_code,
                actor_id=str(actor_id),
                actor_role=actor_role,
                amount=amount,
                currency=refund.currency,
                reason=reason,
                order_item_id=str(order_item_id) if order_item_id else None,
                quantity=quantity,
                requested_at=now,
            )
        )
        return refund

    def _assert_can_transition(self, target: RefundStatus) -> None:
        current = RefundStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition refund from {current.value} to {target.value}"]})

    def resolve(self, status: str, note: str | None = None) -> None:
        target = RefundStatus(status)
        self._assert_can_transition(target)

        now = datetime.now(UTC)
        previous = self.status
        self.status = target.value
        self.note = note or self.note
        self.updated_at = now
        if target in (RefundStatus.DENIED, RefundStatus.COMPLETED):
            self.resolved_at = now
        self.raise_(
            RefundStatusChanged(
                refund_id=str(self.id),
                order_id=str(self.order_id),
                previous_status=previous,
                new_status=target.value,
                note=note,
                changed_at=now,
            )
        )
