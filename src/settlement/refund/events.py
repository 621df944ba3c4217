"""Refund domain events."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from settlement.domain import settlement


@settlement.event(part_of="Refund")
class RefundRequested:
    __version__ = 1

    refund_id = Identifier(required=True)
    order_id = Identifier(required=True)
    refund_code = String(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    reason = Text()
    order_item_id = Identifier()
    quantity = Integer()
    requested_at = DateTime(required=True)


@settlement.event(part_of="Refund")
class RefundStatusChanged:
    __version__ = 1

    refund_id = Identifier(required=True)
    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    note = Text()
    changed_at = DateTime(required=True)
