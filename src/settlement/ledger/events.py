"""Inventory ledger events: facts about quantities recorded against an order line."""

from protean.fields import DateTime, Identifier, Integer

from settlement.domain import settlement


@settlement.event(part_of="LedgerLine")
class LineReserved:
    """An order line was opened on the ledger with its ordered quantity."""

    __version__ = 1

    ledger_line_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    ordered_quantity = Integer(required=True)
    reserved_at = DateTime(required=True)


@settlement.event(part_of="LedgerLine")
class ShipmentQuantityAllocated:
    """A shipment item claimed (more of) the line's ordered quantity."""

    __version__ = 1

    ledger_line_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    shipment_item_id = Identifier(required=True)
    quantity = Integer(required=True)
    shipped_quantity = Integer(required=True)
    allocated_at = DateTime(required=True)


@settlement.event(part_of="LedgerLine")
class ShipmentQuantityReleased:
    """A shipment item gave back part of its earlier allocation."""

    __version__ = 1

    ledger_line_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    shipment_item_id = Identifier(required=True)
    released = Integer(required=True)
    shipped_quantity = Integer(required=True)
    released_at = DateTime(required=True)


@settlement.event(part_of="LedgerLine")
class LineDeliveryRecorded:
    """Allocations belonging to a delivered shipment were marked delivered."""

    __version__ = 1

    ledger_line_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    delivered_quantity = Integer(required=True)
    recorded_at = DateTime(required=True)


@settlement.event(part_of="LedgerLine")
class LineRefundRecorded:
    """Part of the line's quantity was refunded."""

    __version__ = 1

    ledger_line_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    quantity = Integer(required=True)
    refunded_quantity = Integer(required=True)
    recorded_at = DateTime(required=True)


@settlement.event(part_of="LedgerLine")
class OrderedQuantityAmended:
    """The ordered quantity changed before anything was allocated."""

    __version__ = 1

    ledger_line_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    amended_at = DateTime(required=True)
