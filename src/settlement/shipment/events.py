"""Shipment domain events."""

from protean.fields import DateTime, Identifier, Integer, String

from settlement.domain import settlement


@settlement.event(part_of="Shipment")
class ShipmentRegistered:
    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    seller_id = Identifier()
    shipment_code = String(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    status = String(required=True)
    registered_at = DateTime(required=True)


@settlement.event(part_of="Shipment")
class ShipmentItemAdded:
    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    shipment_item_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    shipped_quantity = Integer(required=True)
    added_at = DateTime(required=True)


@settlement.event(part_of="Shipment")
class ShipmentItemQuantityChanged:
    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    shipment_item_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    changed_at = DateTime(required=True)


@settlement.event(part_of="Shipment")
class ShipmentShipped:
    """The carrier picked the parcel up."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    carrier = String(required=True)
    tracking_number = String(required=True)
    shipped_at = DateTime(required=True)


@settlement.event(part_of="Shipment")
class ShipmentDelivered:
    """Terminal: the shipment and all of its items are frozen from here on."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    item_count = Integer(required=True)
    delivered_at = DateTime(required=True)
