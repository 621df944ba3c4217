"""Order domain events: immutable facts about order and order-line state changes."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from settlement.domain import settlement


@settlement.event(part_of="Order")
class OrderPlaced:
    """An order was created from a cart snapshot."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    cart_id = Identifier()
    currency = String(required=True)
    total_amount = Float(required=True)
    items = Text(required=True)  # JSON list of {item_id, product_id, seller_id, quantity}
    item_count = Integer(required=True)
    placed_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderItemAdded:
    """An administrator appended a line to an existing order."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    quantity = Integer(required=True)
    final_price = Float(required=True)
    added_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderItemQuantityChanged:
    """The ordered quantity of a line changed before it was shipped."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    changed_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderItemCancelled:
    """A line was cancelled before any of it shipped."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderItemFulfilled:
    """Every unit of a line has been shipped and delivered."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    fulfilled_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderItemStatusOverridden:
    """An administrator forced a line into a given status."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    overridden_at = DateTime(required=True)


@settlement.event(part_of="Order")
class DeliveryProgressed:
    """A delivery linked to a shipment changed status."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    delivery_status = String(required=True)
    delivery_attempts = Integer(required=True)
    progressed_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderFulfilled:
    """Every live line of the order is fulfilled."""

    __version__ = 1

    order_id = Identifier(required=True)
    fulfilled_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderCancelled:
    """Every line of the order was cancelled."""

    __version__ = 1

    order_id = Identifier(required=True)
    cancelled_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderUpdated:
    """The customer edited order-level fields while nothing had shipped."""

    __version__ = 1

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    changes = Text(required=True)  # JSON {field: [previous, new]}
    updated_at = DateTime(required=True)
