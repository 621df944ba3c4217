"""Order aggregate (CQRS): the transactional root of one purchase.

The Order owns its items, deliveries and payments. Shipments, refunds and
ledger lines live in their own aggregates and point back here by id.

Item State Machine:
    ORDERED → FULFILLED   (driven by the shipment tracker once every unit is delivered)
    ORDERED → CANCELLED   (admin, before anything ships)
    any     → any         (admin override only)

Order State Machine:
    PLACED → FULFILLED    (every live item fulfilled)
    PLACED → CANCELLED    (every item cancelled)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from settlement.domain import settlement
from settlement.errors import NotFound
from settlement.order.events import (
    DeliveryProgressed,
    OrderCancelled,
    OrderFulfilled,
    OrderItemAdded,
    OrderItemCancelled,
    OrderItemFulfilled,
    OrderItemQuantityChanged,
    OrderItemStatusOverridden,
    OrderPlaced,
    OrderUpdated,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PLACED = "placed"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class ItemStatus(Enum):
    ORDERED = "ordered"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class DeliveryStatus(Enum):
    PREPARED = "prepared"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


_ITEM_TRANSITIONS = {
    ItemStatus.ORDERED: {ItemStatus.FULFILLED, ItemStatus.CANCELLED},
    ItemStatus.FULFILLED: set(),  # terminal
    ItemStatus.CANCELLED: set(),  # terminal
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@settlement.value_object(part_of="Order")
class AddressSnapshot:
    """Copy of the delivery address taken when the order was placed.

    Never a live reference: edits in the customer's address book do not
    reach orders that already exist.
    """

    line1 = String(max_length=255)
    line2 = String(max_length=255)
    city = String(max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100)
    formatted = Text()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@settlement.entity(part_of="Order")
class OrderItem:
    """One purchased product variant, sold by one seller."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    seller_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    final_price = Float(required=True, min_value=0.0)
    discount_snapshot = Text()
    status = String(
        max_length=20,
        choices=ItemStatus,
        default=ItemStatus.ORDERED.value,
    )
    created_at = DateTime()
    updated_at = DateTime()


@settlement.entity(part_of="Order")
class Delivery:
    """Where and to whom (part of) the order is delivered."""

    shipment_id = Identifier()
    recipient_name = String(required=True, max_length=100)
    recipient_phone = String(required=True, max_length=50)
    address_snapshot = ValueObject(AddressSnapshot)
    delivery_message = String(max_length=500)
    delivery_status = String(
        max_length=20,
        choices=DeliveryStatus,
        default=DeliveryStatus.PREPARED.value,
    )
    delivery_attempts = Integer(default=0, min_value=0)
    confirmed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()


@settlement.entity(part_of="Order")
class Payment:
    """A payment recorded against the order at checkout."""

    customer_id = Identifier(required=True)
    payment_type = String(required=True, max_length=50)
    external_payment_ref = String(max_length=255)
    status = String(required=True, max_length=50)
    amount = Float(required=True, min_value=0.0)
    currency = String(required=True, max_length=3)
    requested_at = DateTime()
    created_at = DateTime()


@settlement.entity(part_of="Order")
class OrderSnapshot:
    """Order-level fields as they stood before an edit, kept for audit."""

    reason = String(required=True, max_length=50)
    actor_id = Identifier(required=True)
    data = Text(required=True)  # JSON of the order-level fields
    taken_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@settlement.aggregate
class Order:
    buyer_id = Identifier(required=True)
    channel_id = Identifier()
    section_id = Identifier()
    cart_id = Identifier()
    external_order_ref = String(max_length=255)
    order_type = String(max_length=50, default="normal")
    status = String(
        max_length=20,
        choices=OrderStatus,
        default=OrderStatus.PLACED.value,
    )
    currency = String(required=True, max_length=3)
    total_amount = Float(required=True, min_value=0.0)
    paid_amount = Float(default=0.0)
    items = HasMany(OrderItem)
    deliveries = HasMany(Delivery)
    payments = HasMany(Payment)
    snapshots = HasMany(OrderSnapshot)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        buyer_id: str,
        currency: str,
        total_amount: float,
        items_data: list[dict],
        deliveries_data: list[dict] | None = None,
        payments_data: list[dict] | None = None,
        channel_id: str | None = None,
        section_id: str | None = None,
        cart_id: str | None = None,
        external_order_ref: str | None = None,
        order_type: str | None = None,
    ):
        """Create an order with its items, deliveries and payments in one go."""
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            buyer_id=buyer_id,
            channel_id=channel_id,
            section_id=section_id,
            cart_id=cart_id,
            external_order_ref=external_order_ref,
            order_type=order_type or "normal",
            currency=currency.upper(),
            total_amount=total_amount,
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            order.add_items(cls._build_item(item_data, now))
        for delivery_data in deliveries_data or []:
            order.add_deliveries(cls._build_delivery(delivery_data, now))
        for payment_data in payments_data or []:
            order.add_payments(Payment(**payment_data, created_at=now))
        order.paid_amount = sum(p.amount for p in (order.payments or []) if p.status == "paid")

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                buyer_id=str(buyer_id),
                cart_id=cart_id,
                currency=order.currency,
                total_amount=total_amount,
                items=json.dumps(
                    [
                        {
                            "item_id": str(i.id),
                            "product_id": str(i.product_id),
                            "seller_id": str(i.seller_id),
                            "quantity": i.quantity,
                        }
                        for i in order.items
                    ]
                ),
                item_count=len(order.items),
                placed_at=now,
            )
        )
        return order

    @staticmethod
    def _build_item(item_data: dict, now: datetime) -> OrderItem:
        data = {k: v for k, v in item_data.items() if k != "status"}
        if data.get("final_price") is None:
            data["final_price"] = data["unit_price"] * data["quantity"]
        return OrderItem(**data, created_at=now, updated_at=now)

    @staticmethod
    def _build_delivery(delivery_data: dict, now: datetime) -> Delivery:
        data = dict(delivery_data)
        snapshot = data.pop("address_snapshot", None)
        if isinstance(snapshot, str):
            snapshot = {"formatted": snapshot}
        return Delivery(
            **data,
            address_snapshot=AddressSnapshot(**snapshot) if snapshot else None,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def item(self, item_id: str) -> OrderItem:
        found = next((i for i in (self.items or []) if str(i.id) == str(item_id)), None)
        if found is None:
            raise NotFound("order_item", item_id)
        return found

    def delivery(self, delivery_id: str) -> Delivery:
        found = next((d for d in (self.deliveries or []) if str(d.id) == str(delivery_id)), None)
        if found is None:
            raise NotFound("delivery", delivery_id)
        return found

    def items_total(self) -> float:
        return sum(i.final_price for i in (self.items or []) if i.status != ItemStatus.CANCELLED.value)

    # -------------------------------------------------------------------
    # Item lifecycle
    # -------------------------------------------------------------------
    def _assert_item_can_transition(self, item: OrderItem, target: ItemStatus) -> None:
        current = ItemStatus(item.status)
        if target not in _ITEM_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition item from {current.value} to {target.value}"]})

    def add_item(self, item_data: dict) -> OrderItem:
        """Append a line after creation. Existing shipments are left untouched."""
        if OrderStatus(self.status) == OrderStatus.CANCELLED:
            raise ValidationError({"status": ["Cannot add items to a cancelled order"]})

        now = datetime.now(UTC)
        item = self._build_item(item_data, now)
        self.add_items(item)
        if OrderStatus(self.status) == OrderStatus.FULFILLED:
            self.status = OrderStatus.PLACED.value
        self.updated_at = now
        self.raise_(
            OrderItemAdded(
                order_id=str(self.id),
                item_id=str(item.id),
                product_id=str(item.product_id),
                seller_id=str(item.seller_id),
                quantity=item.quantity,
                final_price=item.final_price,
                added_at=now,
            )
        )
        return item

    def change_item_quantity(self, item_id: str, quantity: int) -> None:
        """Change a line's quantity. The caller confirms nothing has shipped yet."""
        item = self.item(item_id)
        if ItemStatus(item.status) != ItemStatus.ORDERED:
            raise ValidationError({"status": [f"Cannot change quantity of a {item.status} item"]})
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        previous = item.quantity
        item.quantity = quantity
        item.updated_at = now
        self.updated_at = now
        self.raise_(
            OrderItemQuantityChanged(
                order_id=str(self.id),
                item_id=str(item.id),
                previous_quantity=previous,
                new_quantity=quantity,
                changed_at=now,
            )
        )

    def cancel_item(self, item_id: str, reason: str | None = None) -> None:
        item = self.item(item_id)
        self._assert_item_can_transition(item, ItemStatus.CANCELLED)

        now = datetime.now(UTC)
        item.status = ItemStatus.CANCELLED.value
        item.updated_at = now
        self.updated_at = now
        self.raise_(
            OrderItemCancelled(
                order_id=str(self.id),
                item_id=str(item.id),
                reason=reason or "",
                cancelled_at=now,
            )
        )
        self._refresh_status(now)

    def mark_item_fulfilled(self, item_id: str) -> bool:
        """Move a line to FULFILLED; returns False when it is not in ORDERED."""
        item = self.item(item_id)
        if ItemStatus(item.status) != ItemStatus.ORDERED:
            return False

        now = datetime.now(UTC)
        item.status = ItemStatus.FULFILLED.value
        item.updated_at = now
        self.updated_at = now
        self.raise_(
            OrderItemFulfilled(
                order_id=str(self.id),
                item_id=str(item.id),
                fulfilled_at=now,
            )
        )
        self._refresh_status(now)
        return True

    def override_item_status(self, item_id: str, status: str) -> None:
        """Admin escape hatch: set any item status, including backwards."""
        item = self.item(item_id)
        target = ItemStatus(status)
        previous = item.status

        now = datetime.now(UTC)
        item.status = target.value
        item.updated_at = now
        self.updated_at = now
        self.raise_(
            OrderItemStatusOverridden(
                order_id=str(self.id),
                item_id=str(item.id),
                previous_status=previous,
                new_status=target.value,
                overridden_at=now,
            )
        )
        self._refresh_status(now)

    def _refresh_status(self, now: datetime) -> None:
        statuses = [ItemStatus(i.status) for i in (self.items or [])]
        live = [s for s in statuses if s != ItemStatus.CANCELLED]
        current = OrderStatus(self.status)

        if not live:
            if current != OrderStatus.CANCELLED:
                self.status = OrderStatus.CANCELLED.value
                self.raise_(OrderCancelled(order_id=str(self.id), cancelled_at=now))
        elif all(s == ItemStatus.FULFILLED for s in live):
            if current != OrderStatus.FULFILLED:
                self.status = OrderStatus.FULFILLED.value
                self.raise_(OrderFulfilled(order_id=str(self.id), fulfilled_at=now))
        else:
            self.status = OrderStatus.PLACED.value

    # -------------------------------------------------------------------
    # Deliveries
    # -------------------------------------------------------------------
    def assign_delivery(self, delivery_id: str, shipment_id: str) -> None:
        delivery = self.delivery(delivery_id)
        if delivery.shipment_id and str(delivery.shipment_id) != str(shipment_id):
            raise ValidationError({"delivery_id": [f"Delivery '{delivery_id}' already belongs to another shipment"]})
        delivery.shipment_id = shipment_id
        delivery.updated_at = datetime.now(UTC)

    def progress_deliveries(self, shipment_id: str, status: DeliveryStatus) -> int:
        """Move every delivery linked to the shipment to ``status``; returns how many moved."""
        now = datetime.now(UTC)
        moved = 0
        for delivery in self.deliveries or []:
            if str(delivery.shipment_id) != str(shipment_id) or delivery.delivery_status == status.value:
                continue
            delivery.delivery_status = status.value
            if status == DeliveryStatus.DELIVERED:
                delivery.delivery_attempts = (delivery.delivery_attempts or 0) + 1
                delivery.confirmed_at = now
            delivery.updated_at = now
            moved += 1
            self.raise_(
                DeliveryProgressed(
                    order_id=str(self.id),
                    delivery_id=str(delivery.id),
                    shipment_id=str(shipment_id),
                    delivery_status=status.value,
                    delivery_attempts=delivery.delivery_attempts,
                    progressed_at=now,
                )
            )
        if moved:
            self.updated_at = now
        return moved

    # -------------------------------------------------------------------
    # Order-level edits
    # -------------------------------------------------------------------
    def is_finalized(self) -> bool:
        return OrderStatus(self.status) != OrderStatus.PLACED

    def snapshot_fields(self) -> dict:
        return {
            "status": self.status,
            "order_type": self.order_type,
            "paid_amount": self.paid_amount,
            "currency": self.currency,
            "total_amount": self.total_amount,
        }

    def update_details(
        self,
        actor_id: str,
        status: str | None = None,
        order_type: str | None = None,
        paid_amount: float | None = None,
        currency: str | None = None,
    ) -> dict:
        """Edit order-level fields; returns ``{field: [previous, new]}``.

        A copy of the fields is appended to ``snapshots`` before anything
        changes. Finalized orders cannot be edited, and no edit may move an
        order into a finalized status.
        """
        if self.is_finalized():
            raise ValidationError({"status": [f"Cannot update a finalized order (state: {self.status})"]})
        if status is not None:
            try:
                target = OrderStatus(status)
            except ValueError:
                raise ValidationError({"status": [f"Unknown order status '{status}'"]}) from None
            if target != OrderStatus.PLACED:
                raise ValidationError({"status": ["Illegal order status transition to a finalized state"]})

        requested = {
            "status": status,
            "order_type": order_type,
            "paid_amount": paid_amount,
            "currency": currency.upper() if currency else None,
        }
        before = self.snapshot_fields()
        changes = {
            field: [before[field], value]
            for field, value in requested.items()
            if value is not None and value != before[field]
        }
        if not changes:
            raise ValidationError({"body": ["Nothing to update"]})

        now = datetime.now(UTC)
        self.add_snapshots(
            OrderSnapshot(reason="pre-update", actor_id=actor_id, data=json.dumps(before), taken_at=now)
        )
        for field, (_, value) in changes.items():
            setattr(self, field, value)
        self.updated_at = now
        self.raise_(
            OrderUpdated(
                order_id=str(self.id),
                actor_id=str(actor_id),
                changes=json.dumps(changes),
                updated_at=now,
            )
        )
        return changes
