"""Shipment aggregate (CQRS): one parcel sent against an order.

State Machine:
    PENDING → SHIPPED → DELIVERED

Moves are forward only. Once DELIVERED the shipment and its items are
frozen: any attempt to change them raises ``ImmutableStateViolation``.
Quantities are not checked here; the inventory ledger owns the per-line
ceiling and is called by the handlers alongside these methods.
"""

import secrets
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from settlement.domain import settlement
from settlement.errors import Conflict, ImmutableStateViolation, NotFound
from settlement.shipment.events import (
    ShipmentDelivered,
    ShipmentItemAdded,
    ShipmentItemQuantityChanged,
    ShipmentRegistered,
    ShipmentShipped,
)


class ShipmentStatus(Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


_STATUS_ORDER = {
    ShipmentStatus.PENDING: 0,
    ShipmentStatus.SHIPPED: 1,
    ShipmentStatus.DELIVERED: 2,
}


def _shipment_code() -> str:
    return f"SH-{secrets.token_hex(5).upper()}"


@settlement.entity(part_of="Shipment")
class ShipmentItem:
    order_item_id = Identifier(required=True)
    shipped_quantity = Integer(required=True, min_value=1)
    created_at = DateTime()
    updated_at = DateTime()


@settlement.aggregate
class Shipment:
    order_id = Identifier(required=True)
    seller_id = Identifier()
    shipment_code = String(max_length=50)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)
    status = String(
        max_length=20,
        choices=ShipmentStatus,
        default=ShipmentStatus.PENDING.value,
    )
    items = HasMany(ShipmentItem)
    shipped_at = DateTime()
    delivered_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(
        cls,
        order_id: str,
        carrier: str,
        tracking_number: str,
        status: str | None = None,
        seller_id: str | None = None,
        shipment_code: str | None = None,
    ):
        initial = ShipmentStatus(status or ShipmentStatus.PENDING.value)
        if initial == ShipmentStatus.DELIVERED:
            raise ValidationError({"status": ["A shipment cannot be registered as delivered"]})

        now = datetime.now(UTC)
        shipment = cls(
            order_id=order_id,
            seller_id=seller_id,
            shipment_code=shipment_code or _shipment_code(),
            carrier=carrier,
            tracking_number=tracking_number,
            status=initial.value,
            shipped_at=now if initial == ShipmentStatus.SHIPPED else None,
            created_at=now,
            updated_at=now,
        )
        shipment.raise_(
            ShipmentRegistered(
                shipment_id=str(shipment.id),
                order_id=str(order_id),
                seller_id=str(seller_id) if seller_id else None,
                shipment_code=shipment.shipment_code,
                carrier=carrier,
                tracking_number=tracking_number,
                status=initial.value,
                registered_at=now,
            )
        )
        return shipment

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def is_delivered(self) -> bool:
        return self.status == ShipmentStatus.DELIVERED.value

    def item(self, shipment_item_id: str) -> ShipmentItem:
        found = next((i for i in (self.items or []) if str(i.id) == str(shipment_item_id)), None)
        if found is None:
            raise NotFound("shipment_item", shipment_item_id)
        return found

    def item_for(self, order_item_id: str) -> ShipmentItem | None:
        return next((i for i in (self.items or []) if str(i.order_item_id) == str(order_item_id)), None)

    def assert_mutable(self) -> None:
        if self.is_delivered():
            raise ImmutableStateViolation({"shipment": [f"Shipment '{self.id}' has been delivered and is frozen"]})

    # -------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------
    def add_item(self, order_item_id: str, shipped_quantity: int) -> ShipmentItem:
        self.assert_mutable()
        if self.item_for(order_item_id) is not None:
            raise Conflict({"order_item_id": [f"Shipment '{self.id}' already carries order item '{order_item_id}'"]})

        now = datetime.now(UTC)
        item = ShipmentItem(
            order_item_id=order_item_id,
            shipped_quantity=shipped_quantity,
            created_at=now,
            updated_at=now,
        )
        self.add_items(item)
        self.updated_at = now
        self.raise_(
            ShipmentItemAdded(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                shipment_item_id=str(item.id),
                order_item_id=str(order_item_id),
                shipped_quantity=shipped_quantity,
                added_at=now,
            )
        )
        return item

    def update_item(self, shipment_item_id: str, shipped_quantity: int) -> ShipmentItem:
        self.assert_mutable()
        item = self.item(shipment_item_id)
        if shipped_quantity < 1:
            raise ValidationError({"shipped_quantity": ["Shipped quantity must be at least 1"]})

        now = datetime.now(UTC)
        previous = item.shipped_quantity
        item.shipped_quantity = shipped_quantity
        item.updated_at = now
        self.updated_at = now
        self.raise_(
            ShipmentItemQuantityChanged(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                shipment_item_id=str(item.id),
                order_item_id=str(item.order_item_id),
                previous_quantity=previous,
                new_quantity=shipped_quantity,
                changed_at=now,
            )
        )
        return item

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def advance(self, status: str) -> ShipmentStatus:
        """Move the shipment forward; backward or repeated moves are refused."""
        target = ShipmentStatus(status)
        current = ShipmentStatus(self.status)
        if _STATUS_ORDER[target] <= _STATUS_ORDER[current]:
            raise ImmutableStateViolation(
                {"status": [f"Cannot move shipment from {current.value} to {target.value}"]}
            )

        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        if self.shipped_at is None:
            self.shipped_at = now
            self.raise_(
                ShipmentShipped(
                    shipment_id=str(self.id),
                    order_id=str(self.order_id),
                    carrier=self.carrier,
                    tracking_number=self.tracking_number,
                    shipped_at=now,
                )
            )
        if target == ShipmentStatus.DELIVERED:
            self.delivered_at = now
            self.raise_(
                ShipmentDelivered(
                    shipment_id=str(self.id),
                    order_id=str(self.order_id),
                    item_count=len(self.items or []),
                    delivered_at=now,
                )
            )
        return target
