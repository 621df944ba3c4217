"""LedgerLine aggregate (CQRS): the inventory ledger for one order line.

Every quantity invariant of the engine is decided here:

    shipped_quantity   = Σ allocation.quantity            ≤ ordered_quantity
    delivered_quantity = Σ allocation.quantity (delivered) ≤ shipped_quantity
    refunded_quantity                                     ≤ ordered_quantity

Allocations are keyed by shipment item id. Re-issuing an allocation for the
same shipment item recomputes the delta against what that shipment item
already holds, so retried updates never double count.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer

from settlement.domain import settlement
from settlement.errors import ImmutableStateViolation, QuantityExceeded
from settlement.ledger.events import (
    LineDeliveryRecorded,
    LineRefundRecorded,
    LineReserved,
    OrderedQuantityAmended,
    ShipmentQuantityAllocated,
    ShipmentQuantityReleased,
)


@settlement.entity(part_of="LedgerLine")
class Allocation:
    """Quantity a single shipment item holds against the line."""

    shipment_id = Identifier(required=True)
    shipment_item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)
    delivered = Boolean(default=False)


@settlement.aggregate
class LedgerLine:
    order_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    seller_id = Identifier()
    ordered_quantity = Integer(required=True, min_value=1)
    shipped_quantity = Integer(default=0)
    delivered_quantity = Integer(default=0)
    refunded_quantity = Integer(default=0)
    allocations = HasMany(Allocation)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def reserve(cls, order_id: str, order_item_id: str, quantity: int, seller_id: str | None = None):
        """Open the ledger line for a freshly ordered item."""
        now = datetime.now(UTC)
        line = cls(
            order_id=order_id,
            order_item_id=order_item_id,
            seller_id=seller_id,
            ordered_quantity=quantity,
            created_at=now,
            updated_at=now,
        )
        line.raise_(
            LineReserved(
                ledger_line_id=str(line.id),
                order_id=str(order_id),
                order_item_id=str(order_item_id),
                ordered_quantity=quantity,
                reserved_at=now,
            )
        )
        return line

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def allocation_for(self, shipment_item_id: str) -> Allocation | None:
        return next(
            (a for a in (self.allocations or []) if str(a.shipment_item_id) == str(shipment_item_id)),
            None,
        )

    def has_allocations(self) -> bool:
        return any(a.quantity > 0 for a in (self.allocations or []))

    def is_fully_delivered(self) -> bool:
        return self.delivered_quantity >= self.ordered_quantity

    def remaining_quantity(self) -> int:
        return self.ordered_quantity - self.shipped_quantity

    # -------------------------------------------------------------------
    # Shipment allocation
    # -------------------------------------------------------------------
    def allocate(self, shipment_id: str, shipment_item_id: str, quantity: int) -> int:
        """Set the quantity a shipment item holds and return the new cumulative shipped quantity."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Shipped quantity must be at least 1"]})

        existing = self.allocation_for(shipment_item_id)
        previous = existing.quantity if existing else 0
        if existing is not None and existing.delivered:
            raise ImmutableStateViolation(
                {"shipment_item_id": [f"Shipment item '{shipment_item_id}' has already been delivered"]}
            )
        if quantity < previous:
            return self.release(shipment_item_id, previous - quantity)
        if quantity == previous:
            return self.shipped_quantity

        cumulative = self.shipped_quantity - previous + quantity
        if cumulative > self.ordered_quantity:
            raise QuantityExceeded(self.order_item_id, cumulative, self.ordered_quantity)

        if existing is None:
            self.add_allocations(
                Allocation(
                    shipment_id=shipment_id,
                    shipment_item_id=shipment_item_id,
                    quantity=quantity,
                )
            )
        else:
            existing.quantity = quantity

        now = datetime.now(UTC)
        self.shipped_quantity = cumulative
        self.updated_at = now
        self.raise_(
            ShipmentQuantityAllocated(
                ledger_line_id=str(self.id),
                order_item_id=str(self.order_item_id),
                shipment_id=str(shipment_id),
                shipment_item_id=str(shipment_item_id),
                quantity=quantity,
                shipped_quantity=cumulative,
                allocated_at=now,
            )
        )
        return cumulative

    def release(self, shipment_item_id: str, quantity: int) -> int:
        """Give back part of a shipment item's allocation."""
        existing = self.allocation_for(shipment_item_id)
        if existing is None:
            raise ValidationError({"shipment_item_id": [f"No allocation recorded for '{shipment_item_id}'"]})
        if existing.delivered:
            raise ImmutableStateViolation(
                {"shipment_item_id": [f"Shipment item '{shipment_item_id}' has already been delivered"]}
            )
        if quantity < 1 or quantity > existing.quantity:
            raise ValidationError(
                {"quantity": [f"Cannot release {quantity} from an allocation of {existing.quantity}"]}
            )

        now = datetime.now(UTC)
        existing.quantity = existing.quantity - quantity
        self.shipped_quantity = self.shipped_quantity - quantity
        self.updated_at = now
        self.raise_(
            ShipmentQuantityReleased(
                ledger_line_id=str(self.id),
                order_item_id=str(self.order_item_id),
                shipment_item_id=str(shipment_item_id),
                released=quantity,
                shipped_quantity=self.shipped_quantity,
                released_at=now,
            )
        )
        return self.shipped_quantity

    # -------------------------------------------------------------------
    # Delivery and refunds
    # -------------------------------------------------------------------
    def record_delivery(self, shipment_id: str) -> int:
        """Mark every allocation of the shipment delivered; returns the line's delivered quantity."""
        pending = [
            a for a in (self.allocations or []) if str(a.shipment_id) == str(shipment_id) and not a.delivered
        ]
        if not pending:
            return self.delivered_quantity

        for allocation in pending:
            allocation.delivered = True
        now = datetime.now(UTC)
        self.delivered_quantity = sum(a.quantity for a in self.allocations if a.delivered)
        self.updated_at = now
        self.raise_(
            LineDeliveryRecorded(
                ledger_line_id=str(self.id),
                order_item_id=str(self.order_item_id),
                shipment_id=str(shipment_id),
                delivered_quantity=self.delivered_quantity,
                recorded_at=now,
            )
        )
        return self.delivered_quantity

    def record_refund(self, quantity: int) -> int:
        if quantity < 1:
            raise ValidationError({"quantity": ["Refunded quantity must be at least 1"]})
        total = self.refunded_quantity + quantity
        if total > self.ordered_quantity:
            raise QuantityExceeded(self.order_item_id, total, self.ordered_quantity)

        now = datetime.now(UTC)
        self.refunded_quantity = total
        self.updated_at = now
        self.raise_(
            LineRefundRecorded(
                ledger_line_id=str(self.id),
                order_item_id=str(self.order_item_id),
                quantity=quantity,
                refunded_quantity=total,
                recorded_at=now,
            )
        )
        return total

    def amend_ordered_quantity(self, quantity: int) -> None:
        """Change the ordered quantity; only allowed while nothing is allocated."""
        if self.has_allocations():
            raise ImmutableStateViolation(
                {"quantity": [f"Quantity of item '{self.order_item_id}' is locked by existing shipments"]}
            )
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        previous = self.ordered_quantity
        self.ordered_quantity = quantity
        self.updated_at = now
        self.raise_(
            OrderedQuantityAmended(
                ledger_line_id=str(self.id),
                order_item_id=str(self.order_item_id),
                previous_quantity=previous,
                new_quantity=quantity,
                amended_at=now,
            )
        )
