"""Settlement bounded context: Order Fulfillment, Shipment Tracking and Refunds.

Owns the order aggregate created from a cart snapshot, the shipments that
fulfil its lines, the per-line inventory ledger that keeps shipped quantities
within ordered quantities, and the refund issued when a sale is reversed.
Uses CQRS aggregates; every mutating command carries the caller's role and
subject id so access rules are checked inside the handler.
"""

from protean.domain import Domain

settlement = Domain(name="settlement")
