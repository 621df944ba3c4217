"""Inventory ledger operations used by the order and shipment handlers.

Each call re-reads the ledger line from the repository before deciding, so
an allocation is always judged against the latest recorded quantities.
Callers run inside a command handler's unit of work; the changed line is
persisted when that unit of work commits.
"""

import threading
from contextlib import contextmanager

import structlog
from protean.utils.globals import current_domain

from settlement.errors import NotFound
from settlement.ledger.line import LedgerLine

logger = structlog.get_logger(__name__)

# order id -> [lock, holders]; an entry lives only while someone holds or waits on it
_locks: dict[str, list] = {}
_locks_guard = threading.Lock()


@contextmanager
def serialized(order_id):
    """Hold the per-order lock for the duration of the block.

    Wrap the whole command dispatch (not just the handler body) so that the
    unit of work commits before the next writer re-reads the ledger.
    """
    key = str(order_id)
    with _locks_guard:
        entry = _locks.setdefault(key, [threading.RLock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[key]


def process_serialized(order_id, command):
    """Dispatch ``command`` synchronously while holding the order's lock."""
    with serialized(order_id):
        return current_domain.process(command, asynchronous=False)


def line_for(order_item_id: str) -> LedgerLine:
    repo = current_domain.repository_for(LedgerLine)
    results = repo._dao.query.filter(order_item_id=str(order_item_id)).all()
    if not results or not results.items:
        raise NotFound("ledger_line", order_item_id)
    return results.first


def lines_for_order(order_id: str) -> list[LedgerLine]:
    repo = current_domain.repository_for(LedgerLine)
    return repo._dao.query.filter(order_id=str(order_id)).all().items


def reserve(order_id: str, order_item_id: str, quantity: int, seller_id: str | None = None) -> LedgerLine:
    line = LedgerLine.reserve(
        order_id=str(order_id),
        order_item_id=str(order_item_id),
        quantity=quantity,
        seller_id=str(seller_id) if seller_id else None,
    )
    current_domain.repository_for(LedgerLine).add(line)
    return line


def allocate_shipment(order_item_id: str, shipment_id: str, shipment_item_id: str, quantity: int) -> int:
    """Record the absolute quantity of a shipment item; returns cumulative shipped quantity."""
    line = line_for(order_item_id)
    cumulative = line.allocate(str(shipment_id), str(shipment_item_id), quantity)
    current_domain.repository_for(LedgerLine).add(line)
    logger.info(
        "Shipment quantity allocated",
        order_item_id=str(order_item_id),
        shipment_item_id=str(shipment_item_id),
        quantity=quantity,
        shipped_quantity=cumulative,
        ordered_quantity=line.ordered_quantity,
    )
    return cumulative


def release(order_item_id: str, shipment_item_id: str, quantity: int) -> int:
    line = line_for(order_item_id)
    cumulative = line.release(str(shipment_item_id), quantity)
    current_domain.repository_for(LedgerLine).add(line)
    return cumulative


def record_delivery(shipment) -> list[LedgerLine]:
    """Mark a delivered shipment's allocations delivered on every affected line."""
    repo = current_domain.repository_for(LedgerLine)
    lines = []
    for order_item_id in {str(item.order_item_id) for item in (shipment.items or [])}:
        line = line_for(order_item_id)
        line.record_delivery(str(shipment.id))
        repo.add(line)
        lines.append(line)
    return lines


def record_refund(order_item_id: str, quantity: int) -> int:
    line = line_for(order_item_id)
    refunded = line.record_refund(quantity)
    current_domain.repository_for(LedgerLine).add(line)
    return refunded


def amend_ordered_quantity(order_item_id: str, quantity: int) -> LedgerLine:
    line = line_for(order_item_id)
    line.amend_ordered_quantity(quantity)
    current_domain.repository_for(LedgerLine).add(line)
    return line


def is_referenced(order_item_id: str) -> bool:
    """True once any shipment item holds quantity against the line."""
    return line_for(order_item_id).has_allocations()


def position(order_item_id: str) -> dict:
    line = line_for(order_item_id)
    return {
        "order_item_id": str(line.order_item_id),
        "ordered_quantity": line.ordered_quantity,
        "shipped_quantity": line.shipped_quantity,
        "delivered_quantity": line.delivered_quantity,
        "refunded_quantity": line.refunded_quantity,
    }
