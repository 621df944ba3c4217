"""Refund reads: scoped detail and filtered, sorted, paginated lists."""

from datetime import datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.access.gate import authorize_refund_detail, authorize_refund_read, visible_refunds
from settlement.errors import InvalidQuery, NotFound
from settlement.order.queries import load_order
from settlement.refund.refund import Refund, RefundStatus
from settlement.shared.pagination import Page, as_utc, paginate, within

SORT_FIELDS = ("requested_at", "resolved_at", "amount")
SORT_ORDERS = ("asc", "desc")


def load_refund(order_id, refund_id) -> Refund:
    try:
        refund = current_domain.repository_for(Refund).get(str(refund_id))
    except ObjectNotFoundError:
        raise NotFound("refund", refund_id) from None
    if str(refund.order_id) != str(order_id):
        raise NotFound("refund", refund_id)
    return refund


def get_refund(caller: CallerContext, order_id, refund_id) -> Refund:
    order = load_order(order_id)
    authorize_refund_read(caller, order)
    refund = load_refund(order.id, refund_id)
    authorize_refund_detail(caller, order, refund)
    return refund


def _check_filters(statuses, min_amount, max_amount, sort_by, sort_order) -> None:
    errors = {}
    unknown = [s for s in statuses or [] if s not in {r.value for r in RefundStatus}]
    if unknown:
        errors["status"] = [f"Unknown refund status '{s}'" for s in unknown]
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        errors["amount"] = ["min_amount cannot exceed max_amount"]
    if sort_by not in SORT_FIELDS:
        errors["sort_by"] = [f"sort_by must be one of {', '.join(SORT_FIELDS)}"]
    if sort_order not in SORT_ORDERS:
        errors["sort_order"] = ["sort_order must be asc or desc"]
    if errors:
        raise InvalidQuery(errors)


def list_refunds(
    caller: CallerContext,
    order_id,
    statuses: list[str] | None = None,
    min_amount: float | None = None,
    max_amount: float | None = None,
    requested_after: datetime | None = None,
    requested_before: datetime | None = None,
    refund_code: str | None = None,
    actor_id: str | None = None,
    sort_by: str = "requested_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int | None = None,
) -> Page:
    _check_filters(statuses, min_amount, max_amount, sort_by, sort_order)

    order = load_order(order_id)
    authorize_refund_read(caller, order)

    repo = current_domain.repository_for(Refund)
    refunds = visible_refunds(caller, repo._dao.query.filter(order_id=str(order.id)).all().items)

    if statuses:
        refunds = [r for r in refunds if r.status in statuses]
    if min_amount is not None:
        refunds = [r for r in refunds if r.amount >= min_amount]
    if max_amount is not None:
        refunds = [r for r in refunds if r.amount <= max_amount]
    if refund_code:
        needle = refund_code.upper()
        refunds = [r for r in refunds if needle in (r.refund_code or "").upper()]
    if actor_id:
        refunds = [r for r in refunds if str(r.actor_id) == str(actor_id)]
    refunds = [r for r in refunds if within(r.requested_at, requested_after, requested_before)]

    # Unresolved refunds sort after resolved ones regardless of direction.
    present = [r for r in refunds if getattr(r, sort_by) is not None]
    missing = [r for r in refunds if getattr(r, sort_by) is None]
    present.sort(
        key=lambda r: as_utc(getattr(r, sort_by)) if sort_by != "amount" else r.amount,
        reverse=sort_order == "desc",
    )
    return paginate(present + missing, page, limit)
