"""FastAPI routes for the settlement engine.

Every route resolves the caller from the bearer token first, so a missing
credential is rejected before any business logic runs. Writes that touch
the inventory ledger or the one-refund rule are dispatched under the
order's lock.
"""

import json
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from protean.utils.globals import current_domain

from settlement.access.context import CallerContext
from settlement.api.auth import get_caller
from settlement.api.schemas import (
    AddShipmentItemRequest,
    CancelOrderItemRequest,
    CreateOrderRequest,
    CreateRefundRequest,
    CreateShipmentRequest,
    ItemIdResponse,
    OrderIdResponse,
    OrderItemDetailResponse,
    OrderItemRequest,
    OrderItemResponse,
    OrderResponse,
    PaginationResponse,
    RefundIdResponse,
    RefundListResponse,
    RefundResponse,
    RefundStatusRequest,
    ShipmentIdResponse,
    ShipmentItemIdResponse,
    ShipmentListResponse,
    ShipmentResponse,
    ShipmentStatusRequest,
    StatusResponse,
    UpdateOrderItemRequest,
    UpdateOrderRequest,
    UpdateShipmentItemRequest,
)
from settlement.ledger import book
from settlement.ledger.book import process_serialized
from settlement.order.creation import CreateOrder
from settlement.order.items import AddOrderItem, CancelOrderItem, UpdateOrderItem
from settlement.order.queries import get_order, get_order_item
from settlement.order.update import UpdateOrder
from settlement.refund.listing import get_refund, list_refunds
from settlement.refund.request import RequestRefund
from settlement.refund.resolution import UpdateRefundStatus
from settlement.shipment.items import AddShipmentItem, UpdateShipmentItem
from settlement.shipment.listing import get_shipment, list_shipments
from settlement.shipment.registration import CreateShipment
from settlement.shipment.status import UpdateShipmentStatus

order_router = APIRouter(prefix="/orders", tags=["orders"])


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def create_order(body: CreateOrderRequest, caller: CallerContext = Depends(get_caller)) -> OrderIdResponse:
    """Place an order from a cart snapshot."""
    buyer_id = body.buyer_id or caller.subject_id
    command = CreateOrder(
        buyer_id=buyer_id,
        currency=body.currency,
        total_amount=body.total_amount,
        items=json.dumps([item.model_dump() for item in body.items]),
        deliveries=json.dumps([d.model_dump(exclude_none=True) for d in body.deliveries]),
        payments=json.dumps([p.model_dump(exclude_none=True) for p in body.payments]),
        channel_id=body.channel_id,
        section_id=body.section_id,
        cart_id=body.cart_id,
        external_order_ref=body.external_order_ref,
        order_type=body.order_type,
        **caller.as_command_fields(),
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def read_order(order_id: str, caller: CallerContext = Depends(get_caller)) -> OrderResponse:
    return OrderResponse.of(get_order(caller, order_id))


@order_router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: str, body: UpdateOrderRequest, caller: CallerContext = Depends(get_caller)
) -> OrderResponse:
    """Edit the order's own fields while it is open and nothing has shipped."""
    command = UpdateOrder(order_id=order_id, **body.model_dump(), **caller.as_command_fields())
    process_serialized(order_id, command)
    return OrderResponse.of(get_order(caller, order_id))


@order_router.post("/{order_id}/items", status_code=201, response_model=ItemIdResponse)
async def add_order_item(
    order_id: str, body: OrderItemRequest, caller: CallerContext = Depends(get_caller)
) -> ItemIdResponse:
    """Append a line to an existing order (admin only)."""
    command = AddOrderItem(order_id=order_id, **body.model_dump(), **caller.as_command_fields())
    result = process_serialized(order_id, command)
    return ItemIdResponse(item_id=result)


@order_router.get("/{order_id}/items/{item_id}", response_model=OrderItemDetailResponse)
async def read_order_item(
    order_id: str, item_id: str, caller: CallerContext = Depends(get_caller)
) -> OrderItemDetailResponse:
    _, item = get_order_item(caller, order_id, item_id)
    return OrderItemDetailResponse.of(item, book.position(item.id))


@order_router.put("/{order_id}/items/{item_id}", response_model=OrderItemResponse)
async def update_order_item(
    order_id: str, item_id: str, body: UpdateOrderItemRequest, caller: CallerContext = Depends(get_caller)
) -> OrderItemResponse:
    """Change a line's quantity and/or override its status (admin only)."""
    command = UpdateOrderItem(
        order_id=order_id,
        item_id=item_id,
        quantity=body.quantity,
        status=body.status,
        **caller.as_command_fields(),
    )
    process_serialized(order_id, command)

    _, item = get_order_item(caller, order_id, item_id)
    return OrderItemResponse.of(item)


@order_router.put("/{order_id}/items/{item_id}/cancel", response_model=StatusResponse)
async def cancel_order_item(
    order_id: str, item_id: str, body: CancelOrderItemRequest, caller: CallerContext = Depends(get_caller)
) -> StatusResponse:
    command = CancelOrderItem(order_id=order_id, item_id=item_id, reason=body.reason, **caller.as_command_fields())
    process_serialized(order_id, command)
    return StatusResponse(status="cancelled")


# ---------------------------------------------------------------------------
# Shipments
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/shipments", status_code=201, response_model=ShipmentIdResponse)
async def create_shipment(
    order_id: str, body: CreateShipmentRequest, caller: CallerContext = Depends(get_caller)
) -> ShipmentIdResponse:
    command = CreateShipment(order_id=order_id, **body.model_dump(), **caller.as_command_fields())
    result = process_serialized(order_id, command)
    return ShipmentIdResponse(shipment_id=result)


@order_router.get("/{order_id}/shipments", response_model=ShipmentListResponse)
async def list_order_shipments(
    order_id: str,
    status: str | None = None,
    carrier: str | None = None,
    shipped_from: datetime | None = None,
    shipped_to: datetime | None = None,
    page: int = 1,
    limit: int | None = None,
    caller: CallerContext = Depends(get_caller),
) -> ShipmentListResponse:
    """List shipments; ``shipped_from``/``shipped_to`` bound ``shipped_at`` as ``[from, to)``."""
    result = list_shipments(
        caller,
        order_id,
        status=status,
        carrier=carrier,
        shipped_from=shipped_from,
        shipped_to=shipped_to,
        page=page,
        limit=limit,
    )
    return ShipmentListResponse(
        data=[ShipmentResponse.of(s) for s in result.data],
        pagination=PaginationResponse(**result.pagination()),
    )


@order_router.get("/{order_id}/shipments/{shipment_id}", response_model=ShipmentResponse)
async def read_shipment(order_id: str, shipment_id: str, caller: CallerContext = Depends(get_caller)) -> ShipmentResponse:
    return ShipmentResponse.of(get_shipment(caller, order_id, shipment_id))


@order_router.put("/{order_id}/shipments/{shipment_id}/status", response_model=ShipmentResponse)
async def update_shipment_status(
    order_id: str, shipment_id: str, body: ShipmentStatusRequest, caller: CallerContext = Depends(get_caller)
) -> ShipmentResponse:
    command = UpdateShipmentStatus(
        order_id=order_id, shipment_id=shipment_id, status=body.status, **caller.as_command_fields()
    )
    process_serialized(order_id, command)
    return ShipmentResponse.of(get_shipment(caller, order_id, shipment_id))


@order_router.post(
    "/{order_id}/shipments/{shipment_id}/items", status_code=201, response_model=ShipmentItemIdResponse
)
async def add_shipment_item(
    order_id: str, shipment_id: str, body: AddShipmentItemRequest, caller: CallerContext = Depends(get_caller)
) -> ShipmentItemIdResponse:
    command = AddShipmentItem(
        order_id=order_id,
        shipment_id=shipment_id,
        order_item_id=body.order_item_id,
        shipped_quantity=body.shipped_quantity,
        **caller.as_command_fields(),
    )
    result = process_serialized(order_id, command)
    return ShipmentItemIdResponse(shipment_item_id=result)


@order_router.put("/{order_id}/shipments/{shipment_id}/items/{item_id}", response_model=StatusResponse)
async def update_shipment_item(
    order_id: str,
    shipment_id: str,
    item_id: str,
    body: UpdateShipmentItemRequest,
    caller: CallerContext = Depends(get_caller),
) -> StatusResponse:
    command = UpdateShipmentItem(
        order_id=order_id,
        shipment_id=shipment_id,
        shipment_item_id=item_id,
        shipped_quantity=body.shipped_quantity,
        **caller.as_command_fields(),
    )
    process_serialized(order_id, command)
    return StatusResponse(status="updated")


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/refunds", status_code=201, response_model=RefundIdResponse)
async def create_refund(
    order_id: str, body: CreateRefundRequest, caller: CallerContext = Depends(get_caller)
) -> RefundIdResponse:
    command = RequestRefund(order_id=order_id, **body.model_dump(), **caller.as_command_fields())
    result = process_serialized(order_id, command)
    return RefundIdResponse(refund_id=result)


@order_router.get("/{order_id}/refunds", response_model=RefundListResponse)
async def list_order_refunds(
    order_id: str,
    status: list[str] | None = Query(default=None),
    status_list: list[str] | None = Query(default=None, alias="status[]"),
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
    caller: CallerContext = Depends(get_caller),
) -> RefundListResponse:
    """List refunds; ``status`` may repeat (also accepted as ``status[]``)."""
    result = list_refunds(
        caller,
        order_id,
        statuses=(status or []) + (status_list or []),
        min_amount=min_amount,
        max_amount=max_amount,
        requested_after=requested_after,
        requested_before=requested_before,
        refund_code=refund_code,
        actor_id=actor_id,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return RefundListResponse(
        data=[RefundResponse.of(r) for r in result.data],
        pagination=PaginationResponse(**result.pagination()),
    )


@order_router.get("/{order_id}/refunds/{refund_id}", response_model=RefundResponse)
async def read_refund(order_id: str, refund_id: str, caller: CallerContext = Depends(get_caller)) -> RefundResponse:
    return RefundResponse.of(get_refund(caller, order_id, refund_id))


@order_router.put("/{order_id}/refunds/{refund_id}/status", response_model=RefundResponse)
async def update_refund_status(
    order_id: str, refund_id: str, body: RefundStatusRequest, caller: CallerContext = Depends(get_caller)
) -> RefundResponse:
    command = UpdateRefundStatus(
        order_id=order_id, refund_id=refund_id, status=body.status, note=body.note, **caller.as_command_fields()
    )
    current_domain.process(command, asynchronous=False)
    return RefundResponse.of(get_refund(caller, order_id, refund_id))
