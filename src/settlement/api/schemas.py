"""Pydantic API schemas for the settlement engine.

These are the external API contracts, kept separate from domain commands.
Responses are built from aggregates by attribute, so the wire format does
not depend on how protean serializes entities internally.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class OrderItemRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    seller_id: str | None = None
    quantity: int = Field(ge=1)
    unit_price: float | None = Field(default=None, ge=0)
    final_price: float | None = Field(default=None, ge=0)
    discount_snapshot: str | None = None


class AddressRequest(BaseModel):
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    formatted: str | None = None


class DeliveryRequest(BaseModel):
    recipient_name: str
    recipient_phone: str
    address_id: str | None = None
    address_snapshot: AddressRequest | None = None
    delivery_message: str | None = None


class PaymentRequest(BaseModel):
    payment_type: str
    status: str
    amount: float = Field(ge=0)
    currency: str | None = None
    external_payment_ref: str | None = None
    requested_at: str | None = None


class CreateOrderRequest(BaseModel):
    buyer_id: str | None = None
    currency: str = Field(min_length=3, max_length=3)
    total_amount: float = Field(ge=0)
    items: list[OrderItemRequest]
    deliveries: list[DeliveryRequest] = []
    payments: list[PaymentRequest] = []
    channel_id: str | None = None
    section_id: str | None = None
    cart_id: str | None = None
    external_order_ref: str | None = None
    order_type: str | None = None


class UpdateOrderRequest(BaseModel):
    status: str | None = None
    order_type: str | None = Field(default=None, max_length=50)
    paid_amount: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class UpdateOrderItemRequest(BaseModel):
    quantity: int | None = Field(default=None, ge=1)
    status: str | None = None


class CancelOrderItemRequest(BaseModel):
    reason: str | None = None


class CreateShipmentRequest(BaseModel):
    carrier: str
    tracking_number: str
    status: str | None = None
    seller_id: str | None = None
    shipment_code: str | None = None
    delivery_id: str | None = None


class ShipmentStatusRequest(BaseModel):
    status: str


class AddShipmentItemRequest(BaseModel):
    order_item_id: str
    shipped_quantity: int = Field(ge=1)


class UpdateShipmentItemRequest(BaseModel):
    shipped_quantity: int = Field(ge=1)


class CreateRefundRequest(BaseModel):
    amount: float
    currency: str = Field(min_length=3, max_length=3)
    reason: str | None = None
    actor_id: str | None = None
    order_item_id: str | None = None
    quantity: int | None = Field(default=None, ge=1)


class RefundStatusRequest(BaseModel):
    status: str
    note: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def of(cls, obj):
        return cls.model_validate(obj)


class OrderIdResponse(BaseModel):
    order_id: str


class ItemIdResponse(BaseModel):
    item_id: str


class ShipmentIdResponse(BaseModel):
    shipment_id: str


class ShipmentItemIdResponse(BaseModel):
    shipment_item_id: str


class RefundIdResponse(BaseModel):
    refund_id: str


class StatusResponse(BaseModel):
    status: str


class PaginationResponse(BaseModel):
    current: int
    limit: int
    records: int
    pages: int


class OrderItemResponse(_FromDomain):
    id: str
    product_id: str
    variant_id: str | None = None
    seller_id: str
    quantity: int
    unit_price: float
    final_price: float
    discount_snapshot: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderItemDetailResponse(OrderItemResponse):
    """A line plus its running ledger counters."""

    shipped_quantity: int = 0
    delivered_quantity: int = 0
    refunded_quantity: int = 0

    @classmethod
    def of(cls, item, position: dict | None = None):
        counters = {
            key: (position or {}).get(key, 0) for key in ("shipped_quantity", "delivered_quantity", "refunded_quantity")
        }
        return cls(**OrderItemResponse.model_validate(item).model_dump(), **counters)


class AddressResponse(_FromDomain):
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    formatted: str | None = None


class DeliveryResponse(_FromDomain):
    id: str
    shipment_id: str | None = None
    recipient_name: str
    recipient_phone: str
    address_snapshot: AddressResponse | None = None
    delivery_message: str | None = None
    delivery_status: str
    delivery_attempts: int
    confirmed_at: datetime | None = None


class PaymentResponse(_FromDomain):
    id: str
    payment_type: str
    external_payment_ref: str | None = None
    status: str
    amount: float
    currency: str
    requested_at: datetime | None = None


class OrderResponse(_FromDomain):
    id: str
    buyer_id: str
    channel_id: str | None = None
    section_id: str | None = None
    cart_id: str | None = None
    external_order_ref: str | None = None
    order_type: str | None = None
    status: str
    currency: str
    total_amount: float
    paid_amount: float
    items: list[OrderItemResponse] = []
    deliveries: list[DeliveryResponse] = []
    payments: list[PaymentResponse] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ShipmentItemResponse(_FromDomain):
    id: str
    order_item_id: str
    shipped_quantity: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ShipmentResponse(_FromDomain):
    id: str
    order_id: str
    seller_id: str | None = None
    shipment_code: str | None = None
    carrier: str
    tracking_number: str
    status: str
    items: list[ShipmentItemResponse] = []
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ShipmentListResponse(BaseModel):
    data: list[ShipmentResponse]
    pagination: PaginationResponse


class RefundResponse(_FromDomain):
    id: str
    order_id: str
    refund_code: str
    actor_id: str
    actor_role: str
    amount: float
    currency: str
    reason: str | None = None
    order_item_id: str | None = None
    quantity: int | None = None
    status: str
    note: str | None = None
    requested_at: datetime | None = None
    resolved_at: datetime | None = None


class RefundListResponse(BaseModel):
    data: list[RefundResponse]
    pagination: PaginationResponse
