import uuid
from datetime import datetime
from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from heed_orders.models.order import OrderStatus, PaymentMethod, PaymentStatus


class ResponseModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


T = TypeVar("T")


class Page(ResponseModel, Generic[T]):
    items: list[T]
    page: int
    page_size: int
    total: int


class ShippingAddress(BaseModel):
    full_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    line1: str = Field(min_length=1)
    line2: str | None = None
    city: str = Field(min_length=1)
    state: str | None = None
    postal_code: str = Field(min_length=1)
    country: str | None = None


class OrderCreateRequest(BaseModel):
    post_id: str = Field(min_length=1)
    # range checks happen in the service so they surface as Validation errors
    quantity: int = 1
    payment_method: str
    shipping_address: ShippingAddress
    selected_size: str | None = None
    buyer_notes: str | None = Field(default=None, max_length=1000)
    chat_id: str | None = None


class VersionedRequest(BaseModel):
    expected_version: int | None = Field(default=None, ge=1)


class CancelOrderRequest(VersionedRequest):
    reason: str | None = Field(default=None, max_length=1000)


class RefundRequest(VersionedRequest):
    reason: str = Field(max_length=1000)


class DisputeRequest(VersionedRequest):
    reason: str | None = Field(default=None, max_length=1000)


class ConfirmDeliveryRequest(VersionedRequest):
    confirmed: bool


class StatusUpdateRequest(VersionedRequest):
    status: str
    tracking_number: str | None = None
    tracking_link: str | None = None
    carrier: str | None = None
    estimated_delivery: datetime | None = None
    note: str | None = Field(default=None, max_length=1000)


class SellerNotesRequest(VersionedRequest):
    notes: str | None = Field(default=None, max_length=2000)


class PaymentRequest(BaseModel):
    transaction_id: str | None = None


class OrderItemResponse(ResponseModel):
    post_id: str
    title: str
    price: Decimal
    quantity: int
    image: str | None = None
    selected_size: str | None = None


class StatusEntryResponse(ResponseModel):
    status: OrderStatus
    timestamp: datetime
    note: str | None
    updated_by: str | None


class OrderResponse(ResponseModel):
    id: uuid.UUID
    order_number: str
    version: int
    buyer_id: str
    seller_id: str
    items: list[OrderItemResponse]
    subtotal: Decimal
    shipping_charge: Decimal
    discount: Decimal
    total_amount: Decimal
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    transaction_id: str | None
    paid_at: datetime | None
    status: OrderStatus
    status_history: list[StatusEntryResponse]
    shipping_address: dict
    tracking_number: str | None
    tracking_link: str | None
    shipping_carrier: str | None
    estimated_delivery: datetime | None
    delivered_at: datetime | None
    cancellation_reason: str | None
    cancelled_by: str | None
    dispute_reason: str | None
    disputed_at: datetime | None
    refund_reason: str | None
    refund_amount: Decimal | None
    chat_id: str | None
    buyer_notes: str | None
    seller_notes: str | None
    created_at: datetime
    updated_at: datetime


class OrdersListResponse(Page[OrderResponse]):
    pass


class SellerStatsResponse(ResponseModel):
    counts: dict[str, int]
    total_orders: int
    total_revenue: Decimal
    pending_actions: int
    recent_orders: list[OrderResponse]


class AutoConfirmResponse(BaseModel):
    confirmed: int
