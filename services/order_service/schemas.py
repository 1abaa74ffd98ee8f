from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import OrderStatus, PaymentMethod, PaymentStatus


class CamelModel(BaseModel):
    """JSON bodies use camelCase; Python code uses snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- Requests ---

class CheckoutRequest(CamelModel):
    address_id: int
    payment_method: PaymentMethod = PaymentMethod.CARD
    notes: Optional[str] = Field(default=None, max_length=1000)


class BuySingleRequest(CamelModel):
    product_id: int
    quantity: int = Field(ge=1)
    address_id: int
    payment_method: PaymentMethod = PaymentMethod.CARD
    notes: Optional[str] = Field(default=None, max_length=1000)


class SingleSummaryRequest(CamelModel):
    product_id: int
    quantity: int


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


# --- Responses ---

class ShippingAddressSnapshot(CamelModel):
    full_name: str
    phone: str
    line1: str
    line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    country: str
    postal_code: Optional[str] = None


class PaymentInfo(CamelModel):
    provider: str
    intent_id: Optional[str] = None
    charge_id: Optional[str] = None
    last_event_id: Optional[str] = None


class OrderItemResponse(CamelModel):
    id: int
    product_id: Optional[int]
    product_name: str
    product_image: Optional[str] = None
    unit_price: float
    quantity: int
    line_total: float
    currency: str


class OrderResponse(CamelModel):
    id: int
    user_id: int
    items: List[OrderItemResponse]
    subtotal: float
    shipping_fee: float
    tax_amount: float
    total: float
    currency: str
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    reserved_until: Optional[datetime] = None
    stock_released: bool
    payment: Optional[PaymentInfo] = None
    shipping_address: ShippingAddressSnapshot
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CheckoutResponse(CamelModel):
    success: bool = True
    message: str
    order: OrderResponse
    public_key: str


class OrderEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: OrderResponse


class CancelResponse(CamelModel):
    success: bool = True
    message: str


class PaymentIntentResponse(CamelModel):
    success: bool = True
    client_secret: str


class SummaryItem(CamelModel):
    product_id: int
    name: str
    image: Optional[str] = None
    unit_price: float
    quantity: int
    line_total: float
    currency: str


class OrderSummary(CamelModel):
    items: List[SummaryItem]
    subtotal: float
    shipping_fee: float
    tax_amount: float
    total: float
    currency: str


class SummaryResponse(CamelModel):
    success: bool = True
    summary: OrderSummary


class OrderListResponse(CamelModel):
    success: bool = True
    orders: List[OrderResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class AdminOrderListResponse(CamelModel):
    success: bool = True
    items: List[OrderResponse]
    total: int
    page: int
    limit: int
    total_pages: int


# --- Listing ---

class OrderSort(str, Enum):
    DATE_LATEST = "date_latest"
    DATE_OLDEST = "date_oldest"
    TOTAL_HIGH_TO_LOW = "total_high_to_low"
    TOTAL_LOW_TO_HIGH = "total_low_to_high"


@dataclass
class OrderFilters:
    user_id: Optional[int] = None
    product_id: Optional[int] = None
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[PaymentMethod] = None
    currency: Optional[str] = None
    min_total: Optional[float] = None
    max_total: Optional[float] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    search: Optional[str] = None
    sort: OrderSort = OrderSort.DATE_LATEST
    page: int = 1
    limit: int = 20
