from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .status import OrderStatus


class PaymentMethodType(str, Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    DIGITAL_WALLET = "digital_wallet"
    CASH = "cash"


class CustomizationSelection(BaseModel):
    customization_id: Optional[str] = None
    option_ids: List[str] = []


# Cart lines carry no price: whatever the client thinks an item costs is
# dropped at parse time and the catalog price is used instead.
class OrderItemIn(BaseModel):
    menu_item_id: str
    quantity: int = Field(..., gt=0)
    customizations_data: List[CustomizationSelection] = []
    special_instructions: Optional[str] = None


class OrderCreate(BaseModel):
    restaurant_id: str
    items: List[OrderItemIn] = Field(..., min_length=1)
    delivery_address_id: str
    payment_method_type: PaymentMethodType
    payment_details: Optional[Any] = None
    special_instructions: Optional[str] = None
    tip: Decimal = Field(Decimal("0"), ge=0)


class StatusUpdate(BaseModel):
    status: OrderStatus
    message: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class OrderItemOut(BaseModel):
    id: str
    menu_item_id: str
    name: str
    price: float
    quantity: int
    customizations_data: Optional[List[Dict[str, Any]]] = None
    special_instructions: Optional[str] = None


class TrackingUpdateOut(BaseModel):
    id: str
    order_id: str
    status: str
    message: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: str


class OrderOut(BaseModel):
    id: str
    customer_id: str
    restaurant_id: str
    status: str
    subtotal: float
    delivery_fee: float
    tax: float
    tip: float
    total: float
    delivery_address_id: str
    payment_method_type: str
    payment_details: Optional[Any] = None
    special_instructions: Optional[str] = None
    estimated_delivery_time: Optional[str] = None
    actual_delivery_time: Optional[str] = None
    created_at: str
    updated_at: str
    items: List[OrderItemOut]
    tracking_updates: List[TrackingUpdateOut]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int


class OrderPage(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination


class TrackingOut(BaseModel):
    order_id: str
    status: str
    tracking_updates: List[TrackingUpdateOut]
