"""Pydantic schemas for request/response validation."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from config import DB_INT_MAX, DB_INT_MIN


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case accepted on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductRequest(CamelModel):
    """Schema for creating or replacing a product."""
    name: str = ""
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    category: str = ""
    stock_quantity: int = 0
    is_active: bool = True
    image_url: Optional[str] = None


class ProductResponse(CamelModel):
    """Schema for product response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: float
    category: str
    stock_quantity: int
    is_active: bool
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StockUpdateRequest(CamelModel):
    """Signed stock delta."""
    quantity: int = Field(ge=-DB_INT_MAX, le=DB_INT_MAX)


class StockUpdateResponse(CamelModel):
    message: str
    product_id: int
    stock_quantity: int


class OrderLineRequest(CamelModel):
    """One requested line of an order."""
    product_id: int = Field(ge=DB_INT_MIN, le=DB_INT_MAX)
    quantity: int = Field(le=DB_INT_MAX)


class CreateOrderRequest(CamelModel):
    """Schema for placing an order."""
    items: List[OrderLineRequest] = []
    shipping_address: str = ""
    notes: Optional[str] = None


class OrderItemResponse(CamelModel):
    """Order line expanded for display."""
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    total_price: float


class OrderResponse(CamelModel):
    """Schema for order response."""
    id: int
    order_date: datetime
    status: str
    total_amount: float
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemResponse] = []


class OrderStatusUpdateRequest(CamelModel):
    status: str


class MessageResponse(CamelModel):
    message: str


class LoginRequest(CamelModel):
    """Login request model."""
    email: str = ""
    password: str = ""
    remember_me: bool = False


class LoginResponse(CamelModel):
    """Login response model."""
    message: str
    email: str
    token: str
    token_type: str = "bearer"
    expires_at: datetime


class RegisterRequest(CamelModel):
    """Registration request model."""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""


class RegisterResponse(CamelModel):
    message: str
    email: str


class CurrentUserResponse(CamelModel):
    """Profile of the authenticated caller."""
    id: str
    email: str
    first_name: str
    last_name: str
    roles: List[str]
    created_at: datetime
    last_login_at: Optional[datetime] = None


class HealthResponse(CamelModel):
    status: str
    timestamp: datetime
    version: str
