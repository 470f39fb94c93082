"""
Pydantic Schemas for Request/Response Validation

Wire format is camelCase (customerName, orderProducts, updatedAt, ...);
Python code uses snake_case attribute names. Money is held as Decimal and
rendered as a JSON number.
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from orderdesk.cpf import is_valid_cpf, remove_cpf_punctuation
from orderdesk.models import ConsumptionMethod, OrderStatus, UserRole


Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, accepts either spelling on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# ORDER INTAKE
# =============================================================================

class OrderProductInput(CamelModel):
    """Single cart line: product id and quantity. Prices come from the database."""
    id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=99)


class OrderCreate(CamelModel):
    """Request schema for creating a new order."""

    customer_name: str = Field(..., min_length=2, max_length=100, examples=["Maria Silva"])
    customer_cpf: str = Field(..., examples=["529.982.247-25"])
    customer_phone: Optional[str] = Field(None, max_length=20)
    delivery_address: Optional[str] = Field(None, max_length=255)
    delivery_reference: Optional[str] = Field(None, max_length=255)
    consumption_method: ConsumptionMethod
    products: List[OrderProductInput] = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Customer name must have at least 2 characters")
        return v

    @field_validator("customer_cpf")
    @classmethod
    def normalize_cpf(cls, v: str) -> str:
        if not is_valid_cpf(v):
            raise ValueError("Invalid CPF")
        return remove_cpf_punctuation(v)

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        cleaned = re.sub(r"[^\d]", "", v)
        if len(cleaned) < 10:
            raise ValueError("Phone number must have at least 10 digits")
        return v.strip()

    @model_validator(mode="after")
    def require_delivery_address(self) -> "OrderCreate":
        if self.consumption_method.requires_address:
            if not self.delivery_address or not self.delivery_address.strip():
                raise ValueError("Delivery address is required for delivery orders")
        return self


# =============================================================================
# CHECKOUT
# =============================================================================

class CheckoutProductInput(CamelModel):
    """Cart line shown on the hosted payment page. Name/image are display-only."""
    id: str
    quantity: int = Field(..., ge=1, le=99)
    name: Optional[str] = None
    image_url: Optional[str] = None


class CheckoutCreate(CamelModel):
    order_id: int
    products: List[CheckoutProductInput] = Field(default_factory=list)
    slug: str
    consumption_method: ConsumptionMethod
    cpf: str


class CheckoutResponse(CamelModel):
    session_id: str


# =============================================================================
# ORDER RESPONSES
# =============================================================================

class ProductSummary(CamelModel):
    id: str
    name: str
    price: Money
    image_url: Optional[str] = None


class OrderProductResponse(CamelModel):
    id: str
    product_id: str
    quantity: int
    price: Money
    product: Optional[ProductSummary] = None


class OrderResponse(CamelModel):
    """Response schema for a single order with its line items."""
    id: int
    customer_name: str
    customer_cpf: str
    customer_phone: Optional[str] = None
    delivery_address: Optional[str] = None
    delivery_reference: Optional[str] = None
    consumption_method: ConsumptionMethod
    total: Money
    status: OrderStatus
    restaurant_id: str
    created_at: datetime
    updated_at: datetime
    order_products: List[OrderProductResponse] = Field(default_factory=list)


class OrderCounts(CamelModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    preparing: int = 0
    finished: int = 0
    failed: int = 0
    last_update: datetime


class OrderListResponse(CamelModel):
    """Restaurant order list used by the admin dashboard poller."""
    success: bool = True
    orders: List[OrderResponse]
    metadata: OrderCounts
    since: Optional[datetime] = None


class OrderSnapshotResponse(CamelModel):
    order: Optional[OrderResponse] = None


class StatusCheckRequest(CamelModel):
    order_ids: List[int] = Field(..., min_length=1, max_length=100)


class StatusCheckResponse(CamelModel):
    data: List[OrderResponse]
    timestamp: datetime
    count: int


class CustomerOrdersResponse(CamelModel):
    orders: List[OrderResponse]


class StatusUpdateRequest(CamelModel):
    order_id: int
    status: OrderStatus


class StatusUpdateResponse(CamelModel):
    success: bool = True
    changed: bool
    order: OrderResponse


# =============================================================================
# MENU
# =============================================================================

class ProductResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    price: Money
    image_url: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    is_active: bool
    menu_category_id: str
    restaurant_id: str


class CategoryResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool


class MenuCategoryResponse(CategoryResponse):
    products: List[ProductResponse] = Field(default_factory=list)


class MenuRestaurantResponse(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    avatar_image_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    is_open: bool
    categories: List[MenuCategoryResponse]


class MenuResponse(CamelModel):
    restaurant: MenuRestaurantResponse


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class ToggleActiveRequest(CamelModel):
    is_active: bool


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, max_length=500)
    ingredients: List[str] = Field(default_factory=list)
    menu_category_id: str


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, max_length=500)
    ingredients: Optional[List[str]] = None
    menu_category_id: Optional[str] = None


class DeletedResponse(CamelModel):
    message: str
    id: str
    name: str


class StoreToggleRequest(CamelModel):
    is_open: bool


class StoreToggleResponse(CamelModel):
    success: bool = True
    is_open: bool


# =============================================================================
# AUTH
# =============================================================================

class RegisterRequest(CamelModel):
    restaurant_name: str = Field(..., min_length=2, max_length=150)
    restaurant_slug: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    owner_name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("restaurant_slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        v = v.strip().lower()
        if not SLUG_PATTERN.match(v):
            raise ValueError("Slug may only contain lowercase letters, digits and dashes")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not re.match(r"^[\w\.\+-]+@[\w\.-]+\.\w+$", v):
            raise ValueError("Invalid email format")
        return v


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class RestaurantSummary(CamelModel):
    id: str
    name: str
    slug: str
    stripe_onboarded: bool = False


class UserResponse(CamelModel):
    id: str
    name: str
    email: str
    role: UserRole
    restaurant_id: str
    restaurant: Optional[RestaurantSummary] = None


class LoginResponse(CamelModel):
    user: UserResponse


class RegisterResponse(CamelModel):
    message: str
    restaurant: RestaurantSummary


# =============================================================================
# REPORTS
# =============================================================================

class SalesBucket(CamelModel):
    period: str
    sales: Money
    orders: int
    customers: int


class KpiData(CamelModel):
    total_revenue: Money
    total_orders: int
    average_ticket: Money
    unique_customers: int


class TopProduct(CamelModel):
    product_id: str
    name: str
    quantity: int
    revenue: Money


class CategorySales(CamelModel):
    category: str
    quantity: int
    revenue: Money


class ReportMetadata(CamelModel):
    restaurant: str
    period: str
    start_date: datetime
    end_date: datetime
    total_orders: int
    timestamp: datetime


class SalesReportResponse(CamelModel):
    sales_data: List[SalesBucket]
    kpi_data: KpiData
    top_products: List[TopProduct]
    category_data: List[CategorySales]
    metadata: ReportMetadata


# =============================================================================
# COMMON
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    realtime: str
    payment_service: str
    timestamp: datetime
