"""
SQLAlchemy Database Models

Tenant-scoped ordering schema:
- Restaurant is the tenant root
- MenuCategory / Product make up the menu
- Order / OrderProduct hold customer purchases with price snapshots
- User is a restaurant staff account
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    Text,
    Enum,
    Boolean,
    ForeignKey,
    JSON,
)
from sqlalchemy.orm import relationship

from orderdesk.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    """Order status workflow (wire values)."""
    PENDING = "PENDING"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    IN_PREPARATION = "IN_PREPARATION"
    FINISHED = "FINISHED"
    PAYMENT_FAILED = "PAYMENT_FAILED"


class ConsumptionMethod(str, enum.Enum):
    """
    How the customer receives the order.

    The labels are kept as the storefront sends them: DINE_IN is pickup at
    the counter, TAKEAWAY is delivery to an address.
    """
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"

    @property
    def requires_address(self) -> bool:
        return self is ConsumptionMethod.TAKEAWAY


class UserRole(str, enum.Enum):
    """Staff roles."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"


class Restaurant(Base):
    """
    Tenant root. Addressed publicly by its slug.
    """
    __tablename__ = "restaurants"

    id = Column(String(32), primary_key=True, default=_new_id)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    avatar_image_url = Column(String(500), nullable=True)
    cover_image_url = Column(String(500), nullable=True)

    # =========================================================================
    # STORE FLAGS
    # =========================================================================
    is_active = Column(Boolean, default=True, nullable=False)
    is_open = Column(Boolean, default=True, nullable=False)

    # =========================================================================
    # PAYMENT ACCOUNT
    # =========================================================================
    stripe_account_id = Column(String(100), nullable=True)
    stripe_onboarded = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    categories = relationship(
        "MenuCategory", back_populates="restaurant", cascade="all, delete-orphan", passive_deletes=True
    )
    products = relationship("Product", back_populates="restaurant", passive_deletes=True)
    orders = relationship("Order", back_populates="restaurant")
    users = relationship("User", back_populates="restaurant")

    def __repr__(self):
        return f"<Restaurant {self.slug} - open={self.is_open}>"


class MenuCategory(Base):
    __tablename__ = "menu_categories"

    id = Column(String(32), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    restaurant_id = Column(
        String(32), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    restaurant = relationship("Restaurant", back_populates="categories")
    products = relationship(
        "Product", back_populates="menu_category", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<MenuCategory {self.name} - active={self.is_active}>"


class Product(Base):
    __tablename__ = "products"

    id = Column(String(32), primary_key=True, default=_new_id)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    ingredients = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)

    restaurant_id = Column(
        String(32), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_category_id = Column(
        String(32), ForeignKey("menu_categories.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    restaurant = relationship("Restaurant", back_populates="products")
    menu_category = relationship("MenuCategory", back_populates="products")

    def __repr__(self):
        return f"<Product {self.name} - {self.price}>"


class Order(Base):
    """
    A customer purchase.

    total is computed once at intake from the OrderProduct snapshots and is
    never derived from live product prices afterwards.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(100), nullable=False)
    customer_cpf = Column(String(11), nullable=False, index=True)
    customer_phone = Column(String(20), nullable=True)

    # =========================================================================
    # DELIVERY (TAKEAWAY only)
    # =========================================================================
    delivery_address = Column(String(255), nullable=True)
    delivery_reference = Column(String(255), nullable=True)

    consumption_method = Column(Enum(ConsumptionMethod, name="consumption_method"), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(OrderStatus, name="order_status"),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )

    restaurant_id = Column(String(32), ForeignKey("restaurants.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    restaurant = relationship("Restaurant", back_populates="orders")
    order_products = relationship(
        "OrderProduct", back_populates="order", order_by="OrderProduct.created_at"
    )

    def __repr__(self):
        return f"<Order #{self.id} - {self.customer_name} - {self.status.value}>"


class OrderProduct(Base):
    """Line item. price is the product price at the moment the order was placed."""
    __tablename__ = "order_products"

    id = Column(String(32), primary_key=True, default=_new_id)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(32), ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("Order", back_populates="order_products")
    product = relationship("Product")

    def __repr__(self):
        return f"<OrderProduct order={self.order_id} product={self.product_id} x{self.quantity}>"


class User(Base):
    """Restaurant staff account."""
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, name="user_role"), default=UserRole.STAFF, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)

    restaurant_id = Column(String(32), ForeignKey("restaurants.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    restaurant = relationship("Restaurant", back_populates="users")

    def __repr__(self):
        return f"<User {self.email} - {self.role.value}>"
