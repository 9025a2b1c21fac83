"""
Store Models

Retail products and orders. Order lines are stored as their own rows so
top-product rankings can be computed without parsing JSON.
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, Integer, Float, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from shiteni.database import Base
import uuid
import enum


class ProductStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Product(Base):
    __tablename__ = "store_products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    sku = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)
    cost = Column(Float, nullable=True)
    stock = Column(Integer, default=0, nullable=False)
    min_stock = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default=ProductStatus.ACTIVE.value, nullable=False)
    featured = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('vendor_id', 'sku', name='uq_product_vendor_sku'),
        Index('idx_product_vendor_status', 'vendor_id', 'status'),
    )

    def __repr__(self):
        return f"<Product {self.sku} (vendor={self.vendor_id})>"

    def sync_stock_status(self) -> None:
        """Flip between active and out_of_stock; inactive is left alone."""
        if self.status == ProductStatus.INACTIVE.value:
            return
        self.status = ProductStatus.OUT_OF_STOCK.value if self.stock <= 0 else ProductStatus.ACTIVE.value


class StoreOrder(Base):
    __tablename__ = "store_orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    customer_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    order_number = Column(String(50), unique=True, nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    subtotal = Column(Float, nullable=False)
    tax = Column(Float, default=0.0, nullable=False)
    shipping = Column(Float, default=0.0, nullable=False)
    discount = Column(Float, default=0.0, nullable=False)
    total = Column(Float, nullable=False)
    status = Column(String(20), default=OrderStatus.PENDING.value, nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_method = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = relationship("StoreOrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_store_order_vendor_created', 'vendor_id', 'created_at'),
    )

    def __repr__(self):
        return f"<StoreOrder {self.order_number}>"


class StoreOrderItem(Base):
    __tablename__ = "store_order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(
        String(36),
        ForeignKey("store_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id = Column(String(36), ForeignKey("store_products.id", ondelete="SET NULL"), nullable=True)

    # Snapshot of the product at order time
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    total = Column(Float, nullable=False)

    order = relationship("StoreOrder", back_populates="items")
