"""
Pharmacy Models

Medicines carry batch and expiry data; status is derived from stock and
expiry every time the row is saved through the API.
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, Integer, Float
from sqlalchemy.orm import relationship
from datetime import datetime
from shiteni.database import Base
import uuid
import enum


class MedicineStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    LOW_STOCK = "low_stock"


class PharmacyOrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Medicine(Base):
    __tablename__ = "pharmacy_medicines"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(255), nullable=False)
    generic_name = Column(String(255), nullable=True)
    manufacturer = Column(String(255), nullable=True)
    category = Column(String(100), nullable=True)
    form = Column(String(50), nullable=True)  # tablet, syrup, injection, ...
    strength = Column(String(50), nullable=True)
    price = Column(Float, nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    min_stock = Column(Integer, default=10, nullable=False)
    expiry_date = Column(DateTime, nullable=True)
    batch_number = Column(String(100), nullable=True)
    prescription_required = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default=MedicineStatus.ACTIVE.value, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_medicine_vendor_status', 'vendor_id', 'status'),
        Index('idx_medicine_vendor_expiry', 'vendor_id', 'expiry_date'),
    )

    def __repr__(self):
        return f"<Medicine {self.name} (vendor={self.vendor_id})>"

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date is not None and self.expiry_date <= now

    def refresh_status(self, now: datetime) -> None:
        """Expired wins over low stock; inactive is only set by hand."""
        if self.status == MedicineStatus.INACTIVE.value:
            return
        if self.is_expired(now):
            self.status = MedicineStatus.EXPIRED.value
        elif self.stock <= self.min_stock:
            self.status = MedicineStatus.LOW_STOCK.value
        else:
            self.status = MedicineStatus.ACTIVE.value


class PharmacyOrder(Base):
    __tablename__ = "pharmacy_orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    customer_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    order_number = Column(String(50), unique=True, nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    order_type = Column(String(20), default="walk-in", nullable=False)
    subtotal = Column(Float, nullable=False)
    tax = Column(Float, default=0.0, nullable=False)
    shipping_fee = Column(Float, default=0.0, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String(20), default=PharmacyOrderStatus.PENDING.value, nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_method = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)

    confirmed_at = Column(DateTime, nullable=True)
    ready_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = relationship("PharmacyOrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_pharmacy_order_vendor_created', 'vendor_id', 'created_at'),
    )

    def __repr__(self):
        return f"<PharmacyOrder {self.order_number}>"


class PharmacyOrderItem(Base):
    __tablename__ = "pharmacy_order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(
        String(36),
        ForeignKey("pharmacy_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    medicine_id = Column(String(36), ForeignKey("pharmacy_medicines.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    total = Column(Float, nullable=False)

    order = relationship("PharmacyOrder", back_populates="items")
