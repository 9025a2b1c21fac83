"""
Vendor Model

The vendor is the isolation boundary: a hotel, store, pharmacy or bus
operator. Every vendor-owned table carries vendor_id and every query
against those tables MUST filter on it.

Vendors register as "pending" and stay invisible to customers until a
platform admin approves them.
"""
from sqlalchemy import Column, String, DateTime, Integer, JSON, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from shiteni.database import Base
import uuid
import enum


class ServiceType(str, enum.Enum):
    """Business verticals supported by the platform."""
    HOTEL = "hotel"
    STORE = "store"
    PHARMACY = "pharmacy"
    BUS = "bus"


class VendorStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


# Admin approval actions -> stored vendor status
APPROVAL_STATUS_MAP = {
    "approved": VendorStatus.ACTIVE,
    "suspended": VendorStatus.SUSPENDED,
    "rejected": VendorStatus.INACTIVE,
    "pending": VendorStatus.PENDING,
}


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    business_name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)

    # Subdomain for vendor routing (e.g., sunrise.shiteni.com)
    subdomain = Column(String(63), unique=True, nullable=False, index=True)

    service_type = Column(SQLEnum(ServiceType), nullable=False, index=True)
    status = Column(String(20), default=VendorStatus.PENDING.value, nullable=False, index=True)

    owner_email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    address = Column(String(512), nullable=True)
    currency = Column(String(3), default="ZMW", nullable=False)
    description = Column(String(1024), nullable=True)

    # Free-form display settings (logo, opening hours, ...)
    settings = Column(JSON, nullable=True, default=dict)

    # Rate limiting overrides; NULL = use global defaults
    rate_limit_per_minute = Column(Integer, nullable=True)
    rate_limit_burst = Column(Integer, nullable=True)

    # Approval audit trail
    activated_at = Column(DateTime, nullable=True)
    activated_by = Column(String(36), nullable=True)
    deactivated_at = Column(DateTime, nullable=True)
    deactivated_by = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="vendor", cascade="all, delete-orphan")
    subscription = relationship(
        "Subscription", back_populates="vendor", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index('idx_vendor_service_status', 'service_type', 'status'),
    )

    def __repr__(self):
        return f"<Vendor {self.slug} ({self.service_type})>"

    @property
    def is_approved(self) -> bool:
        return self.status == VendorStatus.ACTIVE.value

    @property
    def is_blocked(self) -> bool:
        """Suspended and rejected vendors cannot use their dashboard at all."""
        return self.status in (VendorStatus.SUSPENDED.value, VendorStatus.INACTIVE.value)

    def apply_approval(self, action: str, admin_id: str) -> None:
        """
        Apply an admin approval action and record who did it.

        Raises KeyError for unknown actions; callers validate first.
        """
        new_status = APPROVAL_STATUS_MAP[action]
        now = datetime.utcnow()
        if new_status == VendorStatus.ACTIVE:
            self.activated_at = now
            self.activated_by = admin_id
        elif new_status in (VendorStatus.SUSPENDED, VendorStatus.INACTIVE):
            self.deactivated_at = now
            self.deactivated_by = admin_id
        self.status = new_status.value
