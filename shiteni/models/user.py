"""
User Model

One user table for everyone: customers and platform admins have no
vendor, managers and staff belong to exactly one vendor.

IMPORTANT: vendor_id is the critical field for data isolation.
Staff listings MUST filter by vendor_id.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from shiteni.database import Base
import uuid
import enum


class UserRole(str, enum.Enum):
    """
    Platform roles.

    CUSTOMER, SUPER_ADMIN and ADMIN are platform-wide. MANAGER runs a
    vendor. The rest are staff roles that only make sense for one or two
    service types (see core.permissions.ROLES_BY_SERVICE). CASHIER is
    shared by stores and pharmacies with different module sets.
    """
    CUSTOMER = "customer"
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MANAGER = "manager"

    # Hotel
    RECEPTIONIST = "receptionist"
    HOUSEKEEPING = "housekeeping"

    # Store / pharmacy
    CASHIER = "cashier"
    INVENTORY_MANAGER = "inventory_manager"
    SALES_ASSOCIATE = "sales_associate"
    PHARMACIST = "pharmacist"
    TECHNICIAN = "technician"

    # Bus
    DRIVER = "driver"
    CONDUCTOR = "conductor"
    TICKET_SELLER = "ticket_seller"
    DISPATCHER = "dispatcher"
    MAINTENANCE = "maintenance"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    SUSPENDED = "suspended"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # NULL for customers and platform admins
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    # Login is global (no vendor in the login form), so email is unique platform-wide
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=True)

    role = Column(
        SQLEnum(UserRole),
        default=UserRole.CUSTOMER,
        nullable=False,
        index=True
    )
    status = Column(String(20), default=UserStatus.ACTIVE.value, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    email_verified = Column(Boolean, default=False, nullable=False)

    # Manager who created this staff account
    created_by = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    vendor = relationship("Vendor", back_populates="users")

    __table_args__ = (
        Index('idx_user_vendor_role', 'vendor_id', 'role'),
        Index('idx_user_vendor_active', 'vendor_id', 'is_active'),
    )

    def __repr__(self):
        return f"<User {self.email} (vendor={self.vendor_id})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_staff(self) -> bool:
        """Counts against the plan's staff allowance (managers excluded)."""
        return self.vendor_id is not None and self.role not in (
            UserRole.MANAGER, UserRole.CUSTOMER, UserRole.SUPER_ADMIN, UserRole.ADMIN
        )

    def set_status(self, status: str) -> None:
        """Keep is_active in step with the account status."""
        self.status = UserStatus(status).value
        self.is_active = self.status == UserStatus.ACTIVE.value
