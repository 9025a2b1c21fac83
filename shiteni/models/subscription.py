"""
Subscription Models

SubscriptionPlan: priced tier per service type with usage limits.
Subscription: a vendor's current plan (one row per vendor).
BillingRecord: one invoice per payment attempt, keyed by the Lipila
transaction id so webhooks and status polls can find it.
"""
from sqlalchemy import (
    Column, String, Text, Boolean, DateTime, ForeignKey, Index, Integer, Float, JSON,
    UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from datetime import datetime
from shiteni.database import Base
from shiteni.models.vendor import ServiceType
import uuid
import enum


class PlanType(str, enum.Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PENDING = "pending"


class BillingStatus(str, enum.Enum):
    PAID = "paid"
    PENDING = "pending"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


# Limits applied when an admin creates a plan without explicit values.
# -1 means unlimited.
PLAN_DEFAULT_LIMITS = {
    PlanType.BASIC: {"max_users": 10, "max_inventory_items": 100, "max_storage_gb": 10, "max_staff_accounts": 2},
    PlanType.PREMIUM: {"max_users": 100, "max_inventory_items": 1000, "max_storage_gb": 100, "max_staff_accounts": 5},
    PlanType.ENTERPRISE: {"max_users": 1000, "max_inventory_items": 10000, "max_storage_gb": 1000, "max_staff_accounts": -1},
}

UNLIMITED = -1


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    vendor_type = Column(SQLEnum(ServiceType), nullable=False, index=True)
    plan_type = Column(String(20), nullable=False)
    price = Column(Float, nullable=False)
    currency = Column(String(3), default="ZMW", nullable=False)
    billing_cycle = Column(String(20), default=BillingCycle.MONTHLY.value, nullable=False)
    features = Column(JSON, nullable=False, default=list)

    max_users = Column(Integer, nullable=False)
    max_inventory_items = Column(Integer, nullable=False)
    max_storage_gb = Column(Integer, nullable=False)
    max_staff_accounts = Column(Integer, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    is_popular = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('vendor_type', 'plan_type', name='uq_plan_vendor_type_plan_type'),
    )

    def __repr__(self):
        return f"<SubscriptionPlan {self.vendor_type}/{self.plan_type}>"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )
    plan_id = Column(String(36), ForeignKey("subscription_plans.id"), nullable=True)

    # Plan being paid for while a payment is still in flight
    pending_plan_id = Column(String(36), ForeignKey("subscription_plans.id"), nullable=True)

    plan_type = Column(String(20), nullable=True)
    status = Column(String(20), default=SubscriptionStatus.INACTIVE.value, nullable=False, index=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    next_billing_date = Column(DateTime, nullable=True)
    billing_cycle = Column(String(20), default=BillingCycle.MONTHLY.value, nullable=False)
    amount = Column(Float, default=0.0, nullable=False)
    currency = Column(String(3), default="ZMW", nullable=False)
    payment_method = Column(String(20), nullable=True)
    auto_renew = Column(Boolean, default=True, nullable=False)
    last_payment_date = Column(DateTime, nullable=True)

    lipila_transaction_id = Column(String(100), nullable=True)
    lipila_external_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    vendor = relationship("Vendor", back_populates="subscription")
    plan = relationship("SubscriptionPlan", foreign_keys=[plan_id])
    pending_plan = relationship("SubscriptionPlan", foreign_keys=[pending_plan_id])

    def __repr__(self):
        return f"<Subscription vendor={self.vendor_id} status={self.status}>"

    def is_current(self, now: datetime) -> bool:
        """Active status alone is not enough; the paid period must not have elapsed."""
        return (
            self.status == SubscriptionStatus.ACTIVE.value
            and self.end_date is not None
            and self.end_date > now
        )


class BillingRecord(Base):
    __tablename__ = "billing_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    subscription_id = Column(
        String(36),
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    plan_id = Column(String(36), ForeignKey("subscription_plans.id"), nullable=True)

    invoice_number = Column(String(50), unique=True, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(3), default="ZMW", nullable=False)
    status = Column(String(20), default=BillingStatus.PENDING.value, nullable=False, index=True)
    billing_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    due_date = Column(DateTime, nullable=True)
    payment_date = Column(DateTime, nullable=True)
    payment_method = Column(String(20), nullable=True)
    description = Column(String(512), nullable=True)
    plan_type = Column(String(20), nullable=True)
    billing_cycle = Column(String(20), nullable=True)

    lipila_transaction_id = Column(String(100), nullable=True, index=True)
    lipila_external_id = Column(String(100), nullable=True)
    lipila_payment_type = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    subscription = relationship("Subscription")
    plan = relationship("SubscriptionPlan")

    __table_args__ = (
        Index('idx_billing_vendor_date', 'vendor_id', 'billing_date'),
    )

    def __repr__(self):
        return f"<BillingRecord {self.invoice_number} {self.status}>"
