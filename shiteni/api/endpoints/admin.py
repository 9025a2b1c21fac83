"""
Platform Admin Endpoints

Vendor approval, user moderation, subscription plans and platform-wide
dashboards. Every route requires a platform admin (super_admin, or an
admin that belongs to no vendor).
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from shiteni.database import get_db
from shiteni.models.bus import BusTicket
from shiteni.models.hotel import HotelBooking
from shiteni.models.pharmacy import Medicine, PharmacyOrder
from shiteni.models.store import Product, StoreOrder
from shiteni.models.subscription import (
    PLAN_DEFAULT_LIMITS,
    BillingRecord,
    Subscription,
    SubscriptionPlan,
)
from shiteni.models.user import User, UserRole, UserStatus
from shiteni.models.vendor import ServiceType, Vendor, VendorStatus
from shiteni.schemas.dashboard import DashboardResponse
from shiteni.schemas.subscription import (
    AdminSubscriptionItem,
    AdminSubscriptionListResponse,
    PlanCreate,
    PlanListResponse,
    PlanResponse,
    PlanUpdate,
    SubscriptionResponse,
)
from shiteni.schemas.user import UserListResponse, UserResponse, UserStatusUpdate
from shiteni.schemas.vendor import VendorApprovalUpdate, VendorListResponse, VendorResponse
from shiteni.api.deps import paginate, require_platform_admin
from shiteni.core.exceptions import (
    InvalidInputError,
    PermissionDenied,
    RecordNotFoundError,
    UserNotFoundError,
    VendorNotFoundError,
)
from shiteni.services import analytics
from shiteni.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _snapshot(db: Session) -> analytics.PlatformSnapshot:
    """
    Load everything the admin dashboards aggregate over.

    PERFORMANCE NOTE: full table scans. Move to SQL aggregates once the
    platform outgrows a few thousand records per table.
    """
    return analytics.PlatformSnapshot(
        users=db.query(User).all(),
        vendors=db.query(Vendor).all(),
        subscriptions=db.query(Subscription).all(),
        billing_records=db.query(BillingRecord).all(),
        hotel_bookings=db.query(HotelBooking).all(),
        store_orders=db.query(StoreOrder).all(),
        pharmacy_orders=db.query(PharmacyOrder).all(),
        bus_tickets=db.query(BusTicket).all(),
        product_count=db.query(Product).count(),
        medicine_count=db.query(Medicine).count(),
    )


# -------------------------------------------------------------- vendors


@router.get("/vendors", response_model=VendorListResponse)
async def list_vendors(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    service_type: Optional[ServiceType] = None,
    status: Optional[str] = Query(None, pattern="^(pending|active|suspended|inactive)$"),
    search: Optional[str] = None,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    query = db.query(Vendor)

    if service_type:
        query = query.filter(Vendor.service_type == service_type)
    if status:
        query = query.filter(Vendor.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(Vendor.business_name.ilike(pattern) | Vendor.owner_email.ilike(pattern))

    vendors, total = paginate(query.order_by(Vendor.created_at.desc()), page, page_size)

    return VendorListResponse(vendors=vendors, total=total, page=page, page_size=page_size)


@router.get("/vendors/{vendor_id}", response_model=VendorResponse)
async def get_vendor(
    vendor_id: str,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    vendor = db.get(Vendor, vendor_id)
    if not vendor:
        raise VendorNotFoundError(vendor_id)
    return vendor


@router.patch("/vendors/{vendor_id}/status", response_model=VendorResponse)
async def update_vendor_status(
    vendor_id: str,
    approval: VendorApprovalUpdate,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    """
    Approve, suspend, reject or reset a vendor.

    approved -> active, rejected -> inactive. Who did it and when is kept
    on the vendor (activated_*/deactivated_*).
    """
    vendor = db.get(Vendor, vendor_id)
    if not vendor:
        raise VendorNotFoundError(vendor_id)

    previous = vendor.status
    vendor.apply_approval(approval.status, admin.id)

    db.commit()
    db.refresh(vendor)

    logger.info(
        f"Vendor {vendor.slug} status {previous} -> {vendor.status} by {admin.id}",
        extra={"vendor_id": vendor.id, "user_id": admin.id}
    )

    return vendor


# ---------------------------------------------------------------- users


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    vendor_id: Optional[str] = None,
    search: Optional[str] = None,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    query = db.query(User)

    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status.value)
    if vendor_id:
        query = query.filter(User.vendor_id == vendor_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            User.email.ilike(pattern) | User.first_name.ilike(pattern) | User.last_name.ilike(pattern)
        )

    users, total = paginate(query.order_by(User.created_at.desc()), page, page_size)

    return UserListResponse(users=users, total=total, page=page, page_size=page_size)


@router.patch("/users/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    update: UserStatusUpdate,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    """
    Activate, suspend or deactivate any account.

    SECURITY: admins cannot change their own status, and only a
    super_admin may touch another super_admin.
    """
    user = db.get(User, user_id)
    if not user:
        raise UserNotFoundError(user_id)

    if user.id == admin.id:
        raise InvalidInputError("You cannot change your own status")
    if user.role == UserRole.SUPER_ADMIN and admin.role != UserRole.SUPER_ADMIN:
        raise PermissionDenied("Only a super admin can change another super admin")

    user.set_status(update.status)

    db.commit()
    db.refresh(user)

    logger.info(f"User {user.id} status -> {user.status} by {admin.id}", extra={"user_id": admin.id})

    return user


# ---------------------------------------------------------------- plans


@router.get("/plans", response_model=PlanListResponse)
async def list_plans(
    vendor_type: Optional[ServiceType] = None,
    include_inactive: bool = True,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    query = db.query(SubscriptionPlan)
    if vendor_type:
        query = query.filter(SubscriptionPlan.vendor_type == vendor_type)
    if not include_inactive:
        query = query.filter(SubscriptionPlan.is_active == True)  # noqa: E712

    plans = query.order_by(SubscriptionPlan.vendor_type, SubscriptionPlan.sort_order).all()
    return PlanListResponse(plans=plans, total=len(plans))


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    plan_data: PlanCreate,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    """
    Create a plan.

    One plan per (vendor_type, plan_type). Limits left out take the plan
    type defaults (staff 2/5/unlimited for basic/premium/enterprise).
    """
    existing = db.query(SubscriptionPlan).filter(
        SubscriptionPlan.vendor_type == plan_data.vendor_type,
        SubscriptionPlan.plan_type == plan_data.plan_type.value
    ).first()
    if existing:
        raise InvalidInputError(
            f"A {plan_data.plan_type.value} plan already exists for {plan_data.vendor_type.value} vendors"
        )

    values = plan_data.model_dump()
    for limit_name, default in PLAN_DEFAULT_LIMITS[plan_data.plan_type].items():
        if values.get(limit_name) is None:
            values[limit_name] = default
    values["plan_type"] = plan_data.plan_type.value
    values["billing_cycle"] = plan_data.billing_cycle.value

    plan = SubscriptionPlan(**values)

    db.add(plan)
    db.commit()
    db.refresh(plan)

    logger.info(
        f"Plan created: {plan.vendor_type.value}/{plan.plan_type} at {plan.price} {plan.currency} by {admin.id}"
    )

    return plan


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
async def update_plan(
    plan_id: str,
    plan_data: PlanUpdate,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    """
    Update a plan.

    NOTE: price changes apply to the next payment; running subscriptions
    keep the amount they paid.
    """
    plan = db.get(SubscriptionPlan, plan_id)
    if not plan:
        raise RecordNotFoundError("Subscription plan", plan_id)

    update_data = plan_data.model_dump(exclude_unset=True)
    if update_data.get("billing_cycle") is not None:
        update_data["billing_cycle"] = update_data["billing_cycle"].value
    for field, value in update_data.items():
        setattr(plan, field, value)

    db.commit()
    db.refresh(plan)

    logger.info(f"Plan updated: {plan.id} by {admin.id}")

    return plan


@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_plan(
    plan_id: str,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    """Plans are never hard deleted: subscriptions and invoices point at them."""
    plan = db.get(SubscriptionPlan, plan_id)
    if not plan:
        raise RecordNotFoundError("Subscription plan", plan_id)

    plan.is_active = False
    db.commit()

    logger.info(f"Plan deactivated: {plan.id} by {admin.id}")

    return None


# -------------------------------------------------------- subscriptions


@router.get("/subscriptions", response_model=AdminSubscriptionListResponse)
async def list_subscriptions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(active|inactive|suspended|cancelled|expired|pending)$"),
    service_type: Optional[ServiceType] = None,
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    query = db.query(Subscription).join(Vendor, Subscription.vendor_id == Vendor.id)

    if status:
        query = query.filter(Subscription.status == status)
    if service_type:
        query = query.filter(Vendor.service_type == service_type)

    subscriptions, total = paginate(query.order_by(Subscription.updated_at.desc()), page, page_size)

    items = [
        AdminSubscriptionItem(
            **SubscriptionResponse.model_validate(s).model_dump(),
            vendor_name=s.vendor.business_name,
            service_type=s.vendor.service_type,
        )
        for s in subscriptions
    ]

    return AdminSubscriptionListResponse(subscriptions=items, total=total, page=page, page_size=page_size)


# ----------------------------------------------------------- dashboards


@router.get("/dashboard", response_model=DashboardResponse)
async def admin_dashboard(
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    result = analytics.admin_dashboard(_snapshot(db), now)
    return DashboardResponse(**result, generated_at=now)


@router.get("/statistics", response_model=DashboardResponse)
async def platform_statistics(
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    """Totals, 12-month revenue and user growth, recent platform activity."""
    now = datetime.utcnow()
    result = analytics.platform_statistics(_snapshot(db), now)
    return DashboardResponse(**result, generated_at=now)


@router.get("/pending-vendors/count")
async def pending_vendor_count(
    admin: User = Depends(require_platform_admin),
    db: Session = Depends(get_db)
):
    """Badge count for the admin sidebar."""
    count = db.query(Vendor).filter(Vendor.status == VendorStatus.PENDING.value).count()
    return {"pending": count}
