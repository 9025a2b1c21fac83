"""
Vendor Endpoints

The vendor's own profile, approval status and subscription.

Subscription flow:
1. GET  /vendor/subscription/plans           plans for this service type
2. POST /vendor/subscription/upgrade         charge through Lipila
3. GET  /vendor/subscription/payment-status  poll until paid or failed
   (the Lipila webhook usually gets there first)
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import datetime

from shiteni.database import get_db
from shiteni.models.subscription import BillingRecord, SubscriptionPlan, SubscriptionStatus
from shiteni.models.user import User
from shiteni.models.vendor import ServiceType, Vendor
from shiteni.schemas.subscription import (
    BillingHistoryResponse,
    PaymentStatusResponse,
    PlanListResponse,
    SubscriptionStatusResponse,
    UpgradeRequest,
    UpgradeResponse,
)
from shiteni.schemas.vendor import ApprovalStatusResponse, VendorResponse, VendorUpdate
from shiteni.api.deps import (
    get_current_vendor,
    get_vendor_user,
    paginate,
    require_vendor_manager,
)
from shiteni.services import billing
from shiteni.services.lipila import LipilaClient, get_lipila_client
from shiteni.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/vendor", tags=["vendor"])


@router.get("/profile", response_model=VendorResponse)
async def get_profile(
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor)
):
    return vendor


@router.patch("/profile", response_model=VendorResponse)
async def update_profile(
    vendor_data: VendorUpdate,
    current_user: User = Depends(require_vendor_manager),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Update vendor profile.

    NOTE: settings is replaced wholesale, not merged.
    """
    update_data = vendor_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(vendor, field, value)

    db.commit()
    db.refresh(vendor)

    logger.info(f"Vendor profile updated by {current_user.id}", extra={"vendor_id": vendor.id})

    return vendor


@router.get("/approval-status", response_model=ApprovalStatusResponse)
async def get_approval_status(
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """Whether the vendor is approved and may publish listings right now."""
    has_subscription = billing.get_active_subscription(db, vendor, datetime.utcnow()) is not None

    if not vendor.is_approved:
        message = "Your account is pending admin approval."
    elif not has_subscription:
        message = "Your account is approved. Subscribe to a plan to start listing."
    else:
        message = "Your account is approved and active."

    return ApprovalStatusResponse(
        vendor_id=vendor.id,
        status=vendor.status,
        is_approved=vendor.is_approved,
        can_list=vendor.is_approved and has_subscription,
        activated_at=vendor.activated_at,
        message=message,
    )


@router.get("/subscription", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """Current plan, limits and usage for the dashboard subscription card."""
    now = datetime.utcnow()
    active = billing.get_active_subscription(db, vendor, now)
    subscription = active or billing.get_subscription(db, vendor)

    days_remaining = None
    if active is not None:
        days_remaining = max((active.end_date - now).days, 0)

    return SubscriptionStatusResponse(
        has_active_subscription=active is not None,
        subscription=subscription,
        plan=subscription.plan if subscription else None,
        pending_plan=subscription.pending_plan if subscription else None,
        usage=billing.usage_summary(db, vendor),
        days_remaining=days_remaining,
    )


@router.get("/subscription/plans", response_model=PlanListResponse)
async def list_available_plans(
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    plans = db.query(SubscriptionPlan).filter(
        SubscriptionPlan.vendor_type == ServiceType(vendor.service_type),
        SubscriptionPlan.is_active == True  # noqa: E712
    ).order_by(SubscriptionPlan.sort_order, SubscriptionPlan.price).all()

    return PlanListResponse(plans=plans, total=len(plans))


@router.post("/subscription/upgrade", response_model=UpgradeResponse)
async def upgrade_subscription(
    request_data: UpgradeRequest,
    current_user: User = Depends(require_vendor_manager),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db),
    client: LipilaClient = Depends(get_lipila_client)
):
    """
    Pay for a plan.

    Mobile money returns "pending" until the customer approves the prompt;
    card payments return a redirect_url for the hosted checkout.
    """
    info = request_data.customer_info
    result = await billing.upgrade_subscription(
        db,
        vendor,
        plan_id=request_data.plan_id,
        payment_type=request_data.payment_type,
        phone_number=info.phone_number or current_user.phone or vendor.phone,
        client=client,
        full_name=info.full_name or current_user.full_name,
        email=info.email or current_user.email,
    )
    return UpgradeResponse(**result)


@router.get("/subscription/payment-status", response_model=PaymentStatusResponse)
async def get_payment_status(
    transaction_id: str = Query(..., min_length=1, alias="transactionId"),
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db),
    client: LipilaClient = Depends(get_lipila_client)
):
    record = await billing.refresh_payment_status(db, vendor, transaction_id, client)
    subscription = record.subscription

    return PaymentStatusResponse(
        transaction_id=transaction_id,
        billing_status=record.status,
        subscription_status=subscription.status if subscription else SubscriptionStatus.INACTIVE.value,
        invoice_number=record.invoice_number,
    )


@router.get("/subscription/billing-history", response_model=BillingHistoryResponse)
async def get_billing_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    query = db.query(BillingRecord).filter(
        BillingRecord.vendor_id == vendor.id  # CRITICAL
    ).order_by(BillingRecord.billing_date.desc())

    records, total = paginate(query, page, page_size)

    return BillingHistoryResponse(records=records, total=total, page=page, page_size=page_size)
