"""
Subscription billing

Bookkeeping around Lipila payments:

- upgrade_subscription charges the plan price and records a BillingRecord
- apply_payment_status moves a BillingRecord (and its Subscription) to a
  final state; used by the upgrade flow, status polls and the webhook
- get_active_subscription / check_plan_limit gate vendor actions

A subscription row exists once per vendor. While a payment is in flight
the target plan sits in pending_plan_id; an already active subscription
keeps serving its current plan until the payment is confirmed.
"""
import calendar
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from shiteni.config import get_settings
from shiteni.core.exceptions import (
    InvalidInputError,
    PaymentFailedError,
    PaymentServiceUnavailable,
    QuotaExceededError,
    RecordNotFoundError,
    SubscriptionRequiredError,
)
from shiteni.models.bus import Bus
from shiteni.models.hotel import Room
from shiteni.models.pharmacy import Medicine
from shiteni.models.store import Product
from shiteni.models.subscription import (
    UNLIMITED,
    BillingCycle,
    BillingRecord,
    BillingStatus,
    PaymentMethod,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)
from shiteni.models.user import User, UserRole
from shiteni.models.vendor import ServiceType, Vendor
from shiteni.services.lipila import (
    LipilaClient,
    LipilaError,
    LipilaPaymentStatus,
    PaymentType,
    normalize_phone_number,
)
from shiteni.utils.logging import get_logger

logger = get_logger(__name__)

CYCLE_MONTHS = {
    BillingCycle.MONTHLY.value: 1,
    BillingCycle.QUARTERLY.value: 3,
    BillingCycle.YEARLY.value: 12,
}

# What counts as an "inventory item" for each vertical
INVENTORY_MODELS = {
    ServiceType.HOTEL: Room,
    ServiceType.STORE: Product,
    ServiceType.PHARMACY: Medicine,
    ServiceType.BUS: Bus,
}

GATEWAY_TO_BILLING_STATUS = {
    LipilaPaymentStatus.SUCCESSFUL: BillingStatus.PAID,
    LipilaPaymentStatus.FAILED: BillingStatus.FAILED,
    LipilaPaymentStatus.CANCELLED: BillingStatus.CANCELLED,
    LipilaPaymentStatus.PENDING: BillingStatus.PENDING,
}


def add_months(start: datetime, months: int) -> datetime:
    """Calendar month arithmetic; Jan 31 + 1 month = Feb 28/29."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def period_end(start: datetime, billing_cycle: str) -> datetime:
    try:
        months = CYCLE_MONTHS[billing_cycle]
    except KeyError:
        raise InvalidInputError(f"Unknown billing cycle: {billing_cycle}")
    return add_months(start, months)


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    return f"INV-{now:%Y%m}-{uuid.uuid4().hex[:8].upper()}"


def map_gateway_status(status: Optional[str]) -> BillingStatus:
    """Successful -> paid, Failed -> failed, Cancelled -> cancelled, anything else -> pending"""
    return GATEWAY_TO_BILLING_STATUS[LipilaPaymentStatus.parse(status)]


def get_subscription(db: Session, vendor: Vendor) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.vendor_id == vendor.id).first()


def ensure_subscription(db: Session, vendor: Vendor) -> Subscription:
    """Return the vendor's subscription row, creating an inactive one if missing."""
    subscription = get_subscription(db, vendor)
    if subscription is None:
        subscription = Subscription(
            vendor_id=vendor.id,
            status=SubscriptionStatus.INACTIVE.value,
            currency=vendor.currency or get_settings().DEFAULT_CURRENCY,
        )
        db.add(subscription)
        db.flush()
    return subscription


def get_active_subscription(db: Session, vendor: Vendor, now: Optional[datetime] = None) -> Optional[Subscription]:
    """
    The vendor's subscription if it is active and inside its paid period.

    An active subscription whose end date has passed is flipped to
    expired here, so listings and status screens agree.
    """
    now = now or datetime.utcnow()
    subscription = get_subscription(db, vendor)
    if subscription is None:
        return None

    if subscription.status == SubscriptionStatus.ACTIVE.value and not subscription.is_current(now):
        subscription.status = SubscriptionStatus.EXPIRED.value
        db.commit()
        logger.info(
            f"Subscription expired for vendor {vendor.id}",
            extra={"vendor_id": vendor.id}
        )
        return None

    return subscription if subscription.is_current(now) else None


def count_staff(db: Session, vendor_id: str) -> int:
    return db.query(User).filter(
        User.vendor_id == vendor_id,
        User.role != UserRole.MANAGER,
    ).count()


def count_users(db: Session, vendor_id: str) -> int:
    return db.query(User).filter(User.vendor_id == vendor_id).count()


def count_inventory(db: Session, vendor: Vendor) -> int:
    model = INVENTORY_MODELS[ServiceType(vendor.service_type)]
    return db.query(model).filter(model.vendor_id == vendor.id).count()


def usage_summary(db: Session, vendor: Vendor) -> Dict[str, int]:
    return {
        "staff_accounts": count_staff(db, vendor.id),
        "users": count_users(db, vendor.id),
        "inventory_items": count_inventory(db, vendor),
    }


def _within_limit(current: int, limit: int) -> bool:
    return limit == UNLIMITED or current < limit


def check_plan_limit(db: Session, vendor: Vendor, resource: str, now: Optional[datetime] = None) -> None:
    """
    Raise unless the vendor may add one more of resource.

    resource is "staff" (staff accounts and total seats) or "inventory"
    (rooms, products, medicines or buses depending on service type).
    """
    subscription = get_active_subscription(db, vendor, now)
    if subscription is None or subscription.plan is None:
        raise SubscriptionRequiredError()
    plan = subscription.plan

    if resource == "staff":
        if not _within_limit(count_staff(db, vendor.id), plan.max_staff_accounts):
            raise QuotaExceededError("staff accounts", plan.max_staff_accounts)
        if not _within_limit(count_users(db, vendor.id), plan.max_users):
            raise QuotaExceededError("users", plan.max_users)
    elif resource == "inventory":
        if not _within_limit(count_inventory(db, vendor), plan.max_inventory_items):
            raise QuotaExceededError("inventory items", plan.max_inventory_items)
    else:
        raise ValueError(f"Unknown plan resource: {resource}")


def _activate(subscription: Subscription, plan: SubscriptionPlan, billing: BillingRecord, now: datetime) -> None:
    subscription.plan_id = plan.id
    subscription.pending_plan_id = None
    subscription.plan_type = plan.plan_type
    subscription.billing_cycle = plan.billing_cycle
    subscription.amount = plan.price
    subscription.currency = plan.currency
    subscription.status = SubscriptionStatus.ACTIVE.value
    subscription.start_date = now
    subscription.end_date = period_end(now, plan.billing_cycle)
    subscription.next_billing_date = subscription.end_date
    subscription.last_payment_date = now
    subscription.payment_method = billing.payment_method
    subscription.lipila_transaction_id = billing.lipila_transaction_id
    subscription.lipila_external_id = billing.lipila_external_id


def apply_payment_status(
    db: Session,
    billing: BillingRecord,
    new_status: BillingStatus,
    now: Optional[datetime] = None,
) -> BillingRecord:
    """
    Move a billing record to new_status and update its subscription.

    Re-applying the status a record already has is a no-op, so repeated
    webhook deliveries never extend a period twice. The caller commits.
    """
    now = now or datetime.utcnow()
    if billing.status == new_status.value:
        return billing
    if billing.status == BillingStatus.PAID.value:
        logger.warning(
            f"Ignoring {new_status.value} for already paid invoice {billing.invoice_number}",
            extra={"vendor_id": billing.vendor_id, "transaction_id": billing.lipila_transaction_id}
        )
        return billing

    billing.status = new_status.value
    subscription = billing.subscription

    if new_status == BillingStatus.PAID:
        billing.payment_date = now
        plan = billing.plan or subscription.pending_plan or subscription.plan
        _activate(subscription, plan, billing, now)
        logger.info(
            f"Subscription activated on plan {plan.plan_type} for vendor {billing.vendor_id}",
            extra={"vendor_id": billing.vendor_id, "transaction_id": billing.lipila_transaction_id}
        )
    elif new_status in (BillingStatus.FAILED, BillingStatus.CANCELLED):
        billed_plan_id = billing.plan.id if billing.plan is not None else billing.plan_id
        if subscription.pending_plan_id == billed_plan_id:
            subscription.pending_plan_id = None
        if subscription.status == SubscriptionStatus.PENDING.value:
            subscription.status = SubscriptionStatus.INACTIVE.value
        logger.info(
            f"Payment {new_status.value} for invoice {billing.invoice_number}",
            extra={"vendor_id": billing.vendor_id, "transaction_id": billing.lipila_transaction_id}
        )

    return billing


def _payment_method_for(payment_type: PaymentType) -> str:
    if payment_type == PaymentType.MOBILE_MONEY:
        return PaymentMethod.MOBILE_MONEY.value
    return PaymentMethod.CARD.value


async def upgrade_subscription(
    db: Session,
    vendor: Vendor,
    plan_id: str,
    payment_type: str,
    phone_number: Optional[str],
    client: LipilaClient,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Charge the vendor for plan_id and record the outcome.

    Returns a dict with status "active" (paid now) or "pending" (waiting
    for the customer or the gateway). Declined payments raise
    PaymentFailedError; credential problems raise PaymentServiceUnavailable.
    """
    now = now or datetime.utcnow()
    settings = get_settings()

    plan = db.query(SubscriptionPlan).filter(
        SubscriptionPlan.id == plan_id,
        SubscriptionPlan.vendor_type == ServiceType(vendor.service_type),
        SubscriptionPlan.is_active == True  # noqa: E712
    ).first()
    if not plan:
        raise RecordNotFoundError("Subscription plan", plan_id)
    if not plan.price or plan.price <= 0:
        raise InvalidInputError("This plan has no price to charge")

    try:
        normalized_type = PaymentType.normalize(payment_type)
    except ValueError:
        raise InvalidInputError("Invalid payment type. Use mobile_money or card")

    if not phone_number:
        raise InvalidInputError("Phone number is required")
    try:
        phone = normalize_phone_number(phone_number)
    except LipilaError as e:
        raise InvalidInputError(str(e))

    subscription = ensure_subscription(db, vendor)
    redirect_url = None
    if normalized_type == PaymentType.CARD:
        redirect_url = (
            f"{settings.PUBLIC_BASE_URL}/dashboard/vendor/{ServiceType(vendor.service_type).value}"
            f"/subscription?payment=success"
        )

    billing = BillingRecord(
        vendor_id=vendor.id,
        subscription=subscription,
        plan=plan,
        invoice_number=generate_invoice_number(now),
        amount=plan.price,
        currency=plan.currency,
        status=BillingStatus.PENDING.value,
        billing_date=now,
        due_date=now + timedelta(days=7),
        payment_method=_payment_method_for(normalized_type),
        description=f"{plan.name} ({plan.billing_cycle}) subscription",
        plan_type=plan.plan_type,
        billing_cycle=plan.billing_cycle,
        lipila_payment_type=normalized_type.value,
    )

    try:
        result = await client.process_subscription_payment(
            reference=subscription.id,
            amount=plan.price,
            payment_type=normalized_type,
            phone_number=phone,
            full_name=full_name,
            email=email,
            redirect_url=redirect_url,
        )
    except LipilaError as e:
        if e.is_auth_error:
            db.rollback()
            logger.error(
                "Lipila rejected our credentials during subscription upgrade",
                extra={"vendor_id": vendor.id}
            )
            raise PaymentServiceUnavailable()

        # Gateway hiccup: keep the attempt on record so it can be retried
        logger.error(
            f"Subscription payment error for vendor {vendor.id}: {e}",
            extra={"vendor_id": vendor.id}
        )
        subscription.pending_plan_id = plan.id
        if not subscription.is_current(now):
            subscription.status = SubscriptionStatus.PENDING.value
        db.add(billing)
        db.commit()
        return {
            "success": False,
            "status": SubscriptionStatus.PENDING.value,
            "message": "Payment could not be confirmed yet. We will retry the confirmation.",
            "billing_record_id": billing.id,
            "invoice_number": billing.invoice_number,
            "transaction_id": None,
            "external_id": None,
            "redirect_url": None,
            "subscription": subscription,
        }

    gateway_status = LipilaPaymentStatus.parse(result.get("status"))
    billing.lipila_transaction_id = result.get("transactionId")
    billing.lipila_external_id = result.get("externalId")
    db.add(billing)

    if gateway_status in (LipilaPaymentStatus.FAILED, LipilaPaymentStatus.CANCELLED):
        apply_payment_status(db, billing, map_gateway_status(gateway_status.value), now)
        db.commit()
        raise PaymentFailedError(
            result.get("message") or "Payment failed",
            transaction_id=billing.lipila_transaction_id,
        )

    if gateway_status == LipilaPaymentStatus.SUCCESSFUL:
        apply_payment_status(db, billing, BillingStatus.PAID, now)
        message = "Subscription upgraded successfully"
    else:
        subscription.pending_plan_id = plan.id
        if not subscription.is_current(now):
            subscription.status = SubscriptionStatus.PENDING.value
        message = (
            "Approve the payment prompt on your phone to complete the upgrade"
            if normalized_type == PaymentType.MOBILE_MONEY
            else "Complete the card payment to finish the upgrade"
        )

    db.commit()
    logger.info(
        f"Subscription upgrade for vendor {vendor.id}: plan={plan.plan_type} gateway={gateway_status.value}",
        extra={"vendor_id": vendor.id, "transaction_id": billing.lipila_transaction_id}
    )

    return {
        "success": True,
        "status": SubscriptionStatus.ACTIVE.value if gateway_status == LipilaPaymentStatus.SUCCESSFUL
        else SubscriptionStatus.PENDING.value,
        "message": message,
        "billing_record_id": billing.id,
        "invoice_number": billing.invoice_number,
        "transaction_id": billing.lipila_transaction_id,
        "external_id": billing.lipila_external_id,
        "redirect_url": result.get("redirectUrl"),
        "subscription": subscription,
    }


async def refresh_payment_status(
    db: Session,
    vendor: Vendor,
    transaction_id: str,
    client: LipilaClient,
    now: Optional[datetime] = None,
) -> BillingRecord:
    """
    Poll the gateway for a vendor's payment and apply the result.

    Records that already reached a final state are returned untouched.
    A gateway timeout leaves the record pending.
    """
    billing = db.query(BillingRecord).filter(
        BillingRecord.vendor_id == vendor.id,
        BillingRecord.lipila_transaction_id == transaction_id
    ).first()
    if not billing:
        raise RecordNotFoundError("Payment", transaction_id)

    if billing.status != BillingStatus.PENDING.value:
        return billing

    try:
        result = await client.get_transaction_status(transaction_id)
    except LipilaError as e:
        if e.is_timeout:
            logger.warning(
                f"Payment status check timed out for {transaction_id}",
                extra={"vendor_id": vendor.id, "transaction_id": transaction_id}
            )
            return billing
        if e.is_auth_error:
            raise PaymentServiceUnavailable()
        raise PaymentServiceUnavailable("Could not verify payment status")

    apply_payment_status(db, billing, map_gateway_status(result.get("status")), now)
    db.commit()
    return billing
