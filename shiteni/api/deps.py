"""
API Dependencies

Reusable FastAPI dependencies for authentication and authorization.

Vendor routes stack them like this:
    router-level: require_service_type(ServiceType.HOTEL)
    endpoint:     require_module("bookings") -> get_vendor_user -> get_current_user
    listing:      require_listing_vendor (approved + active subscription)
"""
from datetime import datetime
from typing import Callable, Tuple

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Query, Session

from shiteni.core.exceptions import (
    AuthenticationError,
    PermissionDenied,
    SubscriptionRequiredError,
    VendorApprovalRequired,
    VendorIsolationError,
)
from shiteni.core.permissions import can_access_module, can_manage_staff, is_platform_admin
from shiteni.core.security import decode_access_token
from shiteni.database import get_db
from shiteni.models.subscription import Subscription
from shiteni.models.user import User, UserRole
from shiteni.models.vendor import ServiceType, Vendor
from shiteni.services.billing import get_active_subscription
from shiteni.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer()


def paginate(query: Query, page: int, page_size: int) -> Tuple[list, int]:
    """Return one page of results and the total row count."""
    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def get_current_vendor(request: Request, db: Session = Depends(get_db)) -> Vendor:
    """
    Vendor resolved by VendorMiddleware, re-loaded in this request's session.

    CRITICAL: every vendor-scoped query filters on this vendor's id.
    """
    vendor_id = getattr(request.state, "vendor_id", None)
    if not vendor_id:
        logger.error("No vendor in request state - middleware may have failed")
        raise VendorIsolationError("Vendor context not available")

    vendor = db.get(Vendor, vendor_id)
    if vendor is None:
        raise VendorIsolationError("Vendor context not available")
    return vendor


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Authenticated user from the bearer token.

    Not vendor-aware; vendor routes use get_vendor_user on top of this.
    """
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    # PERFORMANCE NOTE: one DB query per authenticated request
    user = db.get(User, user_id)
    if not user:
        logger.warning(f"User not found for token: {user_id}")
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is inactive")

    # A token minted before the user moved vendors must not keep working
    if payload.get("vendor_id") != user.vendor_id:
        log_security_event(
            "vendor_isolation_violation",
            {"user_id": user.id, "token_vendor": payload.get("vendor_id"), "reason": "stale_token"},
            logger
        )
        raise AuthenticationError("Token no longer valid for this account")

    return user


async def get_vendor_user(
    request: Request,
    current_user: User = Depends(get_current_user),
    vendor: Vendor = Depends(get_current_vendor)
) -> User:
    """
    Authenticated member of the resolved vendor.

    SECURITY: a manager of vendor A presenting a valid token against
    vendor B is rejected here. super_admin may enter any vendor.
    """
    if current_user.role == UserRole.SUPER_ADMIN:
        return current_user

    if current_user.vendor_id != vendor.id:
        log_security_event(
            "vendor_isolation_violation",
            {
                "user_id": current_user.id,
                "user_vendor": current_user.vendor_id,
                "vendor_id": vendor.id,
                "path": request.url.path,
            },
            logger
        )
        raise VendorIsolationError("Token vendor mismatch")

    return current_user


async def get_vendor_visitor(
    current_user: User = Depends(get_current_user),
    vendor: Vendor = Depends(get_current_vendor)
) -> User:
    """
    Vendor member or a customer shopping at this vendor.

    Customers may only buy from approved vendors.
    """
    if current_user.role == UserRole.CUSTOMER:
        if not vendor.is_approved:
            raise VendorApprovalRequired()
        return current_user
    if current_user.role == UserRole.SUPER_ADMIN or current_user.vendor_id == vendor.id:
        return current_user

    log_security_event(
        "vendor_isolation_violation",
        {"user_id": current_user.id, "user_vendor": current_user.vendor_id, "vendor_id": vendor.id},
        logger
    )
    raise VendorIsolationError("Token vendor mismatch")


def require_service_type(service_type: ServiceType) -> Callable:
    """Router-level guard: /hotel routes only exist for hotel vendors."""

    async def dependency(vendor: Vendor = Depends(get_current_vendor)) -> Vendor:
        if ServiceType(vendor.service_type) != service_type:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"This endpoint is only available for {service_type.value} vendors"
            )
        return vendor

    return dependency


def require_module(module: str) -> Callable:
    """Require the user's role to grant a dashboard module of this vendor."""

    async def dependency(
        current_user: User = Depends(get_vendor_user),
        vendor: Vendor = Depends(get_current_vendor)
    ) -> User:
        if not can_access_module(current_user.role, module, vendor.service_type):
            log_security_event(
                "privilege_escalation",
                {"user_id": current_user.id, "role": current_user.role.value, "dashboard_module": module,
                 "vendor_id": vendor.id},
                logger
            )
            raise PermissionDenied(f"Your role does not have access to {module}")
        return current_user

    return dependency


def require_module_or_customer(module: str) -> Callable:
    """Staff with the module, or a customer placing their own booking/order."""

    async def dependency(
        current_user: User = Depends(get_vendor_visitor),
        vendor: Vendor = Depends(get_current_vendor)
    ) -> User:
        if current_user.role == UserRole.CUSTOMER:
            return current_user
        if not can_access_module(current_user.role, module, vendor.service_type):
            raise PermissionDenied(f"Your role does not have access to {module}")
        return current_user

    return dependency


async def require_vendor_manager(current_user: User = Depends(get_vendor_user)) -> User:
    """Manager/admin of the vendor (or super_admin)."""
    if not can_manage_staff(current_user):
        raise PermissionDenied("Manager privileges required")
    return current_user


async def require_approved_vendor(vendor: Vendor = Depends(get_current_vendor)) -> Vendor:
    if not vendor.is_approved:
        raise VendorApprovalRequired()
    return vendor


async def require_active_subscription(
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
) -> Subscription:
    subscription = get_active_subscription(db, vendor, datetime.utcnow())
    if subscription is None:
        raise SubscriptionRequiredError()
    return subscription


async def require_listing_vendor(
    vendor: Vendor = Depends(require_approved_vendor),
    subscription: Subscription = Depends(require_active_subscription)
) -> Vendor:
    """Vendors publish rooms/products/routes only when approved and paid up."""
    return vendor


async def require_platform_admin(current_user: User = Depends(get_current_user)) -> User:
    if not is_platform_admin(current_user):
        log_security_event(
            "privilege_escalation",
            {"user_id": current_user.id, "role": current_user.role.value, "reason": "admin_route"},
            logger
        )
        raise PermissionDenied("Admin privileges required")
    return current_user
