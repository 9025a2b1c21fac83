"""
Authentication Endpoints

Login, customer and vendor registration, profile and password change.

Login is global: users sign in with email and password only and the
token tells the dashboard which vendor and service type to open.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from datetime import datetime

from shiteni.database import get_db
from shiteni.models.user import User, UserRole, UserStatus
from shiteni.models.vendor import Vendor, VendorStatus
from shiteni.schemas.auth import (
    LoginRequest,
    MeResponse,
    PasswordChangeRequest,
    RegisterRequest,
    Token,
    VendorRegisterRequest,
    VendorRegisterResponse,
)
from shiteni.schemas.user import UserResponse
from shiteni.core.security import verify_password, get_password_hash, create_user_token
from shiteni.core.exceptions import AuthenticationError, ConflictError, InvalidInputError
from shiteni.core.permissions import allowed_modules, role_display_name
from shiteni.api.deps import get_current_user
from shiteni.middleware.vendor import NON_VENDOR_SUBDOMAINS
from shiteni.config import get_settings
from shiteni.utils.logging import log_security_event, get_logger
from shiteni.utils.references import unique_slug

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])


def _modules_for(user: User):
    vendor = user.vendor
    return allowed_modules(user.role, vendor.service_type if vendor else None)


def _ensure_email_free(db: Session, email: str) -> None:
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("An account with this email already exists")


@router.post("/login", response_model=Token)
async def login(
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token.

    SECURITY: every failure answers "Invalid credentials" so the endpoint
    cannot be used to discover which emails are registered.
    """
    user = db.query(User).filter(User.email == credentials.email).first()

    if not user:
        log_security_event(
            "failed_login",
            {"reason": "user_not_found", "email": credentials.email},
            logger
        )
        raise AuthenticationError("Invalid credentials")

    if not verify_password(credentials.password, user.hashed_password):
        log_security_event(
            "failed_login",
            {"reason": "invalid_password", "user_id": user.id, "vendor_id": user.vendor_id},
            logger
        )
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        log_security_event(
            "failed_login",
            {"reason": "user_inactive", "user_id": user.id, "status": user.status},
            logger
        )
        raise AuthenticationError(f"User account is {user.status}")

    user.last_login_at = datetime.utcnow()
    db.commit()

    vendor = user.vendor
    logger.info(f"Successful login: user={user.id}, vendor={user.vendor_id}")

    return Token(
        access_token=create_user_token(user),
        token_type="bearer",
        role=user.role.value,
        vendor_id=user.vendor_id,
        service_type=vendor.service_type if vendor else None,
        modules=_modules_for(user),
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    registration: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a customer account.

    Customers belong to no vendor; they book and buy across vendors.
    """
    _ensure_email_free(db, registration.email)

    new_user = User(
        email=registration.email,
        hashed_password=get_password_hash(registration.password),
        first_name=registration.first_name,
        last_name=registration.last_name,
        phone=registration.phone,
        role=UserRole.CUSTOMER,
        status=UserStatus.ACTIVE.value,
        is_active=True,
        email_verified=False
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"New customer registered: {new_user.id}")

    return new_user


@router.post("/register-vendor", response_model=VendorRegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_vendor(
    registration: VendorRegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a business and its manager account.

    The vendor starts "pending": the manager can log in and set up the
    dashboard, but nothing is listed until a platform admin approves it.
    """
    _ensure_email_free(db, registration.email)

    slug = unique_slug(
        registration.business_name,
        lambda candidate: candidate in NON_VENDOR_SUBDOMAINS or db.query(Vendor).filter(
            (Vendor.slug == candidate) | (Vendor.subdomain == candidate)
        ).first() is not None
    )

    vendor = Vendor(
        business_name=registration.business_name,
        slug=slug,
        subdomain=slug,
        service_type=registration.service_type,
        status=VendorStatus.PENDING.value,
        owner_email=registration.email,
        phone=registration.business_phone or registration.phone,
        address=registration.address,
        currency=settings.DEFAULT_CURRENCY,
        settings={},
    )
    db.add(vendor)
    db.flush()

    manager = User(
        vendor_id=vendor.id,
        email=registration.email,
        hashed_password=get_password_hash(registration.password),
        first_name=registration.first_name,
        last_name=registration.last_name,
        phone=registration.phone,
        role=UserRole.MANAGER,
        status=UserStatus.ACTIVE.value,
        is_active=True,
    )
    db.add(manager)
    db.commit()
    db.refresh(vendor)
    db.refresh(manager)

    logger.info(
        f"Vendor registered: {vendor.slug} ({vendor.service_type.value}) awaiting approval",
        extra={"vendor_id": vendor.id, "user_id": manager.id}
    )

    return VendorRegisterResponse(vendor=vendor, user=manager)


@router.get("/me", response_model=MeResponse)
async def read_me(current_user: User = Depends(get_current_user)):
    """Profile, vendor and the dashboard modules the user may open."""
    return MeResponse(
        user=current_user,
        vendor=current_user.vendor,
        modules=_modules_for(current_user),
        role_display_name=role_display_name(current_user.role),
    )


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    payload: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not verify_password(payload.current_password, current_user.hashed_password):
        log_security_event(
            "failed_login",
            {"reason": "password_change_wrong_current", "user_id": current_user.id},
            logger
        )
        raise InvalidInputError("Current password is incorrect")

    if payload.current_password == payload.new_password:
        raise InvalidInputError("New password must differ from the current password")

    current_user.hashed_password = get_password_hash(payload.new_password)
    db.commit()

    logger.info(f"Password changed for user {current_user.id}")
    return None
