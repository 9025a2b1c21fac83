"""
Staff Management Endpoints

A vendor's team: the manager plus the staff accounts they create.
All operations are scoped to the resolved vendor.

RBAC:
- List/get staff: any member of the vendor
- Create staff: manager only, subject to the plan's staff allowance
- Update: manager, or the staff member for their own name/phone
- Delete: manager only, never themselves
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from shiteni.database import get_db
from shiteni.models.user import User, UserRole, UserStatus
from shiteni.models.vendor import Vendor
from shiteni.schemas.user import StaffCreate, StaffUpdate, UserListResponse, UserResponse
from shiteni.api.deps import (
    get_current_vendor,
    get_vendor_user,
    paginate,
    require_vendor_manager,
)
from shiteni.core.security import get_password_hash
from shiteni.core.permissions import can_manage_staff, is_valid_staff_role
from shiteni.core.exceptions import (
    ConflictError,
    InvalidInputError,
    PermissionDenied,
    UserNotFoundError,
)
from shiteni.services.billing import check_plan_limit
from shiteni.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/vendor/staff", tags=["staff"])

SELF_EDITABLE_FIELDS = {"first_name", "last_name", "phone"}


def _load_member(db: Session, vendor: Vendor, user_id: str) -> User:
    user = db.query(User).filter(
        User.id == user_id,
        User.vendor_id == vendor.id  # CRITICAL: vendor isolation
    ).first()
    if not user:
        raise UserNotFoundError(user_id)
    return user


def _check_role(role: UserRole, vendor: Vendor) -> None:
    if not is_valid_staff_role(role, vendor.service_type):
        raise InvalidInputError(
            f"Role {role.value} is not available for {vendor.service_type.value} vendors"
        )


@router.get("", response_model=UserListResponse)
async def list_staff(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    role: Optional[UserRole] = Query(None),
    status: Optional[UserStatus] = Query(None),
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """List the vendor's team, filterable by role and status."""
    query = db.query(User).filter(User.vendor_id == vendor.id)

    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status.value)

    users, total = paginate(query.order_by(User.created_at.desc()), page, page_size)

    return UserListResponse(users=users, total=total, page=page, page_size=page_size)


@router.get("/{user_id}", response_model=UserResponse)
async def get_staff_member(
    user_id: str,
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    return _load_member(db, vendor, user_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_staff_member(
    staff_data: StaffCreate,
    current_user: User = Depends(require_vendor_manager),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Add a staff account to the vendor.

    BUSINESS LOGIC: needs an active subscription; the plan's
    max_staff_accounts (-1 = unlimited) and max_users both apply.
    """
    _check_role(staff_data.role, vendor)
    check_plan_limit(db, vendor, "staff", datetime.utcnow())

    if db.query(User).filter(User.email == staff_data.email).first():
        raise ConflictError("An account with this email already exists")

    new_user = User(
        vendor_id=vendor.id,  # CRITICAL: Set vendor_id
        email=staff_data.email,
        hashed_password=get_password_hash(staff_data.password),
        first_name=staff_data.first_name,
        last_name=staff_data.last_name,
        phone=staff_data.phone,
        role=staff_data.role,
        status=UserStatus.ACTIVE.value,
        is_active=True,
        created_by=current_user.id,
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(
        f"Staff created: {new_user.id} ({new_user.role.value}) by {current_user.id}",
        extra={"vendor_id": vendor.id}
    )

    return new_user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_staff_member(
    user_id: str,
    staff_data: StaffUpdate,
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Update a staff account.

    SECURITY: role and status changes require the manager; staff may only
    edit their own contact details.
    """
    user = _load_member(db, vendor, user_id)
    update_data = staff_data.model_dump(exclude_unset=True)

    if not can_manage_staff(current_user):
        if user.id != current_user.id or set(update_data) - SELF_EDITABLE_FIELDS:
            raise PermissionDenied("Only managers can change staff roles and status")

    new_role = update_data.pop("role", None)
    if new_role and new_role != user.role:
        _check_role(new_role, vendor)
        if user.id == current_user.id:
            raise InvalidInputError("You cannot change your own role")
        user.role = new_role

    new_status = update_data.pop("status", None)
    if new_status:
        if user.id == current_user.id and new_status != UserStatus.ACTIVE:
            raise InvalidInputError("You cannot deactivate your own account")
        user.set_status(new_status)

    for field, value in update_data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)

    logger.info(f"Staff updated: {user.id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_staff_member(
    user_id: str,
    current_user: User = Depends(require_vendor_manager),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    user = _load_member(db, vendor, user_id)

    if user.id == current_user.id:
        raise InvalidInputError("Cannot delete your own account")

    db.delete(user)
    db.commit()

    logger.info(f"Staff deleted: {user_id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return None
