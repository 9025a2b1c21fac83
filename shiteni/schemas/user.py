"""
User Schemas

Request/response models for users and vendor staff.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from shiteni.models.user import UserRole, UserStatus


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    first_name: str
    last_name: str
    phone: Optional[str] = None


class StaffCreate(UserBase):
    """Schema for a manager adding a staff account."""
    password: str = Field(..., min_length=8, max_length=100)
    role: UserRole


class StaffUpdate(BaseModel):
    """Schema for updating a staff account. All fields optional."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None


class UserStatusUpdate(BaseModel):
    status: UserStatus


class UserResponse(UserBase):
    """User response schema (excludes sensitive data)."""
    id: str
    vendor_id: Optional[str]
    role: UserRole
    status: str
    is_active: bool
    email_verified: bool
    created_at: datetime
    last_login_at: Optional[datetime]

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """Paginated list of users."""
    users: list[UserResponse]
    total: int
    page: int
    page_size: int
