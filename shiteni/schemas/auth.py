"""
Authentication Schemas

Request/response models for authentication endpoints.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional

from shiteni.models.vendor import ServiceType
from shiteni.schemas.user import UserResponse
from shiteni.schemas.vendor import VendorResponse


class Token(BaseModel):
    """JWT token response with the context the dashboard routes on."""
    access_token: str
    token_type: str = "bearer"
    role: str
    vendor_id: Optional[str] = None
    service_type: Optional[ServiceType] = None
    modules: List[str] = []


class LoginRequest(BaseModel):
    """Login request body."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    """Customer self-registration."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "mwila@shiteni.co.zm",
                "password": "securepassword123",
                "first_name": "Mwila",
                "last_name": "Banda",
                "phone": "0971234567"
            }
        }


class VendorRegisterRequest(RegisterRequest):
    """Business sign-up: creates a pending vendor and its manager account."""
    business_name: str = Field(..., min_length=2, max_length=255)
    service_type: ServiceType
    business_phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=512)


class VendorRegisterResponse(BaseModel):
    vendor: VendorResponse
    user: UserResponse


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)


class MeResponse(BaseModel):
    user: UserResponse
    vendor: Optional[VendorResponse] = None
    modules: List[str]
    role_display_name: str
