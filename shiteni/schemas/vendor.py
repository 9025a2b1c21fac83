"""
Vendor Schemas
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime
from shiteni.models.vendor import ServiceType


class VendorResponse(BaseModel):
    id: str
    business_name: str
    slug: str
    subdomain: str
    service_type: ServiceType
    status: str
    owner_email: str
    phone: Optional[str]
    address: Optional[str]
    currency: str
    description: Optional[str]
    settings: Optional[Dict[str, Any]]
    activated_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class VendorPublic(BaseModel):
    """What customers see in the vendor directory."""
    id: str
    business_name: str
    slug: str
    service_type: ServiceType
    phone: Optional[str]
    address: Optional[str]
    description: Optional[str]
    currency: str

    class Config:
        from_attributes = True


class VendorUpdate(BaseModel):
    business_name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=512)
    description: Optional[str] = Field(None, max_length=1024)
    currency: Optional[str] = Field(None, pattern="^(ZMW|USD|EUR|GBP|CAD|AUD)$")
    settings: Optional[Dict[str, Any]] = None


class VendorApprovalUpdate(BaseModel):
    """Admin approval action."""
    status: str = Field(..., pattern="^(approved|suspended|rejected|pending)$")


class ApprovalStatusResponse(BaseModel):
    vendor_id: str
    status: str
    is_approved: bool
    can_list: bool
    activated_at: Optional[datetime]
    message: str


class VendorListResponse(BaseModel):
    vendors: list[VendorResponse]
    total: int
    page: int
    page_size: int


class VendorDirectoryResponse(BaseModel):
    vendors: list[VendorPublic]
    total: int
    page: int
    page_size: int
