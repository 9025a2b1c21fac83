"""
Pharmacy Schemas
"""
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime

from shiteni.schemas.validators import naive_utc

PHARMACY_ORDER_STATUS_PATTERN = "^(pending|confirmed|processing|ready|completed|cancelled)$"


class MedicineBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    generic_name: Optional[str] = Field(None, max_length=255)
    manufacturer: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    form: Optional[str] = Field(None, max_length=50)
    strength: Optional[str] = Field(None, max_length=50)
    price: float = Field(..., gt=0)
    stock: int = Field(0, ge=0)
    min_stock: int = Field(10, ge=0)
    expiry_date: Optional[datetime] = None
    batch_number: Optional[str] = Field(None, max_length=100)
    prescription_required: bool = False
    description: Optional[str] = None

    @field_validator("expiry_date")
    @classmethod
    def _expiry_to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)


class MedicineCreate(MedicineBase):
    pass


class MedicineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    generic_name: Optional[str] = None
    manufacturer: Optional[str] = None
    category: Optional[str] = None
    form: Optional[str] = None
    strength: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    stock: Optional[int] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    expiry_date: Optional[datetime] = None
    batch_number: Optional[str] = None
    prescription_required: Optional[bool] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")
    description: Optional[str] = None

    @field_validator("expiry_date")
    @classmethod
    def _expiry_to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)


class MedicineResponse(MedicineBase):
    id: str
    vendor_id: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class MedicineListResponse(BaseModel):
    medicines: list[MedicineResponse]
    total: int
    page: int
    page_size: int


class PharmacyLineIn(BaseModel):
    medicine_id: str
    quantity: int = Field(..., ge=1)


class PharmacyOrderCreate(BaseModel):
    items: List[PharmacyLineIn] = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(None, max_length=50)
    order_type: str = Field("walk-in", pattern="^(online|walk-in)$")
    tax: float = Field(0.0, ge=0)
    shipping_fee: float = Field(0.0, ge=0)
    payment_method: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None


class PharmacyOrderStatusUpdate(BaseModel):
    status: Optional[str] = Field(None, pattern=PHARMACY_ORDER_STATUS_PATTERN)
    payment_status: Optional[str] = Field(None, pattern="^(pending|paid|refunded)$")


class PharmacyLineResponse(BaseModel):
    medicine_id: Optional[str]
    name: str
    quantity: int
    price: float
    total: float

    class Config:
        from_attributes = True


class PharmacyOrderResponse(BaseModel):
    id: str
    vendor_id: str
    customer_id: Optional[str]
    order_number: str
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    order_type: str
    items: List[PharmacyLineResponse]
    subtotal: float
    tax: float
    shipping_fee: float
    total_amount: float
    status: str
    payment_status: str
    payment_method: Optional[str]
    confirmed_at: Optional[datetime]
    ready_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class PharmacyOrderListResponse(BaseModel):
    orders: list[PharmacyOrderResponse]
    total: int
    page: int
    page_size: int
