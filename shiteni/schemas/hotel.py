"""
Hotel Schemas
"""
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime

from shiteni.schemas.validators import naive_utc

ROOM_STATUS_PATTERN = "^(available|occupied|maintenance|out_of_order)$"
BOOKING_STATUS_PATTERN = "^(pending|confirmed|checked_in|checked_out|cancelled)$"
PAYMENT_STATUS_PATTERN = "^(pending|paid|refunded)$"


class RoomBase(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    room_type: str = Field(..., min_length=1, max_length=50)
    floor: Optional[int] = None
    capacity: int = Field(2, ge=1)
    price_per_night: float = Field(..., gt=0)
    amenities: List[str] = []
    description: Optional[str] = None


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    room_type: Optional[str] = Field(None, min_length=1, max_length=50)
    floor: Optional[int] = None
    capacity: Optional[int] = Field(None, ge=1)
    price_per_night: Optional[float] = Field(None, gt=0)
    status: Optional[str] = Field(None, pattern=ROOM_STATUS_PATTERN)
    amenities: Optional[List[str]] = None
    description: Optional[str] = None


class RoomResponse(RoomBase):
    id: str
    vendor_id: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class RoomListResponse(BaseModel):
    rooms: list[RoomResponse]
    total: int
    page: int
    page_size: int


class BookingCreate(BaseModel):
    room_id: str
    guest_name: str = Field(..., min_length=1, max_length=255)
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = Field(None, max_length=50)
    check_in_date: datetime
    check_out_date: datetime
    number_of_guests: int = Field(1, ge=1)
    payment_method: Optional[str] = Field(None, max_length=20)
    special_requests: Optional[str] = None

    @field_validator("check_in_date", "check_out_date")
    @classmethod
    def _to_naive_utc(cls, value: datetime) -> datetime:
        return naive_utc(value)


class BookingStatusUpdate(BaseModel):
    status: Optional[str] = Field(None, pattern=BOOKING_STATUS_PATTERN)
    payment_status: Optional[str] = Field(None, pattern=PAYMENT_STATUS_PATTERN)
    payment_method: Optional[str] = Field(None, max_length=20)


class BookingResponse(BaseModel):
    id: str
    vendor_id: str
    room_id: str
    customer_id: Optional[str]
    booking_number: str
    guest_name: str
    guest_email: Optional[str]
    guest_phone: Optional[str]
    check_in_date: datetime
    check_out_date: datetime
    nights: int
    number_of_guests: int
    total_amount: float
    status: str
    payment_status: str
    payment_method: Optional[str]
    special_requests: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int
