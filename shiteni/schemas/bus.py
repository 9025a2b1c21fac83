"""
Bus Schemas
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime

from shiteni.schemas.validators import naive_utc


class BusCreate(BaseModel):
    registration_number: str = Field(..., min_length=1, max_length=50)
    model: Optional[str] = Field(None, max_length=100)
    capacity: int = Field(..., ge=1, le=120)


class BusUpdate(BaseModel):
    model: Optional[str] = Field(None, max_length=100)
    capacity: Optional[int] = Field(None, ge=1, le=120)
    status: Optional[str] = Field(None, pattern="^(active|maintenance|inactive)$")


class BusResponse(BusCreate):
    id: str
    vendor_id: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class BusListResponse(BaseModel):
    buses: list[BusResponse]
    total: int
    page: int
    page_size: int


class RouteBase(BaseModel):
    route_number: str = Field(..., min_length=1, max_length=20)
    route_name: str = Field(..., min_length=1, max_length=255)
    origin: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    distance_km: Optional[float] = Field(None, gt=0)
    duration_minutes: Optional[int] = Field(None, gt=0)
    fare: float = Field(..., gt=0)
    stops: List[str] = []


class RouteCreate(RouteBase):
    pass


class RouteUpdate(BaseModel):
    route_name: Optional[str] = Field(None, min_length=1, max_length=255)
    origin: Optional[str] = None
    destination: Optional[str] = None
    distance_km: Optional[float] = Field(None, gt=0)
    duration_minutes: Optional[int] = Field(None, gt=0)
    fare: Optional[float] = Field(None, gt=0)
    stops: Optional[List[str]] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive|maintenance)$")


class RouteResponse(RouteBase):
    id: str
    vendor_id: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class RouteListResponse(BaseModel):
    routes: list[RouteResponse]
    total: int
    page: int
    page_size: int


class StopCreate(BaseModel):
    stop_name: str = Field(..., min_length=1, max_length=255)
    stop_type: str = Field("stop", pattern="^(stop|terminal)$")
    address: Optional[str] = Field(None, max_length=255)
    district: Optional[str] = Field(None, max_length=100)


class StopUpdate(BaseModel):
    stop_name: Optional[str] = Field(None, min_length=1, max_length=255)
    stop_type: Optional[str] = Field(None, pattern="^(stop|terminal)$")
    address: Optional[str] = Field(None, max_length=255)
    district: Optional[str] = Field(None, max_length=100)
    status: Optional[str] = Field(None, pattern="^(active|inactive|maintenance)$")


class StopResponse(StopCreate):
    id: str
    vendor_id: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class StopListResponse(BaseModel):
    stops: list[StopResponse]
    total: int
    page: int
    page_size: int


class FareCreate(BaseModel):
    route_name: str = Field(..., min_length=1, max_length=255)
    origin: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    fare_amount: float = Field(..., gt=0)
    currency: str = Field("ZMW", pattern="^(ZMW|USD)$")
    discount: float = Field(0.0, ge=0, le=100)


class FareUpdate(BaseModel):
    route_name: Optional[str] = Field(None, min_length=1, max_length=255)
    fare_amount: Optional[float] = Field(None, gt=0)
    currency: Optional[str] = Field(None, pattern="^(ZMW|USD)$")
    discount: Optional[float] = Field(None, ge=0, le=100)
    status: Optional[str] = Field(None, pattern="^(active|inactive|seasonal)$")


class FareResponse(FareCreate):
    id: str
    vendor_id: str
    final_amount: float
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class FareListResponse(BaseModel):
    fares: list[FareResponse]
    total: int
    page: int
    page_size: int


class TripCreate(BaseModel):
    route_id: str
    bus_id: str
    departure_at: datetime
    arrival_at: Optional[datetime] = None
    fare: Optional[float] = Field(None, gt=0)

    @field_validator("departure_at", "arrival_at")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)


class TripUpdate(BaseModel):
    departure_at: Optional[datetime] = None
    arrival_at: Optional[datetime] = None
    fare: Optional[float] = Field(None, gt=0)
    status: Optional[str] = Field(None, pattern="^(scheduled|boarding|departed|arrived|cancelled)$")

    @field_validator("departure_at", "arrival_at")
    @classmethod
    def _to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)


class TripResponse(BaseModel):
    id: str
    vendor_id: str
    route_id: str
    bus_id: str
    departure_at: datetime
    arrival_at: Optional[datetime]
    total_seats: int
    available_seats: int
    occupancy_rate: float
    fare: float
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    trips: list[TripResponse]
    total: int
    page: int
    page_size: int


class TicketCreate(BaseModel):
    trip_id: str
    passenger_name: str = Field(..., min_length=1, max_length=255)
    passenger_phone: Optional[str] = Field(None, max_length=50)
    seat_number: int = Field(..., ge=1)
    boarding_stop: Optional[str] = None
    alighting_stop: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=20)


class TicketStatusUpdate(BaseModel):
    status: Optional[str] = Field(None, pattern="^(pending|confirmed|cancelled|completed)$")
    payment_status: Optional[str] = Field(None, pattern="^(pending|paid|refunded)$")


class TicketResponse(BaseModel):
    id: str
    vendor_id: str
    trip_id: str
    customer_id: Optional[str]
    ticket_number: str
    passenger_name: str
    passenger_phone: Optional[str]
    seat_number: int
    boarding_stop: Optional[str]
    alighting_stop: Optional[str]
    fare: float
    status: str
    payment_status: str
    payment_method: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class TicketListResponse(BaseModel):
    tickets: list[TicketResponse]
    total: int
    page: int
    page_size: int
