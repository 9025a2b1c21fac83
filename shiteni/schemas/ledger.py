"""
Ledger Schemas

Read-only views derived from bookings, orders and tickets: the customer
(or patient) book and the per-vendor payment listing.
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class CustomerBookEntry(BaseModel):
    customer_id: Optional[str]
    name: str
    email: Optional[str]
    phone: Optional[str]
    total_orders: int
    total_spent: float
    loyalty_points: int
    first_order_at: datetime
    last_order_at: datetime


class CustomerBookResponse(BaseModel):
    customers: list[CustomerBookEntry]
    total: int
    page: int
    page_size: int


class PatientBookResponse(BaseModel):
    patients: list[CustomerBookEntry]
    total: int
    page: int
    page_size: int


class PaymentEntry(BaseModel):
    id: str
    source: str  # hotel_booking, store_order, bus_ticket
    reference: str
    customer_id: Optional[str]
    customer_name: str
    customer_phone: Optional[str]
    description: Optional[str] = None
    amount: float
    payment_method: Optional[str]
    payment_status: str
    record_status: str
    created_at: datetime


class PaymentSummary(BaseModel):
    total_amount: float
    total_count: int
    paid_amount: float
    paid_count: int
    pending_amount: float
    pending_count: int
    refunded_amount: float
    refunded_count: int


class PaymentListResponse(BaseModel):
    payments: list[PaymentEntry]
    summary: PaymentSummary
    total: int
    page: int
    page_size: int
    currency: str
