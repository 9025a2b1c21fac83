"""
Customer Endpoints

What a signed-in customer sees outside any single vendor: their own
dashboard and purchase history, plus the public vendor directory.

NOTE: these routes are not vendor-scoped; records are filtered by
customer_id instead of vendor_id.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from shiteni.database import get_db
from shiteni.models.bus import BusTicket
from shiteni.models.hotel import HotelBooking
from shiteni.models.pharmacy import PharmacyOrder
from shiteni.models.store import StoreOrder
from shiteni.models.user import User
from shiteni.models.vendor import ServiceType, Vendor, VendorStatus
from shiteni.schemas.customer import CustomerPurchasesResponse
from shiteni.schemas.dashboard import DashboardResponse
from shiteni.schemas.vendor import VendorDirectoryResponse
from shiteni.api.deps import get_current_user, paginate
from shiteni.config import get_settings
from shiteni.services import analytics

settings = get_settings()

router = APIRouter(prefix="/customer", tags=["customer"])


def _purchases(db: Session, user: User):
    return (
        db.query(HotelBooking).filter(HotelBooking.customer_id == user.id)
        .order_by(HotelBooking.created_at.desc()).all(),
        db.query(StoreOrder).filter(StoreOrder.customer_id == user.id)
        .order_by(StoreOrder.created_at.desc()).all(),
        db.query(PharmacyOrder).filter(PharmacyOrder.customer_id == user.id)
        .order_by(PharmacyOrder.created_at.desc()).all(),
        db.query(BusTicket).filter(BusTicket.customer_id == user.id)
        .order_by(BusTicket.created_at.desc()).all(),
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def customer_dashboard(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    bookings, store_orders, pharmacy_orders, tickets = _purchases(db, current_user)

    result = analytics.customer_dashboard(bookings, store_orders, pharmacy_orders, tickets, now)
    return DashboardResponse(**result, currency=settings.DEFAULT_CURRENCY, generated_at=now)


@router.get("/orders", response_model=CustomerPurchasesResponse)
async def list_my_purchases(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    bookings, store_orders, pharmacy_orders, tickets = _purchases(db, current_user)
    return CustomerPurchasesResponse(
        hotel_bookings=bookings,
        store_orders=store_orders,
        pharmacy_orders=pharmacy_orders,
        bus_tickets=tickets,
    )


@router.get("/vendors", response_model=VendorDirectoryResponse)
async def vendor_directory(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    service_type: Optional[ServiceType] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Public directory of approved vendors.

    No login needed; pending, suspended and rejected vendors never show.
    """
    query = db.query(Vendor).filter(Vendor.status == VendorStatus.ACTIVE.value)

    if service_type:
        query = query.filter(Vendor.service_type == service_type)
    if search:
        query = query.filter(Vendor.business_name.ilike(f"%{search}%"))

    vendors, total = paginate(query.order_by(Vendor.business_name), page, page_size)

    return VendorDirectoryResponse(vendors=vendors, total=total, page=page, page_size=page_size)
