"""
Hotel Endpoints

Rooms, bookings, payments and the hotel dashboard.

RBAC (modules):
- rooms: customers may browse; "room-management" to add/edit/remove
- bookings: "bookings" for staff; customers may book and cancel their own
- payments: "payments", a read-only view over bookings
- dashboard: any member of the vendor

Publishing rooms needs an approved vendor with an active subscription,
and the room count is capped by the plan's max_inventory_items.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from shiteni.database import get_db
from shiteni.models.hotel import BookingStatus, HotelBooking, Room, RoomStatus
from shiteni.models.user import User, UserRole
from shiteni.models.vendor import ServiceType, Vendor
from shiteni.schemas.dashboard import DashboardResponse
from shiteni.schemas.hotel import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
    RoomCreate,
    RoomListResponse,
    RoomResponse,
    RoomUpdate,
)
from shiteni.schemas.ledger import PaymentListResponse
from shiteni.schemas.validators import naive_utc
from shiteni.api.deps import (
    get_current_vendor,
    get_vendor_user,
    get_vendor_visitor,
    paginate,
    require_listing_vendor,
    require_module,
    require_module_or_customer,
    require_service_type,
)
from shiteni.core.exceptions import (
    ConflictError,
    InvalidInputError,
    PermissionDenied,
    RecordNotFoundError,
)
from shiteni.services import analytics
from shiteni.services.billing import check_plan_limit
from shiteni.utils.logging import get_logger
from shiteni.utils.references import generate_reference

logger = get_logger(__name__)

router = APIRouter(
    prefix="/hotel",
    tags=["hotel"],
    dependencies=[Depends(require_service_type(ServiceType.HOTEL))]
)

# Booking status -> statuses it may move to
BOOKING_TRANSITIONS = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CHECKED_IN.value,
                                  BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {BookingStatus.CHECKED_IN.value, BookingStatus.CANCELLED.value},
    BookingStatus.CHECKED_IN.value: {BookingStatus.CHECKED_OUT.value},
    BookingStatus.CHECKED_OUT.value: set(),
    BookingStatus.CANCELLED.value: set(),
}

OPEN_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.CHECKED_IN.value,
)


def _load_room(db: Session, vendor: Vendor, room_id: str) -> Room:
    room = db.query(Room).filter(
        Room.id == room_id,
        Room.vendor_id == vendor.id  # CRITICAL: vendor isolation
    ).first()
    if not room:
        raise RecordNotFoundError("Room", room_id)
    return room


def _load_booking(db: Session, vendor: Vendor, booking_id: str) -> HotelBooking:
    booking = db.query(HotelBooking).filter(
        HotelBooking.id == booking_id,
        HotelBooking.vendor_id == vendor.id  # CRITICAL
    ).first()
    if not booking:
        raise RecordNotFoundError("Booking", booking_id)
    return booking


def _has_overlap(db: Session, room: Room, check_in: datetime, check_out: datetime) -> bool:
    """Half-open ranges: checking out on the day someone checks in is fine."""
    return db.query(HotelBooking).filter(
        HotelBooking.room_id == room.id,
        HotelBooking.status != BookingStatus.CANCELLED.value,
        HotelBooking.check_in_date < check_out,
        HotelBooking.check_out_date > check_in,
    ).first() is not None


# ---------------------------------------------------------------- rooms


@router.get("/rooms", response_model=RoomListResponse)
async def list_rooms(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(available|occupied|maintenance|out_of_order)$"),
    room_type: Optional[str] = None,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    query = db.query(Room).filter(Room.vendor_id == vendor.id)

    if status:
        query = query.filter(Room.status == status)
    if room_type:
        query = query.filter(Room.room_type == room_type)

    rooms, total = paginate(query.order_by(Room.room_number), page, page_size)

    return RoomListResponse(rooms=rooms, total=total, page=page, page_size=page_size)


@router.get("/rooms/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: str,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    return _load_room(db, vendor, room_id)


@router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    room_data: RoomCreate,
    current_user: User = Depends(require_module("room-management")),
    vendor: Vendor = Depends(require_listing_vendor),
    db: Session = Depends(get_db)
):
    check_plan_limit(db, vendor, "inventory", datetime.utcnow())

    if db.query(Room).filter(Room.vendor_id == vendor.id, Room.room_number == room_data.room_number).first():
        raise ConflictError(f"Room {room_data.room_number} already exists")

    room = Room(vendor_id=vendor.id, status=RoomStatus.AVAILABLE.value, **room_data.model_dump())

    db.add(room)
    db.commit()
    db.refresh(room)

    logger.info(f"Room created: {room.room_number} by {current_user.id}", extra={"vendor_id": vendor.id})

    return room


@router.patch("/rooms/{room_id}", response_model=RoomResponse)
async def update_room(
    room_id: str,
    room_data: RoomUpdate,
    current_user: User = Depends(require_module("room-management")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    room = _load_room(db, vendor, room_id)

    update_data = room_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(room, field, value)

    db.commit()
    db.refresh(room)

    logger.info(f"Room updated: {room.id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return room


@router.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: str,
    current_user: User = Depends(require_module("room-management")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    room = _load_room(db, vendor, room_id)

    open_bookings = db.query(HotelBooking).filter(
        HotelBooking.room_id == room.id,
        HotelBooking.status.in_(OPEN_BOOKING_STATUSES)
    ).count()
    if open_bookings:
        raise ConflictError("Room has open bookings; cancel or complete them first")

    db.delete(room)
    db.commit()

    logger.info(f"Room deleted: {room_id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return None


# ------------------------------------------------------------- bookings


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(pending|confirmed|checked_in|checked_out|cancelled)$"),
    room_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    current_user: User = Depends(require_module("bookings")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """List bookings; date_from/date_to filter on check-in date."""
    query = db.query(HotelBooking).filter(HotelBooking.vendor_id == vendor.id)

    if status:
        query = query.filter(HotelBooking.status == status)
    if room_id:
        query = query.filter(HotelBooking.room_id == room_id)
    if date_from:
        query = query.filter(HotelBooking.check_in_date >= naive_utc(date_from))
    if date_to:
        query = query.filter(HotelBooking.check_in_date <= naive_utc(date_to))

    bookings, total = paginate(query.order_by(HotelBooking.check_in_date.desc()), page, page_size)

    return BookingListResponse(bookings=bookings, total=total, page=page, page_size=page_size)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    current_user: User = Depends(require_module_or_customer("bookings")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    booking = _load_booking(db, vendor, booking_id)
    if current_user.role == UserRole.CUSTOMER and booking.customer_id != current_user.id:
        raise RecordNotFoundError("Booking", booking_id)
    return booking


@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: User = Depends(require_module_or_customer("bookings")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Book a room.

    BUSINESS LOGIC:
    - check-out must fall on a later day than check-in
    - guests must fit the room
    - no overlap with another non-cancelled booking of the same room (409)
    - total_amount = nights x price_per_night
    """
    room = _load_room(db, vendor, booking_data.room_id)

    nights = (booking_data.check_out_date.date() - booking_data.check_in_date.date()).days
    if nights < 1:
        raise InvalidInputError("Check-out date must be after check-in date")

    if booking_data.number_of_guests > room.capacity:
        raise InvalidInputError(f"Room {room.room_number} holds at most {room.capacity} guests")

    if room.status in (RoomStatus.MAINTENANCE.value, RoomStatus.OUT_OF_ORDER.value):
        raise ConflictError(f"Room {room.room_number} is not available ({room.status})")

    if _has_overlap(db, room, booking_data.check_in_date, booking_data.check_out_date):
        raise ConflictError(f"Room {room.room_number} is already booked for these dates")

    booking = HotelBooking(
        vendor_id=vendor.id,
        room_id=room.id,
        customer_id=current_user.id if current_user.role == UserRole.CUSTOMER else None,
        booking_number=generate_reference("BK"),
        total_amount=round(nights * room.price_per_night, 2),
        status=BookingStatus.PENDING.value,
        **booking_data.model_dump(exclude={"room_id"})
    )

    db.add(booking)
    db.commit()
    db.refresh(booking)

    logger.info(
        f"Booking created: {booking.booking_number} room={room.room_number} nights={nights}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return booking


@router.patch("/bookings/{booking_id}", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str,
    update: BookingStatusUpdate,
    current_user: User = Depends(require_module_or_customer("bookings")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Move a booking through its lifecycle.

    Check-in marks the room occupied; check-out and cancellation free it.
    Customers may only cancel their own bookings.
    """
    booking = _load_booking(db, vendor, booking_id)
    update_data = update.model_dump(exclude_unset=True)

    if current_user.role == UserRole.CUSTOMER:
        if booking.customer_id != current_user.id:
            raise RecordNotFoundError("Booking", booking_id)
        if set(update_data) != {"status"} or update_data["status"] != BookingStatus.CANCELLED.value:
            raise PermissionDenied("Customers can only cancel their bookings")

    new_status = update_data.pop("status", None)
    if new_status and new_status != booking.status:
        if new_status not in BOOKING_TRANSITIONS[booking.status]:
            raise InvalidInputError(f"Cannot change booking from {booking.status} to {new_status}")

        room = booking.room
        if new_status == BookingStatus.CHECKED_IN.value:
            room.status = RoomStatus.OCCUPIED.value
        elif new_status in (BookingStatus.CHECKED_OUT.value, BookingStatus.CANCELLED.value):
            if booking.status == BookingStatus.CHECKED_IN.value or new_status == BookingStatus.CHECKED_OUT.value:
                room.status = RoomStatus.AVAILABLE.value
        booking.status = new_status

    for field, value in update_data.items():
        setattr(booking, field, value)

    db.commit()
    db.refresh(booking)

    logger.info(
        f"Booking {booking.booking_number} now {booking.status}/{booking.payment_status}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return booking


# ------------------------------------------------------------- payments


def _booking_payment(booking: HotelBooking) -> dict:
    return {
        "id": booking.id,
        "source": "hotel_booking",
        "reference": booking.booking_number,
        "customer_id": booking.customer_id,
        "customer_name": booking.guest_name,
        "customer_phone": booking.guest_phone,
        "description": f"Room {booking.room.room_number}, {booking.nights} night(s)",
        "amount": booking.total_amount,
        "payment_method": booking.payment_method,
        "payment_status": booking.payment_status,
        "record_status": booking.status,
        "created_at": booking.created_at,
    }


@router.get("/payments", response_model=PaymentListResponse)
async def list_payments(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    payment_status: Optional[str] = Query(None, pattern="^(pending|paid|refunded)$"),
    payment_method: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    current_user: User = Depends(require_module("payments")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Payments taken against bookings.

    A booking is its own payment record: payment_status and payment_method
    are set through PATCH /bookings/{id}.
    """
    query = db.query(HotelBooking).filter(HotelBooking.vendor_id == vendor.id)

    if payment_status:
        query = query.filter(HotelBooking.payment_status == payment_status)
    if payment_method:
        query = query.filter(HotelBooking.payment_method == payment_method)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            HotelBooking.booking_number.ilike(pattern)
            | HotelBooking.guest_name.ilike(pattern)
            | HotelBooking.guest_phone.ilike(pattern)
        )
    if date_from:
        query = query.filter(HotelBooking.created_at >= naive_utc(date_from))
    if date_to:
        query = query.filter(HotelBooking.created_at <= naive_utc(date_to))

    # PERFORMANCE NOTE: the summary loads every matching booking
    summary = analytics.payment_summary(query.all(), lambda b: b.total_amount)
    bookings, total = paginate(query.order_by(HotelBooking.created_at.desc()), page, page_size)

    return PaymentListResponse(
        payments=[_booking_payment(b) for b in bookings],
        summary=summary,
        total=total,
        page=page,
        page_size=page_size,
        currency=vendor.currency,
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def hotel_dashboard(
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Hotel dashboard aggregation.

    PERFORMANCE NOTE: loads every room and booking of the vendor and
    aggregates in Python. Fine for a single property.
    """
    now = datetime.utcnow()
    rooms = db.query(Room).filter(Room.vendor_id == vendor.id).all()
    bookings = db.query(HotelBooking).filter(HotelBooking.vendor_id == vendor.id).all()

    result = analytics.hotel_dashboard(rooms, bookings, now)
    return DashboardResponse(**result, currency=vendor.currency, generated_at=now)
