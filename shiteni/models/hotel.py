"""
Hotel Models

Rooms and the bookings made against them. Both carry vendor_id directly
so dashboards can aggregate without joins.
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, Integer, Float, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from shiteni.database import Base
import uuid
import enum


class RoomStatus(str, enum.Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    OUT_OF_ORDER = "out_of_order"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Shared by every vertical's orders, bookings and tickets."""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class Room(Base):
    __tablename__ = "hotel_rooms"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    room_number = Column(String(20), nullable=False)
    room_type = Column(String(50), nullable=False)
    floor = Column(Integer, nullable=True)
    capacity = Column(Integer, default=2, nullable=False)
    price_per_night = Column(Float, nullable=False)
    status = Column(String(20), default=RoomStatus.AVAILABLE.value, nullable=False)
    amenities = Column(JSON, nullable=True, default=list)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    bookings = relationship("HotelBooking", back_populates="room")

    __table_args__ = (
        UniqueConstraint('vendor_id', 'room_number', name='uq_room_vendor_number'),
        Index('idx_room_vendor_status', 'vendor_id', 'status'),
    )

    def __repr__(self):
        return f"<Room {self.room_number} (vendor={self.vendor_id})>"


class HotelBooking(Base):
    __tablename__ = "hotel_bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    room_id = Column(String(36), ForeignKey("hotel_rooms.id"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    booking_number = Column(String(50), unique=True, nullable=False)
    guest_name = Column(String(255), nullable=False)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)
    check_in_date = Column(DateTime, nullable=False)
    check_out_date = Column(DateTime, nullable=False)
    number_of_guests = Column(Integer, default=1, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String(20), default=BookingStatus.PENDING.value, nullable=False)
    payment_status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False)
    payment_method = Column(String(20), nullable=True)
    special_requests = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    room = relationship("Room", back_populates="bookings")

    __table_args__ = (
        Index('idx_booking_vendor_status', 'vendor_id', 'status'),
        Index('idx_booking_room_dates', 'room_id', 'check_in_date', 'check_out_date'),
    )

    def __repr__(self):
        return f"<HotelBooking {self.booking_number}>"

    @property
    def nights(self) -> int:
        return max((self.check_out_date.date() - self.check_in_date.date()).days, 1)
