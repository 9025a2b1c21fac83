"""
Bus Models

Fleet, routes, stops, fares, scheduled trips and the tickets sold on them.
available_seats on a trip is denormalized and kept in step with ticket
sales and cancellations.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Integer, Float, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from shiteni.database import Base
import uuid
import enum


class BusStatus(str, enum.Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class RouteStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class TripStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    BOARDING = "boarding"
    DEPARTED = "departed"
    ARRIVED = "arrived"
    CANCELLED = "cancelled"


class TicketStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Bus(Base):
    __tablename__ = "buses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    registration_number = Column(String(50), nullable=False)
    model = Column(String(100), nullable=True)
    capacity = Column(Integer, nullable=False)
    status = Column(String(20), default=BusStatus.ACTIVE.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('vendor_id', 'registration_number', name='uq_bus_vendor_registration'),
    )

    def __repr__(self):
        return f"<Bus {self.registration_number}>"


class BusRoute(Base):
    __tablename__ = "bus_routes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    route_number = Column(String(20), nullable=False)
    route_name = Column(String(255), nullable=False)
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    distance_km = Column(Float, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    fare = Column(Float, nullable=False)
    stops = Column(JSON, nullable=True, default=list)
    status = Column(String(20), default=RouteStatus.ACTIVE.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    trips = relationship("BusTrip", back_populates="route")

    __table_args__ = (
        UniqueConstraint('vendor_id', 'route_number', name='uq_route_vendor_number'),
    )

    def __repr__(self):
        return f"<BusRoute {self.route_number} {self.origin}-{self.destination}>"


class BusTrip(Base):
    __tablename__ = "bus_trips"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    route_id = Column(String(36), ForeignKey("bus_routes.id"), nullable=False, index=True)
    bus_id = Column(String(36), ForeignKey("buses.id"), nullable=False, index=True)

    departure_at = Column(DateTime, nullable=False)
    arrival_at = Column(DateTime, nullable=True)
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    fare = Column(Float, nullable=False)
    status = Column(String(20), default=TripStatus.SCHEDULED.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    route = relationship("BusRoute", back_populates="trips")
    bus = relationship("Bus")
    tickets = relationship("BusTicket", back_populates="trip")

    __table_args__ = (
        Index('idx_trip_vendor_departure', 'vendor_id', 'departure_at'),
    )

    def __repr__(self):
        return f"<BusTrip {self.route_id} @ {self.departure_at}>"

    @property
    def occupancy_rate(self) -> float:
        if not self.total_seats:
            return 0.0
        return (self.total_seats - self.available_seats) / self.total_seats * 100


class BusTicket(Base):
    __tablename__ = "bus_tickets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    trip_id = Column(String(36), ForeignKey("bus_trips.id"), nullable=False, index=True)
    customer_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    ticket_number = Column(String(50), unique=True, nullable=False)
    passenger_name = Column(String(255), nullable=False)
    passenger_phone = Column(String(50), nullable=True)
    seat_number = Column(Integer, nullable=False)
    boarding_stop = Column(String(255), nullable=True)
    alighting_stop = Column(String(255), nullable=True)
    fare = Column(Float, nullable=False)
    status = Column(String(20), default=TicketStatus.CONFIRMED.value, nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_method = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    trip = relationship("BusTrip", back_populates="tickets")

    __table_args__ = (
        Index('idx_ticket_trip_seat', 'trip_id', 'seat_number'),
    )

    def __repr__(self):
        return f"<BusTicket {self.ticket_number} seat={self.seat_number}>"


class StopStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class FareStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SEASONAL = "seasonal"


class BusStop(Base):
    """A named stop or terminal the vendor serves."""
    __tablename__ = "bus_stops"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    stop_name = Column(String(255), nullable=False)
    stop_type = Column(String(20), default="stop", nullable=False)  # stop, terminal
    address = Column(String(255), nullable=True)
    district = Column(String(100), nullable=True)
    status = Column(String(20), default=StopStatus.ACTIVE.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('vendor_id', 'stop_name', name='uq_stop_vendor_name'),
    )

    def __repr__(self):
        return f"<BusStop {self.stop_name}>"


class BusFare(Base):
    """
    Published fare between two points.

    NOTE: a reference table for the fare board; ticket prices still come
    from the trip.
    """
    __tablename__ = "bus_fares"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vendor_id = Column(
        String(36),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    route_name = Column(String(255), nullable=False)
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    fare_amount = Column(Float, nullable=False)
    currency = Column(String(3), default="ZMW", nullable=False)
    discount = Column(Float, default=0.0, nullable=False)  # percent
    status = Column(String(20), default=FareStatus.ACTIVE.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('vendor_id', 'origin', 'destination', name='uq_fare_vendor_leg'),
    )

    def __repr__(self):
        return f"<BusFare {self.origin}-{self.destination} {self.fare_amount}>"

    @property
    def final_amount(self) -> float:
        return round(self.fare_amount * (1 - (self.discount or 0.0) / 100), 2)
