"""
Bus Endpoints

Fleet, routes, stops, fares, trips, tickets, payments and the bus
operator dashboard.

RBAC (modules):
- fleet: "fleet"
- routes: customers may browse; "routes" to manage
- stops: customers may browse; "stops" to manage
- fares: customers may browse the fare board; "fares" to manage
- trips: customers may browse; "schedule-trip" to schedule and update
- tickets: "ticketing" for staff; customers buy and cancel their own
- payments: "payments", a read-only view over tickets
- dashboard: any member of the vendor

Buses count against the plan's max_inventory_items.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, datetime, timedelta

from shiteni.database import get_db
from shiteni.models.bus import (
    Bus,
    BusFare,
    BusRoute,
    BusStatus,
    BusStop,
    BusTicket,
    BusTrip,
    FareStatus,
    RouteStatus,
    StopStatus,
    TicketStatus,
    TripStatus,
)
from shiteni.models.user import User, UserRole
from shiteni.models.vendor import ServiceType, Vendor
from shiteni.schemas.bus import (
    BusCreate,
    BusListResponse,
    BusResponse,
    BusUpdate,
    FareCreate,
    FareListResponse,
    FareResponse,
    FareUpdate,
    RouteCreate,
    RouteListResponse,
    RouteResponse,
    RouteUpdate,
    StopCreate,
    StopListResponse,
    StopResponse,
    StopUpdate,
    TicketCreate,
    TicketListResponse,
    TicketResponse,
    TicketStatusUpdate,
    TripCreate,
    TripListResponse,
    TripResponse,
    TripUpdate,
)
from shiteni.schemas.dashboard import DashboardResponse
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
    prefix="/bus",
    tags=["bus"],
    dependencies=[Depends(require_service_type(ServiceType.BUS))]
)

TRIP_TRANSITIONS = {
    TripStatus.SCHEDULED.value: {TripStatus.BOARDING.value, TripStatus.DEPARTED.value, TripStatus.CANCELLED.value},
    TripStatus.BOARDING.value: {TripStatus.DEPARTED.value, TripStatus.CANCELLED.value},
    TripStatus.DEPARTED.value: {TripStatus.ARRIVED.value},
    TripStatus.ARRIVED.value: set(),
    TripStatus.CANCELLED.value: set(),
}

TICKET_TRANSITIONS = {
    TicketStatus.PENDING.value: {TicketStatus.CONFIRMED.value, TicketStatus.CANCELLED.value},
    TicketStatus.CONFIRMED.value: {TicketStatus.CANCELLED.value, TicketStatus.COMPLETED.value},
    TicketStatus.CANCELLED.value: set(),
    TicketStatus.COMPLETED.value: set(),
}

SELLABLE_TRIP_STATUSES = (TripStatus.SCHEDULED.value, TripStatus.BOARDING.value)


def _load(db: Session, vendor: Vendor, model, record_id: str, kind: str):
    record = db.query(model).filter(
        model.id == record_id,
        model.vendor_id == vendor.id  # CRITICAL: vendor isolation
    ).first()
    if not record:
        raise RecordNotFoundError(kind, record_id)
    return record


def _release_seat(ticket: BusTicket) -> None:
    trip = ticket.trip
    trip.available_seats = min(trip.available_seats + 1, trip.total_seats)


# ---------------------------------------------------------------- fleet


@router.get("/fleet", response_model=BusListResponse)
async def list_buses(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(active|maintenance|inactive)$"),
    current_user: User = Depends(require_module("fleet")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    query = db.query(Bus).filter(Bus.vendor_id == vendor.id)
    if status:
        query = query.filter(Bus.status == status)

    buses, total = paginate(query.order_by(Bus.registration_number), page, page_size)

    return BusListResponse(buses=buses, total=total, page=page, page_size=page_size)


@router.post("/fleet", response_model=BusResponse, status_code=status.HTTP_201_CREATED)
async def create_bus(
    bus_data: BusCreate,
    current_user: User = Depends(require_module("fleet")),
    vendor: Vendor = Depends(require_listing_vendor),
    db: Session = Depends(get_db)
):
    check_plan_limit(db, vendor, "inventory", datetime.utcnow())

    if db.query(Bus).filter(
        Bus.vendor_id == vendor.id,
        Bus.registration_number == bus_data.registration_number
    ).first():
        raise ConflictError(f"Bus {bus_data.registration_number} is already registered")

    bus = Bus(vendor_id=vendor.id, status=BusStatus.ACTIVE.value, **bus_data.model_dump())

    db.add(bus)
    db.commit()
    db.refresh(bus)

    logger.info(f"Bus added: {bus.registration_number} by {current_user.id}", extra={"vendor_id": vendor.id})

    return bus


@router.patch("/fleet/{bus_id}", response_model=BusResponse)
async def update_bus(
    bus_id: str,
    bus_data: BusUpdate,
    current_user: User = Depends(require_module("fleet")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    bus = _load(db, vendor, Bus, bus_id, "Bus")

    update_data = bus_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(bus, field, value)

    db.commit()
    db.refresh(bus)

    return bus


@router.delete("/fleet/{bus_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bus(
    bus_id: str,
    current_user: User = Depends(require_module("fleet")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    bus = _load(db, vendor, Bus, bus_id, "Bus")

    if db.query(BusTrip).filter(BusTrip.bus_id == bus.id).first():
        raise ConflictError("Bus has trips on record; set it inactive instead")

    db.delete(bus)
    db.commit()

    logger.info(f"Bus deleted: {bus_id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return None


# --------------------------------------------------------------- routes


@router.get("/routes", response_model=RouteListResponse)
async def list_routes(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(active|inactive|maintenance)$"),
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    query = db.query(BusRoute).filter(BusRoute.vendor_id == vendor.id)

    if current_user.role == UserRole.CUSTOMER:
        query = query.filter(BusRoute.status == RouteStatus.ACTIVE.value)
    if status:
        query = query.filter(BusRoute.status == status)
    if origin:
        query = query.filter(BusRoute.origin.ilike(f"%{origin}%"))
    if destination:
        query = query.filter(BusRoute.destination.ilike(f"%{destination}%"))

    routes, total = paginate(query.order_by(BusRoute.route_number), page, page_size)

    return RouteListResponse(routes=routes, total=total, page=page, page_size=page_size)


@router.get("/routes/{route_id}", response_model=RouteResponse)
async def get_route(
    route_id: str,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    return _load(db, vendor, BusRoute, route_id, "Route")


@router.post("/routes", response_model=RouteResponse, status_code=status.HTTP_201_CREATED)
async def create_route(
    route_data: RouteCreate,
    current_user: User = Depends(require_module("routes")),
    vendor: Vendor = Depends(require_listing_vendor),
    db: Session = Depends(get_db)
):
    if route_data.origin.strip().lower() == route_data.destination.strip().lower():
        raise InvalidInputError("Origin and destination must differ")

    if db.query(BusRoute).filter(
        BusRoute.vendor_id == vendor.id,
        BusRoute.route_number == route_data.route_number
    ).first():
        raise ConflictError(f"Route {route_data.route_number} already exists")

    route = BusRoute(vendor_id=vendor.id, status=RouteStatus.ACTIVE.value, **route_data.model_dump())

    db.add(route)
    db.commit()
    db.refresh(route)

    logger.info(
        f"Route created: {route.route_number} {route.origin}-{route.destination}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return route


@router.patch("/routes/{route_id}", response_model=RouteResponse)
async def update_route(
    route_id: str,
    route_data: RouteUpdate,
    current_user: User = Depends(require_module("routes")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    route = _load(db, vendor, BusRoute, route_id, "Route")

    update_data = route_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(route, field, value)

    db.commit()
    db.refresh(route)

    return route


@router.delete("/routes/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_route(
    route_id: str,
    current_user: User = Depends(require_module("routes")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    route = _load(db, vendor, BusRoute, route_id, "Route")

    if db.query(BusTrip).filter(BusTrip.route_id == route.id).first():
        raise ConflictError("Route has trips on record; set it inactive instead")

    db.delete(route)
    db.commit()

    logger.info(f"Route deleted: {route_id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return None


# ---------------------------------------------------------------- stops


@router.get("/stops", response_model=StopListResponse)
async def list_stops(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    status: Optional[str] = Query(None, pattern="^(active|inactive|maintenance)$"),
    stop_type: Optional[str] = Query(None, pattern="^(stop|terminal)$"),
    search: Optional[str] = None,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    query = db.query(BusStop).filter(BusStop.vendor_id == vendor.id)

    if current_user.role == UserRole.CUSTOMER:
        query = query.filter(BusStop.status == StopStatus.ACTIVE.value)
    if status:
        query = query.filter(BusStop.status == status)
    if stop_type:
        query = query.filter(BusStop.stop_type == stop_type)
    if search:
        pattern = f"%{search}%"
        query = query.filter(BusStop.stop_name.ilike(pattern) | BusStop.district.ilike(pattern))

    stops, total = paginate(query.order_by(BusStop.stop_name), page, page_size)

    return StopListResponse(stops=stops, total=total, page=page, page_size=page_size)


@router.post("/stops", response_model=StopResponse, status_code=status.HTTP_201_CREATED)
async def create_stop(
    stop_data: StopCreate,
    current_user: User = Depends(require_module("stops")),
    vendor: Vendor = Depends(require_listing_vendor),
    db: Session = Depends(get_db)
):
    if db.query(BusStop).filter(
        BusStop.vendor_id == vendor.id,
        BusStop.stop_name == stop_data.stop_name
    ).first():
        raise ConflictError(f"Stop {stop_data.stop_name} already exists")

    stop = BusStop(vendor_id=vendor.id, status=StopStatus.ACTIVE.value, **stop_data.model_dump())

    db.add(stop)
    db.commit()
    db.refresh(stop)

    logger.info(
        f"Stop created: {stop.stop_name} ({stop.stop_type})",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return stop


@router.patch("/stops/{stop_id}", response_model=StopResponse)
async def update_stop(
    stop_id: str,
    stop_data: StopUpdate,
    current_user: User = Depends(require_module("stops")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    stop = _load(db, vendor, BusStop, stop_id, "Stop")

    update_data = stop_data.model_dump(exclude_unset=True)
    new_name = update_data.get("stop_name")
    if new_name and new_name != stop.stop_name and db.query(BusStop).filter(
        BusStop.vendor_id == vendor.id,
        BusStop.stop_name == new_name
    ).first():
        raise ConflictError(f"Stop {new_name} already exists")

    for field, value in update_data.items():
        setattr(stop, field, value)

    db.commit()
    db.refresh(stop)

    return stop


@router.delete("/stops/{stop_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stop(
    stop_id: str,
    current_user: User = Depends(require_module("stops")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    stop = _load(db, vendor, BusStop, stop_id, "Stop")

    db.delete(stop)
    db.commit()

    logger.info(f"Stop deleted: {stop_id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return None


# ---------------------------------------------------------------- fares


@router.get("/fares", response_model=FareListResponse)
async def list_fares(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    status: Optional[str] = Query(None, pattern="^(active|inactive|seasonal)$"),
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """The fare board. Customers only see fares that are not inactive."""
    query = db.query(BusFare).filter(BusFare.vendor_id == vendor.id)

    if current_user.role == UserRole.CUSTOMER:
        query = query.filter(BusFare.status != FareStatus.INACTIVE.value)
    if status:
        query = query.filter(BusFare.status == status)
    if origin:
        query = query.filter(BusFare.origin.ilike(f"%{origin}%"))
    if destination:
        query = query.filter(BusFare.destination.ilike(f"%{destination}%"))

    fares, total = paginate(query.order_by(BusFare.origin, BusFare.destination), page, page_size)

    return FareListResponse(fares=fares, total=total, page=page, page_size=page_size)


@router.post("/fares", response_model=FareResponse, status_code=status.HTTP_201_CREATED)
async def create_fare(
    fare_data: FareCreate,
    current_user: User = Depends(require_module("fares")),
    vendor: Vendor = Depends(require_listing_vendor),
    db: Session = Depends(get_db)
):
    if fare_data.origin.strip().lower() == fare_data.destination.strip().lower():
        raise InvalidInputError("Origin and destination must differ")

    if db.query(BusFare).filter(
        BusFare.vendor_id == vendor.id,
        BusFare.origin == fare_data.origin,
        BusFare.destination == fare_data.destination
    ).first():
        raise ConflictError(f"A fare from {fare_data.origin} to {fare_data.destination} already exists")

    fare = BusFare(vendor_id=vendor.id, status=FareStatus.ACTIVE.value, **fare_data.model_dump())

    db.add(fare)
    db.commit()
    db.refresh(fare)

    logger.info(
        f"Fare created: {fare.origin}-{fare.destination} {fare.fare_amount} {fare.currency}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return fare


@router.patch("/fares/{fare_id}", response_model=FareResponse)
async def update_fare(
    fare_id: str,
    fare_data: FareUpdate,
    current_user: User = Depends(require_module("fares")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    fare = _load(db, vendor, BusFare, fare_id, "Fare")

    update_data = fare_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(fare, field, value)

    db.commit()
    db.refresh(fare)

    return fare


@router.delete("/fares/{fare_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fare(
    fare_id: str,
    current_user: User = Depends(require_module("fares")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    fare = _load(db, vendor, BusFare, fare_id, "Fare")

    db.delete(fare)
    db.commit()

    logger.info(f"Fare deleted: {fare_id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return None


# ---------------------------------------------------------------- trips


@router.get("/trips", response_model=TripListResponse)
async def list_trips(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    route_id: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(scheduled|boarding|departed|arrived|cancelled)$"),
    travel_date: Optional[date] = None,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    query = db.query(BusTrip).filter(BusTrip.vendor_id == vendor.id)

    if current_user.role == UserRole.CUSTOMER:
        query = query.filter(BusTrip.status.in_(SELLABLE_TRIP_STATUSES))
    if route_id:
        query = query.filter(BusTrip.route_id == route_id)
    if status:
        query = query.filter(BusTrip.status == status)
    if travel_date:
        start = datetime.combine(travel_date, datetime.min.time())
        query = query.filter(BusTrip.departure_at >= start, BusTrip.departure_at < start + timedelta(days=1))

    trips, total = paginate(query.order_by(BusTrip.departure_at), page, page_size)

    return TripListResponse(trips=trips, total=total, page=page, page_size=page_size)


@router.get("/trips/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: str,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    return _load(db, vendor, BusTrip, trip_id, "Trip")


@router.post("/trips", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def schedule_trip(
    trip_data: TripCreate,
    current_user: User = Depends(require_module("schedule-trip")),
    vendor: Vendor = Depends(require_listing_vendor),
    db: Session = Depends(get_db)
):
    """
    Schedule a trip.

    Seats default to the bus capacity, fare to the route fare, and arrival
    to departure + route duration when the route has one.
    """
    route = _load(db, vendor, BusRoute, trip_data.route_id, "Route")
    bus = _load(db, vendor, Bus, trip_data.bus_id, "Bus")

    if route.status != RouteStatus.ACTIVE.value:
        raise InvalidInputError(f"Route {route.route_number} is {route.status}")
    if bus.status != BusStatus.ACTIVE.value:
        raise InvalidInputError(f"Bus {bus.registration_number} is {bus.status}")

    arrival_at = trip_data.arrival_at
    if arrival_at is None and route.duration_minutes:
        arrival_at = trip_data.departure_at + timedelta(minutes=route.duration_minutes)
    if arrival_at is not None and arrival_at <= trip_data.departure_at:
        raise InvalidInputError("Arrival must be after departure")

    clash = db.query(BusTrip).filter(
        BusTrip.bus_id == bus.id,
        BusTrip.departure_at == trip_data.departure_at,
        BusTrip.status != TripStatus.CANCELLED.value
    ).first()
    if clash:
        raise ConflictError(f"Bus {bus.registration_number} already has a trip at that time")

    trip = BusTrip(
        vendor_id=vendor.id,
        route_id=route.id,
        bus_id=bus.id,
        departure_at=trip_data.departure_at,
        arrival_at=arrival_at,
        total_seats=bus.capacity,
        available_seats=bus.capacity,
        fare=trip_data.fare if trip_data.fare is not None else route.fare,
        status=TripStatus.SCHEDULED.value,
    )

    db.add(trip)
    db.commit()
    db.refresh(trip)

    logger.info(
        f"Trip scheduled: route={route.route_number} bus={bus.registration_number} at {trip.departure_at}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return trip


@router.patch("/trips/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_id: str,
    trip_data: TripUpdate,
    current_user: User = Depends(require_module("schedule-trip")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Update a trip.

    Cancelling a trip cancels its tickets; arrival completes them.
    """
    trip = _load(db, vendor, BusTrip, trip_id, "Trip")
    update_data = trip_data.model_dump(exclude_unset=True)

    new_status = update_data.pop("status", None)
    if new_status and new_status != trip.status:
        if new_status not in TRIP_TRANSITIONS[trip.status]:
            raise InvalidInputError(f"Cannot change trip from {trip.status} to {new_status}")

        for ticket in trip.tickets:
            if ticket.status == TicketStatus.CANCELLED.value:
                continue
            if new_status == TripStatus.CANCELLED.value:
                ticket.status = TicketStatus.CANCELLED.value
            elif new_status == TripStatus.ARRIVED.value and ticket.status == TicketStatus.CONFIRMED.value:
                ticket.status = TicketStatus.COMPLETED.value
        if new_status == TripStatus.CANCELLED.value:
            trip.available_seats = trip.total_seats
        trip.status = new_status

    for field, value in update_data.items():
        setattr(trip, field, value)

    if trip.arrival_at is not None and trip.arrival_at <= trip.departure_at:
        raise InvalidInputError("Arrival must be after departure")

    db.commit()
    db.refresh(trip)

    logger.info(f"Trip {trip.id} now {trip.status}", extra={"vendor_id": vendor.id, "user_id": current_user.id})

    return trip


# -------------------------------------------------------------- tickets


@router.get("/tickets", response_model=TicketListResponse)
async def list_tickets(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    trip_id: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(pending|confirmed|cancelled|completed)$"),
    current_user: User = Depends(require_module("ticketing")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    query = db.query(BusTicket).filter(BusTicket.vendor_id == vendor.id)

    if trip_id:
        query = query.filter(BusTicket.trip_id == trip_id)
    if status:
        query = query.filter(BusTicket.status == status)

    tickets, total = paginate(query.order_by(BusTicket.created_at.desc()), page, page_size)

    return TicketListResponse(tickets=tickets, total=total, page=page, page_size=page_size)


@router.get("/tickets/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: str,
    current_user: User = Depends(require_module_or_customer("ticketing")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    ticket = _load(db, vendor, BusTicket, ticket_id, "Ticket")
    if current_user.role == UserRole.CUSTOMER and ticket.customer_id != current_user.id:
        raise RecordNotFoundError("Ticket", ticket_id)
    return ticket


@router.post("/tickets", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def sell_ticket(
    ticket_data: TicketCreate,
    current_user: User = Depends(require_module_or_customer("ticketing")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Sell a seat on a trip.

    BUSINESS LOGIC:
    - trip must still be scheduled or boarding
    - seat number within the bus, not held by a non-cancelled ticket (409)
    - boarding/alighting stops must lie on the route
    """
    trip = _load(db, vendor, BusTrip, ticket_data.trip_id, "Trip")

    if trip.status not in SELLABLE_TRIP_STATUSES:
        raise InvalidInputError(f"Trip is {trip.status}; tickets are no longer sold")
    if ticket_data.seat_number > trip.total_seats:
        raise InvalidInputError(f"Seat {ticket_data.seat_number} does not exist (bus has {trip.total_seats})")
    if trip.available_seats <= 0:
        raise ConflictError("Trip is fully booked")

    taken = db.query(BusTicket).filter(
        BusTicket.trip_id == trip.id,
        BusTicket.seat_number == ticket_data.seat_number,
        BusTicket.status != TicketStatus.CANCELLED.value
    ).first()
    if taken:
        raise ConflictError(f"Seat {ticket_data.seat_number} is already taken")

    route = trip.route
    valid_stops = [route.origin] + list(route.stops or []) + [route.destination]
    for stop in (ticket_data.boarding_stop, ticket_data.alighting_stop):
        if stop and stop not in valid_stops:
            raise InvalidInputError(f"{stop} is not a stop on route {route.route_number}")

    ticket = BusTicket(
        vendor_id=vendor.id,
        trip_id=trip.id,
        customer_id=current_user.id if current_user.role == UserRole.CUSTOMER else None,
        ticket_number=generate_reference("TKT"),
        passenger_name=ticket_data.passenger_name,
        passenger_phone=ticket_data.passenger_phone,
        seat_number=ticket_data.seat_number,
        boarding_stop=ticket_data.boarding_stop or route.origin,
        alighting_stop=ticket_data.alighting_stop or route.destination,
        fare=trip.fare,
        status=TicketStatus.CONFIRMED.value,
        payment_method=ticket_data.payment_method,
    )
    trip.available_seats -= 1

    db.add(ticket)
    db.commit()
    db.refresh(ticket)

    logger.info(
        f"Ticket sold: {ticket.ticket_number} seat={ticket.seat_number} trip={trip.id}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return ticket


@router.patch("/tickets/{ticket_id}", response_model=TicketResponse)
async def update_ticket_status(
    ticket_id: str,
    update: TicketStatusUpdate,
    current_user: User = Depends(require_module_or_customer("ticketing")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """Confirm, complete or cancel a ticket; cancelling frees the seat."""
    ticket = _load(db, vendor, BusTicket, ticket_id, "Ticket")
    update_data = update.model_dump(exclude_unset=True)

    if current_user.role == UserRole.CUSTOMER:
        if ticket.customer_id != current_user.id:
            raise RecordNotFoundError("Ticket", ticket_id)
        if set(update_data) != {"status"} or update_data["status"] != TicketStatus.CANCELLED.value:
            raise PermissionDenied("Customers can only cancel their tickets")

    new_status = update_data.pop("status", None)
    if new_status and new_status != ticket.status:
        if new_status not in TICKET_TRANSITIONS[ticket.status]:
            raise InvalidInputError(f"Cannot change ticket from {ticket.status} to {new_status}")
        if new_status == TicketStatus.CANCELLED.value:
            _release_seat(ticket)
        ticket.status = new_status

    for field, value in update_data.items():
        setattr(ticket, field, value)

    db.commit()
    db.refresh(ticket)

    logger.info(
        f"Ticket {ticket.ticket_number} now {ticket.status}/{ticket.payment_status}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return ticket


# ------------------------------------------------------------- payments


def _ticket_payment(ticket: BusTicket) -> dict:
    route = ticket.trip.route
    return {
        "id": ticket.id,
        "source": "bus_ticket",
        "reference": ticket.ticket_number,
        "customer_id": ticket.customer_id,
        "customer_name": ticket.passenger_name,
        "customer_phone": ticket.passenger_phone,
        "description": f"{route.origin} to {route.destination}, seat {ticket.seat_number}",
        "amount": ticket.fare,
        "payment_method": ticket.payment_method,
        "payment_status": ticket.payment_status,
        "record_status": ticket.status,
        "created_at": ticket.created_at,
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
    """Payments taken against tickets. Updated through PATCH /tickets/{id}."""
    query = db.query(BusTicket).filter(BusTicket.vendor_id == vendor.id)

    if payment_status:
        query = query.filter(BusTicket.payment_status == payment_status)
    if payment_method:
        query = query.filter(BusTicket.payment_method == payment_method)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            BusTicket.ticket_number.ilike(pattern)
            | BusTicket.passenger_name.ilike(pattern)
            | BusTicket.passenger_phone.ilike(pattern)
        )
    if date_from:
        query = query.filter(BusTicket.created_at >= naive_utc(date_from))
    if date_to:
        query = query.filter(BusTicket.created_at <= naive_utc(date_to))

    # PERFORMANCE NOTE: the summary loads every matching ticket
    summary = analytics.payment_summary(query.all(), lambda t: t.fare)
    tickets, total = paginate(query.order_by(BusTicket.created_at.desc()), page, page_size)

    return PaymentListResponse(
        payments=[_ticket_payment(t) for t in tickets],
        summary=summary,
        total=total,
        page=page,
        page_size=page_size,
        currency=vendor.currency,
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def bus_dashboard(
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    routes = db.query(BusRoute).filter(BusRoute.vendor_id == vendor.id).all()
    buses = db.query(Bus).filter(Bus.vendor_id == vendor.id).all()
    trips = db.query(BusTrip).filter(BusTrip.vendor_id == vendor.id).all()
    tickets = db.query(BusTicket).filter(BusTicket.vendor_id == vendor.id).all()

    result = analytics.bus_dashboard(routes, buses, trips, tickets, now)
    return DashboardResponse(**result, currency=vendor.currency, generated_at=now)
