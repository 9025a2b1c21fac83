"""
Dashboard aggregation

Pure functions: they take already-loaded records plus "now" and return
plain dicts for the dashboard schemas. Endpoints do the vendor-scoped
loading; nothing here touches the session, which keeps the maths easy
to test.

Cancelled bookings, orders and tickets never count towards revenue.
Months are labelled with three-letter names ("Jan"), days with
three-letter weekday names ("Mon").
"""
import calendar
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

CANCELLED = "cancelled"
RECENT_LIMIT = 5
TOP_LIMIT = 5


def _money(value: float) -> float:
    return round(value or 0.0, 2)


def growth_rate(today: float, yesterday: float) -> float:
    """Day-over-day growth in percent; 100 when starting from zero."""
    if yesterday:
        return round((today - yesterday) / yesterday * 100, 1)
    return 100.0 if today > 0 else 0.0


def _on_day(moment: Optional[datetime], day: date) -> bool:
    return moment is not None and moment.date() == day


def _last_months(now: datetime, count: int) -> List[Tuple[int, int]]:
    """(year, month) pairs, oldest first, ending with now's month."""
    months = []
    year, month = now.year, now.month
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


def _last_days(now: datetime, count: int) -> List[date]:
    today = now.date()
    return [today - timedelta(days=offset) for offset in range(count - 1, -1, -1)]


def _month_label(year_month: Tuple[int, int]) -> str:
    return calendar.month_abbr[year_month[1]]


def _monthly_series(
    records: Iterable[Any],
    now: datetime,
    months: int,
    amount: Callable[[Any], float],
    when: Callable[[Any], Optional[datetime]] = lambda r: r.created_at,
) -> List[Dict[str, Any]]:
    buckets = {key: [0.0, 0] for key in _last_months(now, months)}
    for record in records:
        moment = when(record)
        if moment is None:
            continue
        key = (moment.year, moment.month)
        if key in buckets:
            buckets[key][0] += amount(record)
            buckets[key][1] += 1
    return [
        {"month": _month_label(key), "year": key[0], "revenue": _money(total), "count": count}
        for key, (total, count) in buckets.items()
    ]


def _daily_series(
    records: Iterable[Any],
    now: datetime,
    days: int,
    amount: Callable[[Any], float],
    when: Callable[[Any], Optional[datetime]] = lambda r: r.created_at,
) -> List[Dict[str, Any]]:
    buckets = {day: [0.0, 0] for day in _last_days(now, days)}
    for record in records:
        moment = when(record)
        if moment is None:
            continue
        if moment.date() in buckets:
            buckets[moment.date()][0] += amount(record)
            buckets[moment.date()][1] += 1
    return [
        {"day": calendar.day_abbr[day.weekday()], "date": day.isoformat(), "revenue": _money(total), "count": count}
        for day, (total, count) in buckets.items()
    ]


def _not_cancelled(records: Iterable[Any]) -> List[Any]:
    return [r for r in records if r.status != CANCELLED]


def _counts(values: Iterable[str], keys: Sequence[str] = ()) -> Dict[str, int]:
    counts = {key: 0 for key in keys}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


def _recent(records: Iterable[Any], limit: int = RECENT_LIMIT) -> List[Any]:
    return sorted(records, key=lambda r: r.created_at, reverse=True)[:limit]


def _customer_key(record: Any) -> Optional[str]:
    """Registered customer id, falling back to contact details for walk-ins."""
    return (
        getattr(record, "customer_id", None)
        or getattr(record, "customer_email", None)
        or getattr(record, "customer_phone", None)
        or getattr(record, "customer_name", None)
    )


def _top_items(orders: Iterable[Any], key_attr: str, limit: int = TOP_LIMIT) -> List[Dict[str, Any]]:
    quantities: Dict[str, int] = Counter()
    revenue: Dict[str, float] = defaultdict(float)
    names: Dict[str, str] = {}
    for order in orders:
        for item in order.items:
            key = getattr(item, key_attr) or item.name
            quantities[key] += item.quantity
            revenue[key] += item.total
            names[key] = item.name
    ranked = sorted(quantities.items(), key=lambda kv: (-kv[1], names[kv[0]]))[:limit]
    return [
        {"id": key, "name": names[key], "quantity_sold": qty, "revenue": _money(revenue[key])}
        for key, qty in ranked
    ]


# ---------------------------------------------------------------------------
# Hotel
# ---------------------------------------------------------------------------

ROOM_STATUSES = ("available", "occupied", "maintenance", "out_of_order")
BOOKING_STATUSES = ("pending", "confirmed", "checked_in", "checked_out", "cancelled")


def _nights(booking: Any) -> int:
    return max((booking.check_out_date.date() - booking.check_in_date.date()).days, 1)


def _booked_nights_in_month(booking: Any, year: int, month: int) -> int:
    month_start = date(year, month, 1)
    month_end = date(year, month, calendar.monthrange(year, month)[1]) + timedelta(days=1)
    start = max(booking.check_in_date.date(), month_start)
    end = min(booking.check_out_date.date(), month_end)
    return max((end - start).days, 0)


def hotel_dashboard(rooms: Sequence[Any], bookings: Sequence[Any], now: datetime) -> Dict[str, Any]:
    today = now.date()
    billable = _not_cancelled(bookings)
    rooms_by_status = _counts((r.status for r in rooms), ROOM_STATUSES)
    total_rooms = len(rooms)

    stats = {
        "total_rooms": total_rooms,
        "available_rooms": rooms_by_status["available"],
        "occupied_rooms": rooms_by_status["occupied"],
        "maintenance_rooms": rooms_by_status["maintenance"] + rooms_by_status["out_of_order"],
        "occupancy_rate": round(rooms_by_status["occupied"] / total_rooms * 100, 1) if total_rooms else 0.0,
        "total_bookings": len(bookings),
        "bookings_by_status": _counts((b.status for b in bookings), BOOKING_STATUSES),
        "today_bookings": sum(1 for b in bookings if _on_day(b.created_at, today)),
        "today_check_ins": sum(1 for b in billable if _on_day(b.check_in_date, today)),
        "current_guests": sum(b.number_of_guests for b in bookings if b.status == "checked_in"),
        "total_revenue": _money(sum(b.total_amount for b in billable)),
        "today_revenue": _money(sum(b.total_amount for b in billable if _on_day(b.created_at, today))),
        "paid_revenue": _money(sum(b.total_amount for b in billable if b.payment_status == "paid")),
        "average_stay_nights": round(sum(_nights(b) for b in billable) / len(billable), 1) if billable else 0.0,
    }

    occupancy_by_month = []
    for year, month in _last_months(now, 6):
        capacity = total_rooms * calendar.monthrange(year, month)[1]
        booked = sum(_booked_nights_in_month(b, year, month) for b in billable)
        occupancy_by_month.append({
            "month": _month_label((year, month)),
            "year": year,
            "occupancy_rate": round(min(booked / capacity * 100, 100.0), 1) if capacity else 0.0,
        })

    revenue_by_method: Dict[str, float] = defaultdict(float)
    for booking in billable:
        if booking.payment_status == "paid":
            revenue_by_method[booking.payment_method or "unknown"] += booking.total_amount

    charts = {
        "revenue_by_month": _monthly_series(billable, now, 6, lambda b: b.total_amount),
        "bookings_by_day": _daily_series(
            bookings, now, 7, lambda b: 0.0 if b.status == CANCELLED else b.total_amount
        ),
        "room_type_distribution": [
            {"room_type": room_type, "count": count}
            for room_type, count in sorted(Counter(r.room_type for r in rooms).items())
        ],
        "occupancy_by_month": occupancy_by_month,
        "revenue_by_payment_method": {k: _money(v) for k, v in sorted(revenue_by_method.items())},
    }

    recent = [
        {
            "id": b.id,
            "reference": b.booking_number,
            "name": b.guest_name,
            "amount": _money(b.total_amount),
            "status": b.status,
            "created_at": b.created_at,
        }
        for b in _recent(bookings)
    ]
    return {"stats": stats, "charts": charts, "recent": recent}


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

STORE_ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")


def _is_low_stock(stock: int, min_stock: int, threshold: int) -> bool:
    return 0 < stock <= (min_stock or threshold)


def store_dashboard(
    products: Sequence[Any],
    orders: Sequence[Any],
    now: datetime,
    low_stock_threshold: int = 10,
) -> Dict[str, Any]:
    today = now.date()
    yesterday = today - timedelta(days=1)
    billable = _not_cancelled(orders)

    today_revenue = sum(o.total for o in billable if _on_day(o.created_at, today))
    yesterday_revenue = sum(o.total for o in billable if _on_day(o.created_at, yesterday))

    stats = {
        "total_products": len(products),
        "active_products": sum(1 for p in products if p.status == "active"),
        "low_stock_products": sum(1 for p in products if _is_low_stock(p.stock, p.min_stock, low_stock_threshold)),
        "out_of_stock_products": sum(1 for p in products if p.stock <= 0),
        "total_orders": len(orders),
        "pending_orders": sum(1 for o in orders if o.status == "pending"),
        "today_orders": sum(1 for o in orders if _on_day(o.created_at, today)),
        "total_customers": len({k for k in (_customer_key(o) for o in orders) if k}),
        "total_revenue": _money(sum(o.total for o in billable)),
        "today_revenue": _money(today_revenue),
        "yesterday_revenue": _money(yesterday_revenue),
        "revenue_growth": growth_rate(today_revenue, yesterday_revenue),
        "inventory_value": _money(sum(p.price * max(p.stock, 0) for p in products)),
    }
    charts = {
        "sales_by_day": _daily_series(billable, now, 7, lambda o: o.total),
        "revenue_by_month": _monthly_series(billable, now, 6, lambda o: o.total),
        "top_products": _top_items(billable, "product_id"),
        "orders_by_status": _counts((o.status for o in orders), STORE_ORDER_STATUSES),
    }
    recent = [
        {
            "id": o.id,
            "reference": o.order_number,
            "name": o.customer_name,
            "amount": _money(o.total),
            "status": o.status,
            "created_at": o.created_at,
        }
        for o in _recent(orders)
    ]
    return {"stats": stats, "charts": charts, "recent": recent}


# ---------------------------------------------------------------------------
# Pharmacy
# ---------------------------------------------------------------------------

PHARMACY_OPEN_STATUSES = ("pending", "confirmed", "processing", "ready")


def pharmacy_dashboard(
    medicines: Sequence[Any],
    orders: Sequence[Any],
    now: datetime,
    expiry_warning_days: int = 30,
) -> Dict[str, Any]:
    today = now.date()
    yesterday = today - timedelta(days=1)
    warning_horizon = now + timedelta(days=expiry_warning_days)
    billable = _not_cancelled(orders)

    expired = [m for m in medicines if m.expiry_date is not None and m.expiry_date <= now]
    expiring = [m for m in medicines if m.expiry_date is not None and now < m.expiry_date <= warning_horizon]
    expired_ids = {m.id for m in expired}
    low_stock = [m for m in medicines if m.id not in expired_ids and 0 < m.stock <= m.min_stock]
    out_of_stock = [m for m in medicines if m.stock <= 0]

    today_revenue = sum(o.total_amount for o in billable if _on_day(o.created_at, today))
    yesterday_revenue = sum(o.total_amount for o in billable if _on_day(o.created_at, yesterday))

    stats = {
        "total_medicines": len(medicines),
        "low_stock_medicines": len(low_stock),
        "out_of_stock_medicines": len(out_of_stock),
        "expired_medicines": len(expired),
        "expiring_soon_medicines": len(expiring),
        "prescription_medicines": sum(1 for m in medicines if m.prescription_required),
        "total_orders": len(orders),
        "open_orders": sum(1 for o in orders if o.status in PHARMACY_OPEN_STATUSES),
        "completed_orders": sum(1 for o in orders if o.status == "completed"),
        "today_orders": sum(1 for o in orders if _on_day(o.created_at, today)),
        "total_patients": len({k for k in (_customer_key(o) for o in orders) if k}),
        "total_revenue": _money(sum(o.total_amount for o in billable)),
        "today_revenue": _money(today_revenue),
        "yesterday_revenue": _money(yesterday_revenue),
        "revenue_growth": growth_rate(today_revenue, yesterday_revenue),
    }

    alerts = (
        [{"type": "expired", "medicine_id": m.id, "name": m.name,
          "message": f"{m.name} expired on {m.expiry_date.date().isoformat()}"} for m in expired]
        + [{"type": "out_of_stock", "medicine_id": m.id, "name": m.name,
            "message": f"{m.name} is out of stock"} for m in out_of_stock if m.id not in expired_ids]
        + [{"type": "low_stock", "medicine_id": m.id, "name": m.name,
            "message": f"{m.name} is low on stock ({m.stock} left)"} for m in low_stock]
        + [{"type": "expiring_soon", "medicine_id": m.id, "name": m.name,
            "message": f"{m.name} expires on {m.expiry_date.date().isoformat()}"} for m in expiring]
    )

    charts = {
        "revenue_by_day": _daily_series(billable, now, 7, lambda o: o.total_amount),
        "revenue_by_month": _monthly_series(billable, now, 6, lambda o: o.total_amount),
        "top_selling": _top_items(billable, "medicine_id"),
        "orders_by_type": _counts((o.order_type for o in orders), ("online", "walk-in")),
        "alerts": alerts,
    }
    recent = [
        {
            "id": o.id,
            "reference": o.order_number,
            "name": o.customer_name,
            "amount": _money(o.total_amount),
            "status": o.status,
            "created_at": o.created_at,
        }
        for o in _recent(orders)
    ]
    return {"stats": stats, "charts": charts, "recent": recent}


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------

ROUTE_STATUSES = ("active", "inactive", "maintenance")


def _occupancy(trip: Any) -> float:
    """Percent of seats sold on a trip."""
    return (trip.total_seats - trip.available_seats) / trip.total_seats * 100


def bus_dashboard(
    routes: Sequence[Any],
    buses: Sequence[Any],
    trips: Sequence[Any],
    tickets: Sequence[Any],
    now: datetime,
) -> Dict[str, Any]:
    today = now.date()
    sold = _not_cancelled(tickets)
    running_trips = [t for t in trips if t.status != CANCELLED and t.total_seats > 0]
    trip_routes = {t.id: t.route_id for t in trips}
    route_names = {r.id: f"{r.route_number} {r.origin} - {r.destination}" for r in routes}

    stats = {
        "total_routes": len(routes),
        "active_routes": sum(1 for r in routes if r.status == "active"),
        "total_buses": len(buses),
        "active_buses": sum(1 for b in buses if b.status == "active"),
        "total_trips": len(trips),
        "today_trips": sum(1 for t in trips if _on_day(t.departure_at, today)),
        "upcoming_trips": sum(1 for t in trips if t.status == "scheduled" and t.departure_at > now),
        "total_passengers": len(sold),
        "today_passengers": sum(1 for t in sold if _on_day(t.created_at, today)),
        "total_revenue": _money(sum(t.fare for t in sold)),
        "today_revenue": _money(sum(t.fare for t in sold if _on_day(t.created_at, today))),
        "average_occupancy_rate": round(
            sum(_occupancy(t) for t in running_trips) / len(running_trips), 1
        ) if running_trips else 0.0,
    }

    per_route: Dict[str, List[float]] = defaultdict(lambda: [0, 0.0])
    for ticket in sold:
        route_id = trip_routes.get(ticket.trip_id)
        if route_id is None:
            continue
        per_route[route_id][0] += 1
        per_route[route_id][1] += ticket.fare
    top_routes = sorted(per_route.items(), key=lambda kv: (-kv[1][0], route_names.get(kv[0], "")))[:TOP_LIMIT]

    charts = {
        "revenue_by_month": _monthly_series(sold, now, 6, lambda t: t.fare),
        "passengers_by_day": _daily_series(sold, now, 7, lambda t: t.fare),
        "route_status": _counts((r.status for r in routes), ROUTE_STATUSES),
        "top_routes": [
            {"route_id": route_id, "name": route_names.get(route_id, route_id),
             "passengers": int(values[0]), "revenue": _money(values[1])}
            for route_id, values in top_routes
        ],
    }
    recent = [
        {
            "id": t.id,
            "reference": t.ticket_number,
            "name": t.passenger_name,
            "amount": _money(t.fare),
            "status": t.status,
            "created_at": t.created_at,
        }
        for t in _recent(tickets)
    ]
    return {"stats": stats, "charts": charts, "recent": recent}


# ---------------------------------------------------------------------------
# Customer
# ---------------------------------------------------------------------------

def customer_dashboard(
    hotel_bookings: Sequence[Any],
    store_orders: Sequence[Any],
    pharmacy_orders: Sequence[Any],
    bus_tickets: Sequence[Any],
    now: datetime,
) -> Dict[str, Any]:
    spent = (
        sum(b.total_amount for b in _not_cancelled(hotel_bookings))
        + sum(o.total for o in _not_cancelled(store_orders))
        + sum(o.total_amount for o in _not_cancelled(pharmacy_orders))
        + sum(t.fare for t in _not_cancelled(bus_tickets))
    )
    upcoming_stays = [
        b for b in hotel_bookings
        if b.status in ("pending", "confirmed") and b.check_in_date >= now
    ]
    upcoming_trips = [
        t for t in _not_cancelled(bus_tickets)
        if t.trip is not None and t.trip.departure_at >= now
    ]

    activity = (
        [("hotel_booking", b.booking_number, b.total_amount, b) for b in hotel_bookings]
        + [("store_order", o.order_number, o.total, o) for o in store_orders]
        + [("pharmacy_order", o.order_number, o.total_amount, o) for o in pharmacy_orders]
        + [("bus_ticket", t.ticket_number, t.fare, t) for t in bus_tickets]
    )
    activity.sort(key=lambda entry: entry[3].created_at, reverse=True)

    return {
        "stats": {
            "total_bookings": len(hotel_bookings),
            "total_orders": len(store_orders) + len(pharmacy_orders),
            "total_tickets": len(bus_tickets),
            "total_spent": _money(spent),
            "upcoming_stays": len(upcoming_stays),
            "upcoming_trips": len(upcoming_trips),
        },
        "charts": {
            "spending_by_month": _monthly_series(
                [entry for entry in activity if entry[3].status != CANCELLED],
                now, 6, lambda entry: entry[2], when=lambda entry: entry[3].created_at,
            ),
        },
        "recent": [
            {
                "id": record.id,
                "type": kind,
                "reference": reference,
                "amount": _money(amount),
                "status": record.status,
                "created_at": record.created_at,
            }
            for kind, reference, amount, record in activity[:10]
        ],
    }


# ---------------------------------------------------------------------------
# Platform admin
# ---------------------------------------------------------------------------

@dataclass
class PlatformSnapshot:
    """Everything the admin screens aggregate over, loaded once per request."""
    users: Sequence[Any] = field(default_factory=list)
    vendors: Sequence[Any] = field(default_factory=list)
    subscriptions: Sequence[Any] = field(default_factory=list)
    billing_records: Sequence[Any] = field(default_factory=list)
    hotel_bookings: Sequence[Any] = field(default_factory=list)
    store_orders: Sequence[Any] = field(default_factory=list)
    pharmacy_orders: Sequence[Any] = field(default_factory=list)
    bus_tickets: Sequence[Any] = field(default_factory=list)
    product_count: int = 0
    medicine_count: int = 0

    def revenue_records(self) -> List[Tuple[str, float, Any]]:
        """(vertical, amount, record) for every non-cancelled sale."""
        return (
            [("hotel", b.total_amount, b) for b in _not_cancelled(self.hotel_bookings)]
            + [("store", o.total, o) for o in _not_cancelled(self.store_orders)]
            + [("pharmacy", o.total_amount, o) for o in _not_cancelled(self.pharmacy_orders)]
            + [("bus", t.fare, t) for t in _not_cancelled(self.bus_tickets)]
        )

    def paid_billing(self) -> List[Any]:
        return [b for b in self.billing_records if b.status == "paid"]


PLATFORM_ADMIN_ROLES = ("super_admin", "admin")


def _role_value(user: Any) -> str:
    return getattr(user.role, "value", user.role)


def _service_value(vendor: Any) -> str:
    return getattr(vendor.service_type, "value", vendor.service_type)


def admin_dashboard(snapshot: PlatformSnapshot, now: datetime) -> Dict[str, Any]:
    revenue_by_vertical: Dict[str, float] = {"hotel": 0.0, "store": 0.0, "pharmacy": 0.0, "bus": 0.0}
    for vertical, amount, _record in snapshot.revenue_records():
        revenue_by_vertical[vertical] += amount
    subscription_revenue = sum(b.amount for b in snapshot.paid_billing())

    users = snapshot.users
    stats = {
        "total_users": len(users),
        "total_customers": sum(1 for u in users if _role_value(u) == "customer"),
        "total_vendor_users": sum(1 for u in users if u.vendor_id is not None),
        "total_admins": sum(
            1 for u in users if _role_value(u) in PLATFORM_ADMIN_ROLES and u.vendor_id is None
        ),
        "total_vendors": len(snapshot.vendors),
        "active_vendors": sum(1 for v in snapshot.vendors if v.status == "active"),
        "pending_vendors": sum(1 for v in snapshot.vendors if v.status == "pending"),
        "total_products": snapshot.product_count + snapshot.medicine_count,
        "total_bookings": len(snapshot.hotel_bookings) + len(snapshot.bus_tickets),
        "total_orders": len(snapshot.store_orders) + len(snapshot.pharmacy_orders),
        "platform_revenue": _money(sum(revenue_by_vertical.values())),
        "subscription_revenue": _money(subscription_revenue),
        "active_subscriptions": sum(1 for s in snapshot.subscriptions if s.is_current(now)),
    }
    charts = {
        "vendors_by_service_type": _counts(
            (_service_value(v) for v in snapshot.vendors), ("hotel", "store", "pharmacy", "bus")
        ),
        "vendors_by_status": _counts(
            (v.status for v in snapshot.vendors), ("pending", "active", "suspended", "inactive")
        ),
        "revenue_by_vertical": {k: _money(v) for k, v in revenue_by_vertical.items()},
    }
    recent = [
        {
            "id": v.id,
            "type": "vendor_registered",
            "reference": v.business_name,
            "amount": 0.0,
            "status": v.status,
            "created_at": v.created_at,
        }
        for v in _recent(snapshot.vendors)
    ]
    return {"stats": stats, "charts": charts, "recent": recent}


def platform_statistics(snapshot: PlatformSnapshot, now: datetime) -> Dict[str, Any]:
    sales = snapshot.revenue_records()
    paid_billing = snapshot.paid_billing()

    revenue_by_month = _monthly_series(sales, now, 12, lambda s: s[1], when=lambda s: s[2].created_at)
    subscription_by_month = _monthly_series(
        paid_billing, now, 12, lambda b: b.amount, when=lambda b: b.payment_date or b.billing_date
    )
    for entry, subscription_entry in zip(revenue_by_month, subscription_by_month):
        entry["subscription_revenue"] = subscription_entry["revenue"]

    user_growth = _monthly_series(snapshot.users, now, 12, lambda u: 0.0)
    activity = (
        [("user_registered", u.email, 0.0, u.created_at, u.id) for u in snapshot.users]
        + [("vendor_registered", v.business_name, 0.0, v.created_at, v.id) for v in snapshot.vendors]
        + [("subscription_payment", b.invoice_number, b.amount, b.payment_date or b.billing_date, b.id)
           for b in paid_billing]
    )
    activity.sort(key=lambda entry: entry[3], reverse=True)

    return {
        "stats": {
            "total_users": len(snapshot.users),
            "total_vendors": len(snapshot.vendors),
            "total_products": snapshot.product_count + snapshot.medicine_count,
            "total_bookings": len(snapshot.hotel_bookings) + len(snapshot.bus_tickets),
            "total_orders": len(snapshot.store_orders) + len(snapshot.pharmacy_orders),
            "total_revenue": _money(sum(amount for _v, amount, _r in sales)),
            "subscription_revenue": _money(sum(b.amount for b in paid_billing)),
        },
        "charts": {
            "revenue_by_month": revenue_by_month,
            "user_growth": [
                {"month": e["month"], "year": e["year"], "new_users": e["count"]} for e in user_growth
            ],
        },
        "recent": [
            {
                "id": record_id,
                "type": kind,
                "reference": reference,
                "amount": _money(amount),
                "status": "completed",
                "created_at": created_at,
            }
            for kind, reference, amount, created_at, record_id in activity[:10]
        ],
    }


# ---------------------------------------------------------------------------
# Customer books and payment ledgers
# ---------------------------------------------------------------------------

LOYALTY_RATE = 0.1
PAYMENT_STATUSES = ("pending", "paid", "refunded")

_BOOK_SORTS: Dict[str, Tuple[Callable[[Dict[str, Any]], Any], bool]] = {
    "recent": (lambda row: row["last_order_at"], True),
    "oldest": (lambda row: row["first_order_at"], False),
    "highest-spent": (lambda row: (row["total_spent"], row["last_order_at"]), True),
    "most-orders": (lambda row: (row["total_orders"], row["last_order_at"]), True),
}
CUSTOMER_SORTS = tuple(_BOOK_SORTS)


def customer_book(
    orders: Iterable[Any],
    amount: Callable[[Any], float],
    search: Optional[str] = None,
    sort: str = "recent",
) -> List[Dict[str, Any]]:
    """
    One row per buyer, built from their orders.

    Registered customers group by account, walk-ins by email, phone or
    name. Cancelled orders still count as orders but add nothing to
    total_spent. The latest order's contact details win.
    """
    book: Dict[str, Dict[str, Any]] = {}
    for order in sorted(orders, key=lambda o: o.created_at):
        key = _customer_key(order)
        if key is None:
            continue
        row = book.setdefault(key, {
            "customer_id": None,
            "name": "Customer",
            "email": None,
            "phone": None,
            "total_orders": 0,
            "total_spent": 0.0,
            "first_order_at": order.created_at,
        })
        row["customer_id"] = order.customer_id or row["customer_id"]
        row["name"] = order.customer_name or row["name"]
        row["email"] = order.customer_email or row["email"]
        row["phone"] = order.customer_phone or row["phone"]
        row["total_orders"] += 1
        if order.status != CANCELLED:
            row["total_spent"] += amount(order)
        row["last_order_at"] = order.created_at

    rows = list(book.values())
    for row in rows:
        row["total_spent"] = _money(row["total_spent"])
        row["loyalty_points"] = int(row["total_spent"] * LOYALTY_RATE)

    if search:
        needle = search.strip().lower()
        rows = [
            row for row in rows
            if any(needle in (row[field] or "").lower() for field in ("name", "email", "phone"))
        ]

    sort_key, descending = _BOOK_SORTS[sort]
    rows.sort(key=sort_key, reverse=descending)
    return rows


def payment_summary(records: Iterable[Any], amount: Callable[[Any], float]) -> Dict[str, Any]:
    """Totals per payment status over the listed records."""
    summary: Dict[str, Any] = {"total_amount": 0.0, "total_count": 0}
    for payment_status in PAYMENT_STATUSES:
        summary[f"{payment_status}_amount"] = 0.0
        summary[f"{payment_status}_count"] = 0

    for record in records:
        value = amount(record)
        summary["total_amount"] += value
        summary["total_count"] += 1
        if record.payment_status in PAYMENT_STATUSES:
            summary[f"{record.payment_status}_amount"] += value
            summary[f"{record.payment_status}_count"] += 1

    return {k: _money(v) if k.endswith("_amount") else v for k, v in summary.items()}
