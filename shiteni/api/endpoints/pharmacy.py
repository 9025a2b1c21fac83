"""
Pharmacy Endpoints

Medicines, orders, patients and the pharmacy dashboard.

RBAC (modules):
- medicines: customers may browse; "medicines" to add/edit/remove
- orders: "orders" for staff; customers place and cancel their own
- patients: "patients", the patient book derived from orders
- dashboard: any member of the vendor

Medicine status is derived on every save: expired beats low_stock,
inactive is only ever set by hand.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Dict, Optional
from datetime import datetime, timedelta

from shiteni.database import get_db
from shiteni.models.pharmacy import (
    Medicine,
    MedicineStatus,
    PharmacyOrder,
    PharmacyOrderItem,
    PharmacyOrderStatus,
)
from shiteni.models.user import User, UserRole
from shiteni.models.vendor import ServiceType, Vendor
from shiteni.schemas.dashboard import DashboardResponse
from shiteni.schemas.pharmacy import (
    MedicineCreate,
    MedicineListResponse,
    MedicineResponse,
    MedicineUpdate,
    PharmacyOrderCreate,
    PharmacyOrderListResponse,
    PharmacyOrderResponse,
    PharmacyOrderStatusUpdate,
)
from shiteni.schemas.ledger import PatientBookResponse
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
from shiteni.config import get_settings
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
settings = get_settings()

router = APIRouter(
    prefix="/pharmacy",
    tags=["pharmacy"],
    dependencies=[Depends(require_service_type(ServiceType.PHARMACY))]
)

ORDER_TRANSITIONS = {
    PharmacyOrderStatus.PENDING.value: {PharmacyOrderStatus.CONFIRMED.value, PharmacyOrderStatus.PROCESSING.value,
                                        PharmacyOrderStatus.CANCELLED.value},
    PharmacyOrderStatus.CONFIRMED.value: {PharmacyOrderStatus.PROCESSING.value, PharmacyOrderStatus.READY.value,
                                          PharmacyOrderStatus.CANCELLED.value},
    PharmacyOrderStatus.PROCESSING.value: {PharmacyOrderStatus.READY.value, PharmacyOrderStatus.CANCELLED.value},
    PharmacyOrderStatus.READY.value: {PharmacyOrderStatus.COMPLETED.value, PharmacyOrderStatus.CANCELLED.value},
    PharmacyOrderStatus.COMPLETED.value: set(),
    PharmacyOrderStatus.CANCELLED.value: set(),
}

# Status -> timestamp column stamped when the order reaches it
STAGE_TIMESTAMPS = {
    PharmacyOrderStatus.CONFIRMED.value: "confirmed_at",
    PharmacyOrderStatus.READY.value: "ready_at",
    PharmacyOrderStatus.COMPLETED.value: "completed_at",
}


def _load_medicine(db: Session, vendor: Vendor, medicine_id: str) -> Medicine:
    medicine = db.query(Medicine).filter(
        Medicine.id == medicine_id,
        Medicine.vendor_id == vendor.id  # CRITICAL: vendor isolation
    ).first()
    if not medicine:
        raise RecordNotFoundError("Medicine", medicine_id)
    return medicine


def _load_order(db: Session, vendor: Vendor, order_id: str) -> PharmacyOrder:
    order = db.query(PharmacyOrder).filter(
        PharmacyOrder.id == order_id,
        PharmacyOrder.vendor_id == vendor.id  # CRITICAL
    ).first()
    if not order:
        raise RecordNotFoundError("Order", order_id)
    return order


# ------------------------------------------------------------ medicines


@router.get("/medicines", response_model=MedicineListResponse)
async def list_medicines(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(active|inactive|expired|low_stock)$"),
    category: Optional[str] = None,
    search: Optional[str] = None,
    expiring_soon: bool = False,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    List medicines.

    expiring_soon=true limits to stock expiring within EXPIRY_WARNING_DAYS
    that has not expired yet.
    """
    now = datetime.utcnow()
    query = db.query(Medicine).filter(Medicine.vendor_id == vendor.id)

    if current_user.role == UserRole.CUSTOMER:
        query = query.filter(Medicine.status.in_((MedicineStatus.ACTIVE.value, MedicineStatus.LOW_STOCK.value)))
    if status:
        query = query.filter(Medicine.status == status)
    if category:
        query = query.filter(Medicine.category == category)
    if search:
        pattern = f"%{search}%"
        query = query.filter(Medicine.name.ilike(pattern) | Medicine.generic_name.ilike(pattern))
    if expiring_soon:
        query = query.filter(
            Medicine.expiry_date > now,
            Medicine.expiry_date <= now + timedelta(days=settings.EXPIRY_WARNING_DAYS)
        )

    medicines, total = paginate(query.order_by(Medicine.name), page, page_size)

    return MedicineListResponse(medicines=medicines, total=total, page=page, page_size=page_size)


@router.get("/medicines/{medicine_id}", response_model=MedicineResponse)
async def get_medicine(
    medicine_id: str,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    return _load_medicine(db, vendor, medicine_id)


@router.post("/medicines", response_model=MedicineResponse, status_code=status.HTTP_201_CREATED)
async def create_medicine(
    medicine_data: MedicineCreate,
    current_user: User = Depends(require_module("medicines")),
    vendor: Vendor = Depends(require_listing_vendor),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    check_plan_limit(db, vendor, "inventory", now)

    medicine = Medicine(vendor_id=vendor.id, status=MedicineStatus.ACTIVE.value, **medicine_data.model_dump())
    medicine.refresh_status(now)

    db.add(medicine)
    db.commit()
    db.refresh(medicine)

    logger.info(
        f"Medicine created: {medicine.name} ({medicine.status}) by {current_user.id}",
        extra={"vendor_id": vendor.id}
    )

    return medicine


@router.patch("/medicines/{medicine_id}", response_model=MedicineResponse)
async def update_medicine(
    medicine_id: str,
    medicine_data: MedicineUpdate,
    current_user: User = Depends(require_module("medicines")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    medicine = _load_medicine(db, vendor, medicine_id)

    update_data = medicine_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(medicine, field, value)
    medicine.refresh_status(datetime.utcnow())

    db.commit()
    db.refresh(medicine)

    logger.info(f"Medicine updated: {medicine.id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return medicine


@router.delete("/medicines/{medicine_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_medicine(
    medicine_id: str,
    current_user: User = Depends(require_module("medicines")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    medicine = _load_medicine(db, vendor, medicine_id)

    db.query(PharmacyOrderItem).filter(PharmacyOrderItem.medicine_id == medicine.id).update(
        {PharmacyOrderItem.medicine_id: None}, synchronize_session=False
    )
    db.delete(medicine)
    db.commit()

    logger.info(f"Medicine deleted: {medicine_id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return None


# --------------------------------------------------------------- orders


@router.get("/orders", response_model=PharmacyOrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(pending|confirmed|processing|ready|completed|cancelled)$"),
    order_type: Optional[str] = Query(None, pattern="^(online|walk-in)$"),
    current_user: User = Depends(require_module("orders")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    query = db.query(PharmacyOrder).filter(PharmacyOrder.vendor_id == vendor.id)

    if status:
        query = query.filter(PharmacyOrder.status == status)
    if order_type:
        query = query.filter(PharmacyOrder.order_type == order_type)

    orders, total = paginate(query.order_by(PharmacyOrder.created_at.desc()), page, page_size)

    return PharmacyOrderListResponse(orders=orders, total=total, page=page, page_size=page_size)


@router.get("/orders/{order_id}", response_model=PharmacyOrderResponse)
async def get_order(
    order_id: str,
    current_user: User = Depends(require_module_or_customer("orders")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    order = _load_order(db, vendor, order_id)
    if current_user.role == UserRole.CUSTOMER and order.customer_id != current_user.id:
        raise RecordNotFoundError("Order", order_id)
    return order


@router.post("/orders", response_model=PharmacyOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: PharmacyOrderCreate,
    current_user: User = Depends(require_module_or_customer("orders")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Place a pharmacy order.

    BUSINESS LOGIC:
    - expired or inactive medicines cannot be sold (400)
    - stock must cover the quantity (409) and is decremented
    - customer orders are always "online"
    """
    now = datetime.utcnow()
    is_customer = current_user.role == UserRole.CUSTOMER

    quantities: Dict[str, int] = {}
    for line in order_data.items:
        quantities[line.medicine_id] = quantities.get(line.medicine_id, 0) + line.quantity

    order = PharmacyOrder(
        vendor_id=vendor.id,
        customer_id=current_user.id if is_customer else None,
        order_number=generate_reference("RX"),
        customer_name=order_data.customer_name,
        customer_email=order_data.customer_email,
        customer_phone=order_data.customer_phone,
        order_type="online" if is_customer else order_data.order_type,
        tax=order_data.tax,
        shipping_fee=order_data.shipping_fee,
        status=PharmacyOrderStatus.PENDING.value,
        payment_method=order_data.payment_method,
        notes=order_data.notes,
    )

    subtotal = 0.0
    for medicine_id, quantity in quantities.items():
        medicine = _load_medicine(db, vendor, medicine_id)
        if medicine.is_expired(now):
            raise InvalidInputError(f"{medicine.name} has expired and cannot be sold")
        if medicine.status == MedicineStatus.INACTIVE.value:
            raise InvalidInputError(f"{medicine.name} is not on sale")
        if medicine.stock < quantity:
            raise ConflictError(f"Insufficient stock for {medicine.name}: {medicine.stock} left")

        line_total = round(medicine.price * quantity, 2)
        order.items.append(PharmacyOrderItem(
            medicine_id=medicine.id,
            name=medicine.name,
            quantity=quantity,
            price=medicine.price,
            total=line_total,
        ))
        subtotal += line_total

        medicine.stock -= quantity
        medicine.refresh_status(now)

    order.subtotal = round(subtotal, 2)
    order.total_amount = round(subtotal + order_data.tax + order_data.shipping_fee, 2)

    db.add(order)
    db.commit()
    db.refresh(order)

    logger.info(
        f"Pharmacy order created: {order.order_number} total={order.total_amount}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return order


@router.patch("/orders/{order_id}", response_model=PharmacyOrderResponse)
async def update_order_status(
    order_id: str,
    update: PharmacyOrderStatusUpdate,
    current_user: User = Depends(require_module_or_customer("orders")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """Advance an order, stamping confirmed/ready/completed times."""
    now = datetime.utcnow()
    order = _load_order(db, vendor, order_id)
    update_data = update.model_dump(exclude_unset=True)

    if current_user.role == UserRole.CUSTOMER:
        if order.customer_id != current_user.id:
            raise RecordNotFoundError("Order", order_id)
        if set(update_data) != {"status"} or update_data["status"] != PharmacyOrderStatus.CANCELLED.value:
            raise PermissionDenied("Customers can only cancel their orders")

    new_status = update_data.pop("status", None)
    if new_status and new_status != order.status:
        if new_status not in ORDER_TRANSITIONS[order.status]:
            raise InvalidInputError(f"Cannot change order from {order.status} to {new_status}")

        if new_status == PharmacyOrderStatus.CANCELLED.value:
            for item in order.items:
                if item.medicine_id is None:
                    continue
                medicine = db.get(Medicine, item.medicine_id)
                if medicine is not None:
                    medicine.stock += item.quantity
                    medicine.refresh_status(now)

        stamp = STAGE_TIMESTAMPS.get(new_status)
        if stamp:
            setattr(order, stamp, now)
        order.status = new_status

    for field, value in update_data.items():
        setattr(order, field, value)

    db.commit()
    db.refresh(order)

    logger.info(
        f"Pharmacy order {order.order_number} now {order.status}/{order.payment_status}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return order


# ------------------------------------------------------------- patients


@router.get("/patients", response_model=PatientBookResponse)
async def list_patients(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    sort: str = Query("recent", pattern=f"^({'|'.join(analytics.CUSTOMER_SORTS)})$"),
    current_user: User = Depends(require_module("patients")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Everyone who has ordered from this pharmacy.

    Built from orders like the store's customer book. No medical record
    is kept here.
    """
    # PERFORMANCE NOTE: the book is built from every order of the vendor
    orders = db.query(PharmacyOrder).filter(PharmacyOrder.vendor_id == vendor.id).all()
    rows = analytics.customer_book(orders, lambda o: o.total_amount, search=search, sort=sort)

    start = (page - 1) * page_size
    return PatientBookResponse(
        patients=rows[start:start + page_size],
        total=len(rows),
        page=page,
        page_size=page_size,
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def pharmacy_dashboard(
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    medicines = db.query(Medicine).filter(Medicine.vendor_id == vendor.id).all()
    orders = db.query(PharmacyOrder).filter(PharmacyOrder.vendor_id == vendor.id).all()

    result = analytics.pharmacy_dashboard(
        medicines, orders, now, expiry_warning_days=settings.EXPIRY_WARNING_DAYS
    )
    return DashboardResponse(**result, currency=vendor.currency, generated_at=now)
