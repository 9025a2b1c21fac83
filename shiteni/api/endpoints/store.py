"""
Store Endpoints

Products, orders, customers, payments and the store dashboard.

RBAC (modules):
- products: customers may browse; "products" to add/edit/remove
- orders: "orders" for staff; customers place and cancel their own
- customers: "customers", the customer book derived from orders
- payments: "payments", a read-only view over orders
- dashboard: any member of the vendor
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Dict, Optional
from datetime import datetime

from shiteni.database import get_db
from shiteni.models.store import OrderStatus, Product, ProductStatus, StoreOrder, StoreOrderItem
from shiteni.models.user import User, UserRole
from shiteni.models.vendor import ServiceType, Vendor
from shiteni.schemas.dashboard import DashboardResponse
from shiteni.schemas.store import (
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
    StoreOrderCreate,
    StoreOrderListResponse,
    StoreOrderResponse,
    StoreOrderStatusUpdate,
)
from shiteni.schemas.ledger import CustomerBookResponse, PaymentListResponse
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
    prefix="/store",
    tags=["store"],
    dependencies=[Depends(require_service_type(ServiceType.STORE))]
)

ORDER_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.CONFIRMED.value, OrderStatus.PROCESSING.value,
                                OrderStatus.CANCELLED.value},
    OrderStatus.CONFIRMED.value: {OrderStatus.PROCESSING.value, OrderStatus.SHIPPED.value,
                                  OrderStatus.CANCELLED.value},
    OrderStatus.PROCESSING.value: {OrderStatus.SHIPPED.value, OrderStatus.CANCELLED.value},
    OrderStatus.SHIPPED.value: {OrderStatus.DELIVERED.value},
    OrderStatus.DELIVERED.value: set(),
    OrderStatus.CANCELLED.value: set(),
}


def _load_product(db: Session, vendor: Vendor, product_id: str) -> Product:
    product = db.query(Product).filter(
        Product.id == product_id,
        Product.vendor_id == vendor.id  # CRITICAL: vendor isolation
    ).first()
    if not product:
        raise RecordNotFoundError("Product", product_id)
    return product


def _load_order(db: Session, vendor: Vendor, order_id: str) -> StoreOrder:
    order = db.query(StoreOrder).filter(
        StoreOrder.id == order_id,
        StoreOrder.vendor_id == vendor.id  # CRITICAL
    ).first()
    if not order:
        raise RecordNotFoundError("Order", order_id)
    return order


# ------------------------------------------------------------- products


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(active|inactive|out_of_stock)$"),
    category: Optional[str] = None,
    search: Optional[str] = None,
    low_stock: bool = False,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    List products.

    low_stock=true returns items at or below their own min_stock or the
    platform LOW_STOCK_THRESHOLD, whichever is higher.
    """
    query = db.query(Product).filter(Product.vendor_id == vendor.id)

    if current_user.role == UserRole.CUSTOMER:
        query = query.filter(Product.status != ProductStatus.INACTIVE.value)
    if status:
        query = query.filter(Product.status == status)
    if category:
        query = query.filter(Product.category == category)
    if search:
        pattern = f"%{search}%"
        query = query.filter(Product.name.ilike(pattern) | Product.sku.ilike(pattern))
    if low_stock:
        query = query.filter(
            (Product.stock <= Product.min_stock) | (Product.stock <= settings.LOW_STOCK_THRESHOLD)
        )

    products, total = paginate(query.order_by(Product.name), page, page_size)

    return ProductListResponse(products=products, total=total, page=page, page_size=page_size)


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    current_user: User = Depends(get_vendor_visitor),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    return _load_product(db, vendor, product_id)


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    current_user: User = Depends(require_module("products")),
    vendor: Vendor = Depends(require_listing_vendor),
    db: Session = Depends(get_db)
):
    check_plan_limit(db, vendor, "inventory", datetime.utcnow())

    if db.query(Product).filter(Product.vendor_id == vendor.id, Product.sku == product_data.sku).first():
        raise ConflictError(f"A product with SKU {product_data.sku} already exists")

    product = Product(vendor_id=vendor.id, status=ProductStatus.ACTIVE.value, **product_data.model_dump())
    product.sync_stock_status()

    db.add(product)
    db.commit()
    db.refresh(product)

    logger.info(f"Product created: {product.sku} by {current_user.id}", extra={"vendor_id": vendor.id})

    return product


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    product_data: ProductUpdate,
    current_user: User = Depends(require_module("products")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    product = _load_product(db, vendor, product_id)

    update_data = product_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(product, field, value)
    product.sync_stock_status()

    db.commit()
    db.refresh(product)

    logger.info(f"Product updated: {product.id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return product


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: str,
    current_user: User = Depends(require_module("products")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Delete a product.

    Order lines keep their name/price snapshot; product_id is nulled.
    """
    product = _load_product(db, vendor, product_id)

    db.query(StoreOrderItem).filter(StoreOrderItem.product_id == product.id).update(
        {StoreOrderItem.product_id: None}, synchronize_session=False
    )
    db.delete(product)
    db.commit()

    logger.info(f"Product deleted: {product_id} by {current_user.id}", extra={"vendor_id": vendor.id})

    return None


# --------------------------------------------------------------- orders


@router.get("/orders", response_model=StoreOrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, pattern="^(pending|confirmed|processing|shipped|delivered|cancelled)$"),
    payment_status: Optional[str] = Query(None, pattern="^(pending|paid|refunded)$"),
    current_user: User = Depends(require_module("orders")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    query = db.query(StoreOrder).filter(StoreOrder.vendor_id == vendor.id)

    if status:
        query = query.filter(StoreOrder.status == status)
    if payment_status:
        query = query.filter(StoreOrder.payment_status == payment_status)

    orders, total = paginate(query.order_by(StoreOrder.created_at.desc()), page, page_size)

    return StoreOrderListResponse(orders=orders, total=total, page=page, page_size=page_size)


@router.get("/orders/{order_id}", response_model=StoreOrderResponse)
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


@router.post("/orders", response_model=StoreOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: StoreOrderCreate,
    current_user: User = Depends(require_module_or_customer("orders")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Place an order.

    BUSINESS LOGIC:
    - every product must belong to this vendor, be on sale and in stock
    - stock is decremented; products reaching zero become out_of_stock
    - total = subtotal + tax + shipping - discount, never negative
    """
    quantities: Dict[str, int] = {}
    for line in order_data.items:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

    order = StoreOrder(
        vendor_id=vendor.id,
        customer_id=current_user.id if current_user.role == UserRole.CUSTOMER else None,
        order_number=generate_reference("ORD"),
        customer_name=order_data.customer_name or (
            current_user.full_name if current_user.role == UserRole.CUSTOMER else None
        ),
        customer_email=order_data.customer_email,
        customer_phone=order_data.customer_phone,
        tax=order_data.tax,
        shipping=order_data.shipping,
        discount=order_data.discount,
        status=OrderStatus.PENDING.value,
        payment_method=order_data.payment_method,
        notes=order_data.notes,
    )

    subtotal = 0.0
    for product_id, quantity in quantities.items():
        product = _load_product(db, vendor, product_id)
        if product.status == ProductStatus.INACTIVE.value:
            raise InvalidInputError(f"{product.name} is not on sale")
        if product.stock < quantity:
            raise ConflictError(f"Insufficient stock for {product.name}: {product.stock} left")

        line_total = round(product.price * quantity, 2)
        order.items.append(StoreOrderItem(
            product_id=product.id,
            name=product.name,
            quantity=quantity,
            price=product.price,
            total=line_total,
        ))
        subtotal += line_total

        product.stock -= quantity
        product.sync_stock_status()

    order.subtotal = round(subtotal, 2)
    order.total = round(subtotal + order_data.tax + order_data.shipping - order_data.discount, 2)
    if order.total < 0:
        raise InvalidInputError("Discount exceeds the order amount")

    db.add(order)
    db.commit()
    db.refresh(order)

    logger.info(
        f"Store order created: {order.order_number} total={order.total}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return order


@router.patch("/orders/{order_id}", response_model=StoreOrderResponse)
async def update_order_status(
    order_id: str,
    update: StoreOrderStatusUpdate,
    current_user: User = Depends(require_module_or_customer("orders")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """Advance an order; cancelling puts the stock back on the shelf."""
    order = _load_order(db, vendor, order_id)
    update_data = update.model_dump(exclude_unset=True)

    if current_user.role == UserRole.CUSTOMER:
        if order.customer_id != current_user.id:
            raise RecordNotFoundError("Order", order_id)
        if set(update_data) != {"status"} or update_data["status"] != OrderStatus.CANCELLED.value:
            raise PermissionDenied("Customers can only cancel their orders")

    new_status = update_data.pop("status", None)
    if new_status and new_status != order.status:
        if new_status not in ORDER_TRANSITIONS[order.status]:
            raise InvalidInputError(f"Cannot change order from {order.status} to {new_status}")

        if new_status == OrderStatus.CANCELLED.value:
            for item in order.items:
                if item.product_id is None:
                    continue
                product = db.get(Product, item.product_id)
                if product is not None:
                    product.stock += item.quantity
                    product.sync_stock_status()
        order.status = new_status

    for field, value in update_data.items():
        setattr(order, field, value)

    db.commit()
    db.refresh(order)

    logger.info(
        f"Store order {order.order_number} now {order.status}/{order.payment_status}",
        extra={"vendor_id": vendor.id, "user_id": current_user.id}
    )

    return order


# ------------------------------------------------------------ customers


@router.get("/customers", response_model=CustomerBookResponse)
async def list_customers(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    sort: str = Query("recent", pattern=f"^({'|'.join(analytics.CUSTOMER_SORTS)})$"),
    current_user: User = Depends(require_module("customers")),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    """
    Everyone who has ordered from this store.

    The book is derived from orders; there is no separate customer table.
    Loyalty points are 10% of what the customer has spent.
    """
    # PERFORMANCE NOTE: the book is built from every order of the vendor
    orders = db.query(StoreOrder).filter(StoreOrder.vendor_id == vendor.id).all()
    rows = analytics.customer_book(orders, lambda o: o.total, search=search, sort=sort)

    start = (page - 1) * page_size
    return CustomerBookResponse(
        customers=rows[start:start + page_size],
        total=len(rows),
        page=page,
        page_size=page_size,
    )


# ------------------------------------------------------------- payments


def _order_payment(order: StoreOrder) -> dict:
    return {
        "id": order.id,
        "source": "store_order",
        "reference": order.order_number,
        "customer_id": order.customer_id,
        "customer_name": order.customer_name or "Walk-in customer",
        "customer_phone": order.customer_phone,
        "description": f"{len(order.items)} item(s)",
        "amount": order.total,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "record_status": order.status,
        "created_at": order.created_at,
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
    """Payments taken against orders. Zero-value orders are left out."""
    query = db.query(StoreOrder).filter(
        StoreOrder.vendor_id == vendor.id,
        StoreOrder.total > 0
    )

    if payment_status:
        query = query.filter(StoreOrder.payment_status == payment_status)
    if payment_method:
        query = query.filter(StoreOrder.payment_method == payment_method)
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            StoreOrder.order_number.ilike(pattern)
            | StoreOrder.customer_name.ilike(pattern)
            | StoreOrder.customer_phone.ilike(pattern)
        )
    if date_from:
        query = query.filter(StoreOrder.created_at >= naive_utc(date_from))
    if date_to:
        query = query.filter(StoreOrder.created_at <= naive_utc(date_to))

    # PERFORMANCE NOTE: the summary loads every matching order
    summary = analytics.payment_summary(query.all(), lambda o: o.total)
    orders, total = paginate(query.order_by(StoreOrder.created_at.desc()), page, page_size)

    return PaymentListResponse(
        payments=[_order_payment(o) for o in orders],
        summary=summary,
        total=total,
        page=page,
        page_size=page_size,
        currency=vendor.currency,
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def store_dashboard(
    current_user: User = Depends(get_vendor_user),
    vendor: Vendor = Depends(get_current_vendor),
    db: Session = Depends(get_db)
):
    now = datetime.utcnow()
    products = db.query(Product).filter(Product.vendor_id == vendor.id).all()
    orders = db.query(StoreOrder).filter(StoreOrder.vendor_id == vendor.id).all()

    result = analytics.store_dashboard(products, orders, now, low_stock_threshold=settings.LOW_STOCK_THRESHOLD)
    return DashboardResponse(**result, currency=vendor.currency, generated_at=now)
