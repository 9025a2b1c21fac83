"""
Store Schemas
"""
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime

ORDER_STATUS_PATTERN = "^(pending|confirmed|processing|shipped|delivered|cancelled)$"


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    sku: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., gt=0)
    cost: Optional[float] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    min_stock: int = Field(0, ge=0)
    featured: bool = False


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    price: Optional[float] = Field(None, gt=0)
    cost: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")
    featured: Optional[bool] = None


class ProductResponse(ProductBase):
    id: str
    vendor_id: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class ProductListResponse(BaseModel):
    products: list[ProductResponse]
    total: int
    page: int
    page_size: int


class OrderLineIn(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class StoreOrderCreate(BaseModel):
    items: List[OrderLineIn] = Field(..., min_length=1)
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(None, max_length=50)
    tax: float = Field(0.0, ge=0)
    shipping: float = Field(0.0, ge=0)
    discount: float = Field(0.0, ge=0)
    payment_method: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None


class StoreOrderStatusUpdate(BaseModel):
    status: Optional[str] = Field(None, pattern=ORDER_STATUS_PATTERN)
    payment_status: Optional[str] = Field(None, pattern="^(pending|paid|refunded)$")


class OrderLineResponse(BaseModel):
    product_id: Optional[str]
    name: str
    quantity: int
    price: float
    total: float

    class Config:
        from_attributes = True


class StoreOrderResponse(BaseModel):
    id: str
    vendor_id: str
    customer_id: Optional[str]
    order_number: str
    customer_name: Optional[str]
    customer_email: Optional[str]
    customer_phone: Optional[str]
    items: List[OrderLineResponse]
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    status: str
    payment_status: str
    payment_method: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class StoreOrderListResponse(BaseModel):
    orders: list[StoreOrderResponse]
    total: int
    page: int
    page_size: int
