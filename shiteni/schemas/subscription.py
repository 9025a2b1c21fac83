"""
Subscription Schemas

Plans, vendor subscriptions, billing history and the Lipila webhook body.
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime

from shiteni.models.subscription import BillingCycle, PlanType
from shiteni.models.vendor import ServiceType


class PlanBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: float = Field(..., gt=0)
    currency: str = "ZMW"
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    features: List[str] = []
    is_active: bool = True
    is_popular: bool = False
    sort_order: int = 0


class PlanCreate(PlanBase):
    """Limits left out fall back to the plan type defaults."""
    vendor_type: ServiceType
    plan_type: PlanType
    max_users: Optional[int] = Field(None, ge=-1)
    max_inventory_items: Optional[int] = Field(None, ge=-1)
    max_storage_gb: Optional[int] = Field(None, ge=-1)
    max_staff_accounts: Optional[int] = Field(None, ge=-1)


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    billing_cycle: Optional[BillingCycle] = None
    features: Optional[List[str]] = None
    max_users: Optional[int] = Field(None, ge=-1)
    max_inventory_items: Optional[int] = Field(None, ge=-1)
    max_storage_gb: Optional[int] = Field(None, ge=-1)
    max_staff_accounts: Optional[int] = Field(None, ge=-1)
    is_active: Optional[bool] = None
    is_popular: Optional[bool] = None
    sort_order: Optional[int] = None


class PlanResponse(PlanBase):
    id: str
    price: float
    vendor_type: ServiceType
    plan_type: str
    max_users: int
    max_inventory_items: int
    max_storage_gb: int
    max_staff_accounts: int
    created_at: datetime

    class Config:
        from_attributes = True


class PlanListResponse(BaseModel):
    plans: list[PlanResponse]
    total: int


class SubscriptionResponse(BaseModel):
    id: str
    vendor_id: str
    plan_id: Optional[str]
    pending_plan_id: Optional[str]
    plan_type: Optional[str]
    status: str
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    next_billing_date: Optional[datetime]
    billing_cycle: str
    amount: float
    currency: str
    payment_method: Optional[str]
    auto_renew: bool
    last_payment_date: Optional[datetime]
    lipila_transaction_id: Optional[str]

    class Config:
        from_attributes = True


class SubscriptionStatusResponse(BaseModel):
    """Dashboard subscription card."""
    has_active_subscription: bool
    subscription: Optional[SubscriptionResponse]
    plan: Optional[PlanResponse]
    pending_plan: Optional[PlanResponse]
    usage: Dict[str, int]
    days_remaining: Optional[int]


class CustomerInfo(BaseModel):
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None

    class Config:
        populate_by_name = True


class UpgradeRequest(BaseModel):
    plan_id: str = Field(..., alias="planId")
    payment_type: str = Field(..., alias="paymentType")
    customer_info: CustomerInfo = Field(default_factory=CustomerInfo, alias="customerInfo")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "planId": "b5d7c3de-2f0e-4c55-9f0e-1f0c8a3b6f11",
                "paymentType": "mobile_money",
                "customerInfo": {"phoneNumber": "0971234567", "fullName": "Mwila Banda"}
            }
        }


class UpgradeResponse(BaseModel):
    success: bool
    status: str
    message: str
    billing_record_id: Optional[str]
    invoice_number: Optional[str]
    transaction_id: Optional[str]
    external_id: Optional[str]
    redirect_url: Optional[str]
    subscription: SubscriptionResponse


class PaymentStatusResponse(BaseModel):
    transaction_id: str
    billing_status: str
    subscription_status: str
    invoice_number: str


class BillingRecordResponse(BaseModel):
    id: str
    invoice_number: str
    amount: float
    currency: str
    status: str
    billing_date: datetime
    due_date: Optional[datetime]
    payment_date: Optional[datetime]
    payment_method: Optional[str]
    description: Optional[str]
    plan_type: Optional[str]
    billing_cycle: Optional[str]
    lipila_transaction_id: Optional[str]

    class Config:
        from_attributes = True


class BillingHistoryResponse(BaseModel):
    records: list[BillingRecordResponse]
    total: int
    page: int
    page_size: int


class AdminSubscriptionItem(SubscriptionResponse):
    vendor_name: str
    service_type: ServiceType


class AdminSubscriptionListResponse(BaseModel):
    subscriptions: list[AdminSubscriptionItem]
    total: int
    page: int
    page_size: int


class LipilaWebhookPayload(BaseModel):
    """Gateway callback; fields are validated by hand to answer 400 instead of 422."""
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    status: Optional[str] = None
    external_id: Optional[str] = Field(None, alias="externalId")
    amount: Optional[float] = None
    currency: Optional[str] = None

    class Config:
        populate_by_name = True


class WebhookResponse(BaseModel):
    success: bool
    message: str
    transactionId: str
    status: str
    billingRecordId: str
