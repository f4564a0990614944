from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum


class Plan(str, Enum):
    STARTER = "STARTER"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"


class BillingInterval(str, Enum):
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    PAST_DUE = "PAST_DUE"
    INCOMPLETE = "INCOMPLETE"
    TRIALING = "TRIALING"


class InvoiceStatus(str, Enum):
    PAID = "PAID"
    PENDING = "PENDING"
    FAILED = "FAILED"
    VOID = "VOID"


class Subscription(BaseModel):
    id: str
    organization_id: str
    plan: Plan
    interval: BillingInterval
    status: SubscriptionStatus
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None


class Invoice(BaseModel):
    id: str
    stripe_invoice_id: str
    amount: int
    currency: str
    status: InvoiceStatus
    invoice_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CheckoutRequest(BaseModel):
    plan: str
    interval: str


class CheckoutResponse(BaseModel):
    url: str
    session_id: str


class PortalResponse(BaseModel):
    url: str
