# tenant_billing/schemas/subscription.py
from pydantic import BaseModel, Field, UUID4, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from tenant_billing.core.constants import InvoiceStatus, InvoiceType, ReviewDecision, SubscriptionStatus


class TierBase(BaseModel):
    name: str
    country: str
    currency: str
    monthly_price: Decimal
    product_limit: int
    order_limit_per_month: int
    storage_limit_mb: int
    plan_days: int


class Tier(TierBase):
    id: UUID4
    tier_order: int
    is_trial: bool
    is_active: bool

    class Config:
        from_attributes = True


class StartTrialRequest(BaseModel):
    tenant_id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    country: str = Field(..., min_length=2, max_length=2)

    @field_validator("country")
    @classmethod
    def upper_country(cls, v: str) -> str:
        return v.upper()


class TierChangeRequest(BaseModel):
    tier_id: UUID4
    reset_billing_period: bool = False


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class PaymentProofRequest(BaseModel):
    receipt_ref: str


class ReviewRequest(BaseModel):
    decision: ReviewDecision
    reason: Optional[str] = None


class Invoice(BaseModel):
    id: UUID4
    invoice_number: str
    tenant_id: str
    tier_id: UUID4
    previous_tier_id: Optional[UUID4] = None
    invoice_type: InvoiceType
    amount: Decimal
    currency: str
    status: InvoiceStatus
    receipt_ref: Optional[str] = None
    submission_date: Optional[datetime] = None
    review_date: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    due_date: datetime
    billing_period_start: Optional[datetime] = None
    billing_period_end: Optional[datetime] = None
    resets_billing_period: bool
    created_at: datetime

    class Config:
        from_attributes = True


class Subscription(BaseModel):
    """Lifecycle view of one tenant; derived fields are computed per request"""
    tenant_id: str
    name: str
    country: str
    status: SubscriptionStatus
    tier: Optional[Tier] = None
    trial_ends_at: Optional[datetime] = None
    subscription_starts_at: Optional[datetime] = None
    subscription_ends_at: Optional[datetime] = None
    trial_days_remaining: int
    subscription_days_remaining: int
    ending_soon: bool
    urgent: bool
    overdue_since: Optional[datetime] = None
    grace_ends_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    pending_invoices: List[Invoice] = []

    class Config:
        from_attributes = True


class LimitCheck(BaseModel):
    allowed: bool
    limit: int
    current_count: int
    remaining: Optional[int] = None
    unlimited: bool
    tier_name: str


class StorageCheck(BaseModel):
    allowed: bool
    limit_mb: int
    used_mb: float
    requested_mb: float
    remaining_mb: Optional[float] = None
    unlimited: bool
    tier_name: str


class OrderProcessingCheck(BaseModel):
    allowed: bool
    status: SubscriptionStatus
    reason: Optional[str] = None


class SweepResult(BaseModel):
    trial_conversion_invoices: int
    renewal_invoices: int
    overdue_updates: int
    suspended: int
    errors: List[str] = []
