# tenant_billing/db/models/invoice.py
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Numeric, Text, ForeignKey, Uuid,
    CheckConstraint, Index, text,
)
from sqlalchemy.orm import relationship
import uuid
from tenant_billing.db.base import Base, BaseModel

_OPEN_STATUSES = "status IN ('PENDING', 'SUBMITTED', 'UNDER_REVIEW')"


class Invoice(BaseModel):
    """
    Money owed for one billing event.

    A rejected invoice is resubmitted in place, so the row id is stable for
    the whole billing cycle. The partial unique index keeps at most one open
    invoice per tenant even when two requests race past the service check.
    """
    __tablename__ = "payment_invoices"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'SUBMITTED', 'UNDER_REVIEW', 'APPROVED', 'REJECTED')",
            name="payment_invoices_status_check",
        ),
        CheckConstraint(
            "invoice_type IN ('TRIAL_CONVERSION', 'RENEWAL', 'UPGRADE', 'DOWNGRADE')",
            name="payment_invoices_invoice_type_check",
        ),
        Index(
            "uq_payment_invoices_open_per_tenant",
            "tenant_id",
            unique=True,
            postgresql_where=text(_OPEN_STATUSES),
            sqlite_where=text(_OPEN_STATUSES),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    invoice_number = Column(String(32), unique=True, nullable=False)
    tenant_id = Column(String(100), ForeignKey("tenants.id"), nullable=False, index=True)
    tier_id = Column(Uuid(as_uuid=True), ForeignKey("subscription_tiers.id"), nullable=False)
    previous_tier_id = Column(Uuid(as_uuid=True), ForeignKey("subscription_tiers.id"), nullable=True)

    invoice_type = Column(String(20), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default="PENDING", index=True)

    # Payment proof
    receipt_ref = Column(String(1024), nullable=True)
    submission_date = Column(DateTime, nullable=True)

    # Review
    review_date = Column(DateTime, nullable=True)
    reviewed_by = Column(String(100), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Billing period
    due_date = Column(DateTime, nullable=False, index=True)
    billing_period_start = Column(DateTime, nullable=True)
    billing_period_end = Column(DateTime, nullable=True)
    resets_billing_period = Column(Boolean, nullable=False, default=False)

    # Relationships
    tier = relationship("Tier", foreign_keys=[tier_id], lazy="joined")


class InvoiceSequence(Base):
    """Named counter backing invoice numbers. Incremented under a row lock."""
    __tablename__ = "invoice_sequences"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
