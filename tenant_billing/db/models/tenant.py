# tenant_billing/db/models/tenant.py
from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, Uuid, CheckConstraint
from sqlalchemy.orm import relationship
from tenant_billing.db.base import BaseModel


class Tenant(BaseModel):
    """
    A business whose access is governed by its subscription.

    `status` holds the last stored lifecycle state. Time-based transitions
    (trial/subscription expiry, grace window) are derived on read and only
    written back by explicit commands or the sweep.
    """
    __tablename__ = "tenants"
    __table_args__ = (
        CheckConstraint(
            "status IN ('TRIAL', 'ACTIVE', 'OVERDUE', 'SUSPENDED', 'PAUSED', 'CANCELLED')",
            name="tenants_status_check",
        ),
    )

    id = Column(String(100), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    country = Column(String(2), nullable=False, index=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default="TRIAL", index=True)
    current_tier_id = Column(Uuid(as_uuid=True), ForeignKey("subscription_tiers.id"), nullable=True)
    trial_ends_at = Column(DateTime, nullable=True)
    subscription_starts_at = Column(DateTime, nullable=True)
    subscription_ends_at = Column(DateTime, nullable=True)
    overdue_since = Column(DateTime, nullable=True)
    paused_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Bumped on every transition; writers compare-and-swap on it
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    current_tier = relationship("Tier", lazy="joined")
