# tenant_billing/db/models/tier.py
from sqlalchemy import Column, String, Integer, Boolean, Numeric, Uuid
import uuid
from tenant_billing.db.base import BaseModel


class Tier(BaseModel):
    """Subscription plan for one country. -1 in a limit column means unlimited."""
    __tablename__ = "subscription_tiers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(100), nullable=False)
    country = Column(String(2), nullable=False, index=True)
    currency = Column(String(3), nullable=False)
    monthly_price = Column(Numeric(10, 2), nullable=False, default=0)

    # Limits
    product_limit = Column(Integer, nullable=False, default=-1)
    order_limit_per_month = Column(Integer, nullable=False, default=-1)
    storage_limit_mb = Column(Integer, nullable=False, default=-1)

    # Billing cycle
    plan_days = Column(Integer, nullable=False, default=30)
    overdue_grace_days = Column(Integer, nullable=True)

    # Catalog
    tier_order = Column(Integer, nullable=False, default=0)
    is_trial = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Tier {self.name} {self.country} {self.monthly_price} {self.currency}>"
