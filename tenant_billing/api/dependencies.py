# tenant_billing/api/dependencies.py
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.tenant import Caller, ensure_tenant_access, get_caller
from tenant_billing.db.database import get_db
from tenant_billing.services.enforcement_service import EnforcementService
from tenant_billing.services.invoice_service import InvoiceService
from tenant_billing.services.subscription_service import SubscriptionService
from tenant_billing.services.tier_catalog import TierCatalog


async def get_subscription_service(db: AsyncSession = Depends(get_db)) -> SubscriptionService:
    return SubscriptionService(db)


async def get_invoice_service(db: AsyncSession = Depends(get_db)) -> InvoiceService:
    return InvoiceService(db)


async def get_enforcement_service(db: AsyncSession = Depends(get_db)) -> EnforcementService:
    return EnforcementService(db)


async def get_tier_catalog(db: AsyncSession = Depends(get_db)) -> TierCatalog:
    return TierCatalog(db)


async def tenant_caller(tenant_id: str, caller: Caller = Depends(get_caller)) -> Caller:
    """Caller allowed to act on the `tenant_id` path parameter"""
    ensure_tenant_access(caller, tenant_id)
    return caller
