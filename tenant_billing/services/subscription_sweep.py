"""
Subscription sweep.

Periodic housekeeping run by the worker. Reads never depend on it: the
lifecycle is derived lazily, the sweep only issues conversion and renewal
invoices ahead of time and stores the statuses reads already report.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.config import settings
from tenant_billing.core.constants import (
    ACTIONABLE_INVOICE_STATUSES,
    CONVERTIBLE_STATUSES,
    ELAPSING_STATUSES,
    RENEWABLE_STATUSES,
    SubscriptionStatus,
)
from tenant_billing.core.exceptions import BillingError
from tenant_billing.db.base import utcnow
from tenant_billing.db.models.tenant import Tenant
from tenant_billing.db.repositories.invoice_repository import InvoiceRepository
from tenant_billing.db.repositories.tenant_repository import TenantRepository
from tenant_billing.services.invoice_service import InvoiceService
from tenant_billing.services.lifecycle import effective_state
from tenant_billing.services.subscription_service import SubscriptionService
from tenant_billing.services.tier_catalog import TierCatalog

logger = logging.getLogger(__name__)


class SubscriptionSweeper:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.tenants = TenantRepository(session)
        self.invoices = InvoiceRepository(session)
        self.invoice_service = InvoiceService(session)
        self.subscriptions = SubscriptionService(session)
        self.catalog = TierCatalog(session)

    async def run(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        One sweep pass at `now`.

        Returns:
        {
            "trial_conversion_invoices": 1,
            "renewal_invoices": 2,
            "overdue_updates": 1,
            "suspended": 0,
            "errors": ["biz-7: Tenant biz-7 changed while ..."]
        }
        """
        now = now or utcnow()
        results: Dict[str, Any] = {
            "trial_conversion_invoices": 0,
            "renewal_invoices": 0,
            "overdue_updates": 0,
            "suspended": 0,
            "errors": [],
        }

        convertible = await self.tenants.list_by_status(CONVERTIBLE_STATUSES)
        for tenant_id in [t.id for t in convertible if t.current_tier_id is None]:
            try:
                if await self._convert(tenant_id, now):
                    results["trial_conversion_invoices"] += 1
            except BillingError as e:
                logger.warning(f"Conversion skipped for {tenant_id}: {e.message}", extra={"tenant_id": tenant_id})
                results["errors"].append(f"{tenant_id}: {e.message}")

        renewable = await self.tenants.list_by_status(RENEWABLE_STATUSES)
        for tenant_id in [t.id for t in renewable]:
            try:
                if await self._renew(tenant_id, now):
                    results["renewal_invoices"] += 1
            except BillingError as e:
                logger.warning(f"Renewal skipped for {tenant_id}: {e.message}", extra={"tenant_id": tenant_id})
                results["errors"].append(f"{tenant_id}: {e.message}")

        elapsing = await self.tenants.list_by_status(ELAPSING_STATUSES)
        for tenant_id in [t.id for t in elapsing]:
            try:
                stored = await self.subscriptions.apply_elapsed_time(tenant_id, now)
            except BillingError as e:
                logger.warning(f"Status update skipped for {tenant_id}: {e.message}", extra={"tenant_id": tenant_id})
                results["errors"].append(f"{tenant_id}: {e.message}")
                continue
            if stored == SubscriptionStatus.OVERDUE:
                results["overdue_updates"] += 1
            elif stored == SubscriptionStatus.SUSPENDED:
                results["suspended"] += 1

        logger.info(
            f"Subscription sweep: conversions={results['trial_conversion_invoices']}, "
            f"renewals={results['renewal_invoices']}, "
            f"overdue={results['overdue_updates']}, suspended={results['suspended']}, "
            f"errors={len(results['errors'])}"
        )
        return results

    async def _convert(self, tenant_id: str, now: datetime) -> bool:
        tenant = await self.tenants.get_by_id(tenant_id, refresh=True)
        if tenant is None or not self._needs_conversion(tenant, now):
            return False
        if await self.invoices.list_for_tenant(tenant_id, statuses=ACTIONABLE_INVOICE_STATUSES, limit=1):
            return False
        if await self.catalog.entry_tier(tenant.country) is None:
            logger.debug(f"No paid tier to convert {tenant_id} to", extra={"tenant_id": tenant_id})
            return False

        await self.invoice_service.issue_trial_conversion_invoice(tenant_id, now=now)
        return True

    @staticmethod
    def _needs_conversion(tenant: Tenant, now: datetime) -> bool:
        if tenant.current_tier_id is not None:
            return False
        status = effective_state(tenant, now).status
        if status == SubscriptionStatus.TRIAL:
            lead = timedelta(days=settings.TRIAL_CONVERSION_LEAD_DAYS)
            return tenant.trial_ends_at is not None and tenant.trial_ends_at - now <= lead
        return status in CONVERTIBLE_STATUSES

    async def _renew(
self, tenant_id: str, now: datetime) -> bool:
        tenant = await self.tenants.get_by_id(tenant_id, refresh=True)
        if tenant is None or not self._needs_renewal(tenant, now):
            return False

        status = effective_state(tenant, now).status
        if status == SubscriptionStatus.ACTIVE:
            if await self.invoices.get_open_for_tenant(tenant_id) is not None:
                return False
        elif await self.invoices.list_for_tenant(tenant_id, statuses=ACTIONABLE_INVOICE_STATUSES, limit=1):
            # Lapsed tenants keep paying the invoice they already hold
            return False

        await self.invoice_service.issue_renewal_invoice(tenant_id, now)
        return True

    @staticmethod
    def _needs_renewal(tenant: Tenant, now: datetime) -> bool:
        if tenant.current_tier_id is None:
            return False
        status = effective_state(tenant, now).status
        if status == SubscriptionStatus.ACTIVE:
            lead = timedelta(days=settings.RENEWAL_INVOICE_LEAD_DAYS)
            return tenant.subscription_ends_at is not None and tenant.subscription_ends_at - now <= lead
        return status in RENEWABLE_STATUSES


async def run_subscription_sweep(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    return await SubscriptionSweeper(session).run(now)
