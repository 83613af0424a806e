"""
Enforcement Gate

Answers "may this tenant do X now?" from its tier limits, its live usage and
its effective subscription status. Read checks are advisory; the slot context
managers repeat the check under the tenant's row lock so the insert that
follows cannot push the tenant past its limit.
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from tenant_billing.core.config import settings
from tenant_billing.core.constants import ORDER_BLOCKING_STATUSES, SubscriptionStatus
from tenant_billing.core.exceptions import LimitExceeded, NotFound, SubscriptionInactive
from tenant_billing.db.base import utcnow
from tenant_billing.db.models.tenant import Tenant
from tenant_billing.db.repositories.tenant_repository import TenantRepository
from tenant_billing.services.lifecycle import effective_state
from tenant_billing.services.tier_catalog import TierCatalog, is_unlimited
from tenant_billing.services.usage_service import BYTES_PER_MB, UsageCounters

logger = logging.getLogger(__name__)

PRODUCTS = "products"
ORDERS = "orders"
STORAGE = "storage"


def limit_decision(limit: int, current_count: int, tier_name: str) -> Dict[str, Any]:
    """Allow/deny for a counted resource against one limit"""
    unlimited = is_unlimited(limit)
    return {
        "allowed": unlimited or current_count < limit,
        "limit": limit,
        "current_count": current_count,
        "remaining": None if unlimited else max(0, limit - current_count),
        "unlimited": unlimited,
        "tier_name": tier_name,
    }


def order_blocking_statuses() -> frozenset:
    if settings.PAUSED_BLOCKS_ORDERS:
        return ORDER_BLOCKING_STATUSES | {SubscriptionStatus.PAUSED}
    return ORDER_BLOCKING_STATUSES


class EnforcementService:
    """
    Tier-limit and subscription-status checks for the tenant's catalogue,
    order and storage flows.

    Every decision is computed from live counts; nothing is cached between
    calls.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.tenants = TenantRepository(session)
        self.catalog = TierCatalog(session)
        self.counters = UsageCounters(session)

    async def _tenant(self, tenant_id: str) -> Tenant:
        tenant = await self.tenants.get_by_id(tenant_id, refresh=True)
        if tenant is None:
            raise NotFound("Tenant", tenant_id)
        return tenant

    async def _locked_tenant(self, tenant_id: str) -> Tenant:
        tenant = await self.tenants.get_for_update(tenant_id)
        if tenant is None:
            raise NotFound("Tenant", tenant_id)
        return tenant

    # ==================== Read checks ====================

    async def can_add_product(self, tenant_id: str) -> Dict[str, Any]:
        """
        Check the tenant's active product count against its tier.

        Returns:
        {
            "allowed": false,
            "limit": 10,
            "current_count": 10,
            "remaining": 0,
            "unlimited": false,
            "tier_name": "Basic"
        }
        """
        tenant = await self._tenant(tenant_id)
        return await self._product_decision(tenant)

    async def can_add_order_this_month(
        self,
        tenant_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Same shape as can_add_product, against the monthly order limit"""
        tenant = await self._tenant(tenant_id)
        return await self._order_decision(tenant, now or utcnow())

    async def can_process_orders(
        self,
        tenant_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Whether the tenant's subscription lets it accept and fulfil orders.

        Returns:
        {
            "allowed": false,
            "status": "OVERDUE",
            "reason": "Subscription is OVERDUE; settle the outstanding invoice"
        }
        """
        tenant = await self._tenant(tenant_id)
        return self._processing_decision(tenant, now or utcnow())

    async def ensure_can_process_orders(self, tenant_id: str, now: Optional[datetime] = None) -> None:
        """Raise SubscriptionInactive unless the tenant may process orders"""
        decision = await self.can_process_orders(tenant_id, now)
        if not decision["allowed"]:
            raise SubscriptionInactive(tenant_id, decision["status"])

    async def can_store_file(self, tenant_id: str, size_bytes: int = 0) -> Dict[str, Any]:
        """
        Whether a file of `size_bytes` fits in the tenant's storage allowance.

        Returns:
        {
            "allowed": true,
            "limit_mb": 100,
            "used_mb": 42.5,
            "requested_mb": 1.2,
            "remaining_mb": 57.5,
            "unlimited": false,
            "tier_name": "Trial"
        }
        """
        tenant = await self._tenant(tenant_id)
        limits = await self.catalog.limits_for(tenant)
        used_mb = await self.counters.storage_used_mb(tenant_id)
        requested_mb = round(max(size_bytes, 0) / BYTES_PER_MB, 2)
        limit_mb = limits.storage_limit_mb
        unlimited = is_unlimited(limit_mb)

        allowed = unlimited or used_mb + max(size_bytes, 0) / BYTES_PER_MB <= limit_mb
        if not allowed:
            logger.info(
                f"Storage denied: tenant={tenant_id}, used={used_mb}MB, "
                f"requested={requested_mb}MB, limit={limit_mb}MB",
                extra={"tenant_id": tenant_id},
            )

        return {
            "allowed": allowed,
            "limit_mb": limit_mb,
            "used_mb": used_mb,
            "requested_mb": requested_mb,
            "remaining_mb": None if unlimited else max(0.0, round(limit_mb - used_mb, 2)),
            "unlimited": unlimited,
            "tier_name": limits.tier_name,
        }

    # ==================== Commit-time guards ====================

    @asynccontextmanager
    async def product_slot(self, tenant_id: str) -> AsyncIterator[Tenant]:
        """
        Reserve room for one more product.

        The caller inserts the product inside the block; the transaction
        commits on a clean exit and rolls back otherwise.

            async with gate.product_slot("biz-1"):
                session.add(Product(tenant_id="biz-1", name="Tea"))
        """
        try:
            tenant = await self._locked_tenant(tenant_id)
            decision = await self._product_decision(tenant)
            if not decision["allowed"]:
                raise LimitExceeded(tenant_id, PRODUCTS, decision["limit"], decision["current_count"])
            yield tenant
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    @asynccontextmanager
    async def order_slot(self, tenant_id: str, now: Optional[datetime] = None) -> AsyncIterator[Tenant]:
        """Reserve room for one more order this month; also requires an order-processing subscription"""
        now = now or utcnow()
        try:
            tenant = await self._locked_tenant(tenant_id)
            processing = self._processing_decision(tenant, now)
            if not processing["allowed"]:
                raise SubscriptionInactive(tenant_id, processing["status"])
            decision = await self._order_decision(tenant, now)
            if not decision["allowed"]:
                raise LimitExceeded(tenant_id, ORDERS, decision["limit"], decision["current_count"])
            yield tenant
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    # ==================== Internals ====================

    async def _product_decision(self, tenant: Tenant) -> Dict[str, Any]:
        limits = await self.catalog.limits_for(tenant)
        count = await self.counters.product_count(tenant.id)
        decision = limit_decision(limits.product_limit, count, limits.tier_name)
        if not decision["allowed"]:
            logger.info(
                f"Product limit reached: tenant={tenant.id}, {count}/{limits.product_limit}",
                extra={"tenant_id": tenant.id},
            )
        return decision

    async def _order_decision(self, tenant: Tenant, now: datetime) -> Dict[str, Any]:
        limits = await self.catalog.limits_for(tenant)
        count = await self.counters.orders_this_month(tenant.id, now)
        decision = limit_decision(limits.order_limit_per_month, count, limits.tier_name)
        if not decision["allowed"]:
            logger.info(
                f"Monthly order limit reached: tenant={tenant.id}, {count}/{limits.order_limit_per_month}",
                extra={"tenant_id": tenant.id},
            )
        return decision

    def _processing_decision(self, tenant: Tenant, now: datetime) -> Dict[str, Any]:
        status = effective_state(tenant, now).status
        if status in order_blocking_statuses():
            if status == SubscriptionStatus.PAUSED:
                reason = "Subscription is PAUSED; resume it to accept orders"
            elif status == SubscriptionStatus.CANCELLED:
                reason = "Subscription is CANCELLED"
            else:
                reason = f"Subscription is {status.value}; settle the outstanding invoice"
            logger.info(
                f"Order processing blocked: tenant={tenant.id}, status={status.value}",
                extra={"tenant_id": tenant.id},
            )
            return {"allowed": False, "status": status, "reason": reason}
        return {"allowed": True, "status": status, "reason": None}
