"""
Usage Counters.

Consumption is derived from the tenant's records on every call and never
cached beyond a single enforcement check.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.constants import UNCOUNTED_ORDER_STATUSES
from tenant_billing.db.base import utcnow
from tenant_billing.db.repositories.usage_repository import UsageRepository
from tenant_billing.services.lifecycle import current_month_bounds

BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class UsageSnapshot:
    product_count: int
    orders_this_month: int
    storage_used_mb: float


class UsageCounters:
    def __init__(self, session: AsyncSession):
        self.usage = UsageRepository(session)

    async def product_count(self, tenant_id: str) -> int:
        return await self.usage.count_active_products(tenant_id)

    async def orders_this_month(self, tenant_id: str, now: Optional[datetime] = None) -> int:
        """Orders created this calendar month, excluding cancelled and returned ones"""
        start, end = current_month_bounds(now or utcnow())
        return await self.usage.count_orders_between(
            tenant_id, start, end, excluded_statuses=UNCOUNTED_ORDER_STATUSES
        )

    async def storage_used_mb(self, tenant_id: str) -> float:
        total_bytes = await self.usage.sum_storage_bytes(tenant_id)
        return round(total_bytes / BYTES_PER_MB, 2)

    async def snapshot(self, tenant_id: str, now: Optional[datetime] = None) -> UsageSnapshot:
        return UsageSnapshot(
            product_count=await self.product_count(tenant_id),
            orders_this_month=await self.orders_this_month(tenant_id, now),
            storage_used_mb=await self.storage_used_mb(tenant_id),
        )
