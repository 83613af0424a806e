# tenant_billing/db/repositories/usage_repository.py
from datetime import datetime
from typing import Iterable
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.db.models.catalog import Product, Order, StoredFile


class UsageRepository:
    """Counting queries over the tenant's product, order and file records"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def count_active_products(self, tenant_id: str) -> int:
        result = await self.session.execute(
            select(func.count(Product.id))
            .where(Product.tenant_id == tenant_id)
            .where(Product.is_active.is_(True))
        )
        return result.scalar() or 0

    async def count_orders_between(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
        excluded_statuses: Iterable[str] = (),
    ) -> int:
        query = (
            select(func.count(Order.id))
            .where(Order.tenant_id == tenant_id)
            .where(Order.created_at >= start)
            .where(Order.created_at < end)
        )
        excluded = [getattr(s, "value", s) for s in excluded_statuses]
        if excluded:
            query = query.where(Order.status.not_in(excluded))
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def sum_storage_bytes(self, tenant_id: str) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(StoredFile.size_bytes), 0))
            .where(StoredFile.tenant_id == tenant_id)
        )
        return int(result.scalar() or 0)
