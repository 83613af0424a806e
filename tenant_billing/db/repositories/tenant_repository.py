# tenant_billing/db/repositories/tenant_repository.py
from typing import Iterable, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.db.base import utcnow
from tenant_billing.db.models.tenant import Tenant
from tenant_billing.db.repositories.base import BaseRepository


class TenantRepository(BaseRepository[Tenant]):
    """Repository for Tenant operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Tenant, session)

    async def get_by_id(self, tenant_id: str, refresh: bool = False) -> Optional[Tenant]:
        """Get tenant by ID"""
        return await self.get(tenant_id, refresh=refresh)

    async def get_for_update(self, tenant_id: str) -> Optional[Tenant]:
        """
        Load a tenant holding its row lock until the transaction ends.

        Serialises check-then-insert sequences per tenant on PostgreSQL;
        SQLite already serialises writers.
        """
        result = await self.session.execute(
            select(Tenant)
            .where(Tenant.id == tenant_id)
            .with_for_update(of=Tenant)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalar_one_or_none()

    async def transition(self, tenant: Tenant, values: dict) -> bool:
        """
        Apply a lifecycle change conditioned on the status and version read.

        Returns False if the tenant changed since it was loaded.
        """
        return await self.compare_and_set(
            tenant.id,
            [Tenant.status == tenant.status, Tenant.version == tenant.version],
            {**values, "version": tenant.version + 1, "updated_at": utcnow()},
        )

    async def list_by_status(self, statuses: Iterable[str]) -> List[Tenant]:
        """Tenants whose stored status is one of `statuses`"""
        result = await self.session.execute(
            select(Tenant)
            .where(Tenant.status.in_([getattr(s, "value", s) for s in statuses]))
            .order_by(Tenant.id)
        )
        return list(result.unique().scalars().all())
