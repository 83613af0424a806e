# tenant_billing/db/repositories/tier_repository.py
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.db.models.tier import Tier
from tenant_billing.db.repositories.base import BaseRepository


class TierRepository(BaseRepository[Tier]):
    """Read-only access to the subscription tier catalog"""

    def __init__(self, session: AsyncSession):
        super().__init__(Tier, session)

    async def list_for_country(self, country: str, include_inactive: bool = False) -> List[Tier]:
        query = select(Tier).where(Tier.country == country.upper())
        if not include_inactive:
            query = query.where(Tier.is_active.is_(True))
        query = query.order_by(Tier.tier_order, Tier.monthly_price, Tier.name)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_trial_tier(self, country: str) -> Optional[Tier]:
        """The active free trial tier for a country, if the catalog defines one"""
        result = await self.session.execute(
            select(Tier)
            .where(Tier.country == country.upper())
            .where(Tier.is_trial.is_(True))
            .where(Tier.is_active.is_(True))
            .order_by(Tier.tier_order)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_cheapest_paid_tier(self, country: str) -> Optional[Tier]:
        """Lowest-priced active paid tier for a country"""
        result = await self.session.execute(
            select(Tier)
            .where(Tier.country == country.upper())
            .where(Tier.is_trial.is_(False))
            .where(Tier.is_active.is_(True))
            .order_by(Tier.monthly_price, Tier.tier_order, Tier.name)
            .limit(1)
        )
        return result.scalar_one_or_none()
