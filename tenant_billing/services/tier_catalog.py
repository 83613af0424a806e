"""Tier Catalog: read-only subscription plans scoped by country."""
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.config import settings
from tenant_billing.core.constants import UNLIMITED
from tenant_billing.core.exceptions import NotFound
from tenant_billing.db.models.tier import Tier
from tenant_billing.db.repositories.tier_repository import TierRepository


@dataclass(frozen=True)
class TierLimits:
    """Limits in force for one tenant. -1 means unlimited."""
    tier_id: Optional[UUID]
    tier_name: str
    product_limit: int
    order_limit_per_month: int
    storage_limit_mb: int


def default_trial_limits() -> TierLimits:
    return TierLimits(
        tier_id=None,
        tier_name="Trial",
        product_limit=settings.TRIAL_PRODUCT_LIMIT,
        order_limit_per_month=settings.TRIAL_ORDER_LIMIT,
        storage_limit_mb=settings.TRIAL_STORAGE_LIMIT_MB,
    )


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


class TierCatalog:
    """Lookups over the tier catalog. Tiers are never mutated here."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.tiers = TierRepository(session)

    async def list_tiers(self, country: str, include_inactive: bool = False) -> List[Tier]:
        return await self.tiers.list_for_country(country, include_inactive=include_inactive)

    async def get_tier(self, tier_id: UUID) -> Tier:
        tier = await self.tiers.get(tier_id)
        if tier is None:
            raise NotFound("Tier", tier_id)
        return tier

    async def get_purchasable_tier(self, tier_id: UUID, country: str) -> Tier:
        """A tier a tenant in `country` may be invoiced for"""
        tier = await self.tiers.get(tier_id)
        if tier is None or not tier.is_active or tier.is_trial or tier.country != country.upper():
            raise NotFound("Tier", tier_id)
        return tier

    async def entry_tier(self, country: str) -> Optional[Tier]:
        """Cheapest paid tier, offered to trials that never picked one"""
        return await self.tiers.get_cheapest_paid_tier(country)

    async def trial_tier(self, country: str) -> Optional[Tier]:
        return await self.tiers.get_trial_tier(country)

    async def limits_for(self, tenant) -> TierLimits:
        """
        Limits that apply to `tenant`: its current tier, else the country's
        trial tier, else the configured trial defaults.
        """
        tier = tenant.current_tier
        if tier is None:
            tier = await self.trial_tier(tenant.country)
        if tier is None:
            return default_trial_limits()
        return TierLimits(
            tier_id=tier.id,
            tier_name=tier.name,
            product_limit=tier.product_limit,
            order_limit_per_month=tier.order_limit_per_month,
            storage_limit_mb=tier.storage_limit_mb,
        )

    async def trial_length(self, country: str) -> timedelta:
        """Trial duration for a new tenant in `country`"""
        tier = await self.trial_tier(country)
        days = tier.plan_days if tier is not None else settings.TRIAL_DAYS
        return timedelta(days=days)
