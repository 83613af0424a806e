# tenant_billing/api/v1/tiers.py
from fastapi import APIRouter, Depends, Query
from typing import List

from tenant_billing.api.dependencies import get_tier_catalog
from tenant_billing.schemas.subscription import Tier as TierSchema
from tenant_billing.services.tier_catalog import TierCatalog

router = APIRouter()


@router.get("", response_model=List[TierSchema])
async def list_tiers(
    country: str = Query(..., min_length=2, max_length=2),
    catalog: TierCatalog = Depends(get_tier_catalog),
):
    """Active tiers offered in a country, in display order"""
    return await catalog.list_tiers(country)
