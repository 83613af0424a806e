# tenant_billing/api/v1/admin.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.logging import logger
from tenant_billing.core.tenant import require_admin
from tenant_billing.db.database import get_db
from tenant_billing.schemas.subscription import SweepResult
from tenant_billing.services.subscription_sweep import run_subscription_sweep

router = APIRouter()


@router.post("/sweep", response_model=SweepResult)
async def run_sweep(
    admin_id: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Run the subscription sweep now instead of waiting for the scheduler"""
    logger.info(f"Manual subscription sweep by {admin_id}", extra={"actor_id": admin_id})
    return await run_subscription_sweep(db)
