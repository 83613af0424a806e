"""
Enforcement gate endpoints.

Consulted by the catalogue, order-intake and file-upload paths before they
change state.

Endpoints:
- GET /api/v1/enforcement/{tenant_id}/products - Room for another product?
- GET /api/v1/enforcement/{tenant_id}/orders - Room for another order this month?
- GET /api/v1/enforcement/{tenant_id}/order-processing - May orders be processed at all?
- GET /api/v1/enforcement/{tenant_id}/storage - Does a file of this size fit?
"""
from fastapi import APIRouter, Depends, Query

from tenant_billing.api.dependencies import get_enforcement_service, tenant_caller
from tenant_billing.core.tenant import Caller
from tenant_billing.schemas.subscription import LimitCheck, OrderProcessingCheck, StorageCheck
from tenant_billing.services.enforcement_service import EnforcementService

router = APIRouter()


@router.get("/{tenant_id}/products", response_model=LimitCheck)
async def check_products(
    tenant_id: str,
    caller: Caller = Depends(tenant_caller),
    service: EnforcementService = Depends(get_enforcement_service),
):
    """
    Product limit check.

    Returns:
    ```json
    {
      "allowed": false,
      "limit": 10,
      "current_count": 10,
      "remaining": 0,
      "unlimited": false,
      "tier_name": "Basic"
    }
    ```
    """
    return await service.can_add_product(tenant_id)


@router.get("/{tenant_id}/orders", response_model=LimitCheck)
async def check_orders(
    tenant_id: str,
    caller: Caller = Depends(tenant_caller),
    service: EnforcementService = Depends(get_enforcement_service),
):
    return await service.can_add_order_this_month(tenant_id)


@router.get("/{tenant_id}/order-processing", response_model=OrderProcessingCheck)
async def check_order_processing(
    tenant_id: str,
    caller: Caller = Depends(tenant_caller),
    service: EnforcementService = Depends(get_enforcement_service),
):
    return await service.can_process_orders(tenant_id)


@router.get("/{tenant_id}/storage", response_model=StorageCheck)
async def check_storage(
    tenant_id: str,
    size_bytes: int = Query(0, ge=0),
    caller: Caller = Depends(tenant_caller),
    service: EnforcementService = Depends(get_enforcement_service),
):
    return await service.can_store_file(tenant_id, size_bytes)
