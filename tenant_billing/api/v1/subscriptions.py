# tenant_billing/api/v1/subscriptions.py
from fastapi import APIRouter, Depends, status
from typing import List, Optional

from tenant_billing.api.dependencies import (
    get_invoice_service,
    get_subscription_service,
    tenant_caller,
)
from tenant_billing.core.logging import logger
from tenant_billing.core.tenant import Caller, ensure_tenant_access, get_caller
from tenant_billing.schemas.subscription import (
    CancelRequest,
    Invoice as InvoiceSchema,
    StartTrialRequest,
    Subscription as SubscriptionSchema,
    TierChangeRequest,
)
from tenant_billing.services.invoice_service import InvoiceService
from tenant_billing.services.subscription_service import SubscriptionService

router = APIRouter()


@router.post("", response_model=SubscriptionSchema, status_code=status.HTTP_201_CREATED)
async def start_trial(
    request: StartTrialRequest,
    caller: Caller = Depends(get_caller),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Register a new tenant and start its trial"""
    ensure_tenant_access(caller, request.tenant_id)
    await service.start_trial(request.tenant_id, request.name, request.country)
    return await service.subscription_status(request.tenant_id)


@router.get("/{tenant_id}", response_model=SubscriptionSchema)
async def get_subscription(
    tenant_id: str,
    caller: Caller = Depends(tenant_caller),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Current status, days remaining and invoices awaiting action"""
    return await service.subscription_status(tenant_id)


@router.post("/{tenant_id}/tier-change", response_model=InvoiceSchema, status_code=status.HTTP_201_CREATED)
async def request_tier_change(
    tenant_id: str,
    request: TierChangeRequest,
    caller: Caller = Depends(tenant_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Open an invoice for a trial conversion, renewal, upgrade or downgrade"""
    invoice = await service.request_tier_change(
        tenant_id,
        request.tier_id,
        reset_billing_period=request.reset_billing_period,
    )
    logger.info(
        f"Tier change requested: tenant={tenant_id}, invoice={invoice.invoice_number}",
        extra={"tenant_id": tenant_id, "actor_id": caller.actor_id},
    )
    return invoice


@router.post("/{tenant_id}/pause", response_model=SubscriptionSchema)
async def pause_subscription(
    tenant_id: str,
    caller: Caller = Depends(tenant_caller),
    service: SubscriptionService = Depends(get_subscription_service),
):
    await service.pause(tenant_id)
    return await service.subscription_status(tenant_id)


@router.post("/{tenant_id}/resume", response_model=SubscriptionSchema)
async def resume_subscription(
    tenant_id: str,
    caller: Caller = Depends(tenant_caller),
    service: SubscriptionService = Depends(get_subscription_service),
):
    await service.resume(tenant_id)
    return await service.subscription_status(tenant_id)


@router.post("/{tenant_id}/cancel", response_model=SubscriptionSchema)
async def cancel_subscription(
    tenant_id: str,
    request: Optional[CancelRequest] = None,
    caller: Caller = Depends(tenant_caller),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Cancel for good; a cancelled tenant is retained but cannot be reactivated"""
    await service.cancel(tenant_id, reason=request.reason if request else None)
    return await service.subscription_status(tenant_id)


@router.get("/{tenant_id}/invoices", response_model=List[InvoiceSchema])
async def list_invoices(
    tenant_id: str,
    caller: Caller = Depends(tenant_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Payment history, newest first"""
    return await service.list_invoices(tenant_id)
