# tenant_billing/api/v1/invoices.py
from fastapi import APIRouter, Depends, Query
from typing import List
from uuid import UUID

from tenant_billing.api.dependencies import get_invoice_service
from tenant_billing.core.constants import InvoiceStatus
from tenant_billing.core.tenant import Caller, get_caller, require_admin
from tenant_billing.schemas.subscription import (
    Invoice as InvoiceSchema,
    PaymentProofRequest,
    ReviewRequest,
)
from tenant_billing.services.invoice_service import InvoiceService

router = APIRouter()


@router.get("", response_model=List[InvoiceSchema])
async def review_queue(
    status: InvoiceStatus = Query(InvoiceStatus.SUBMITTED),
    limit: int = Query(100, ge=1, le=500),
    admin_id: str = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Invoices in one status across all tenants, oldest submission first"""
    return await service.review_queue(status, limit=limit)


@router.get("/{invoice_id}", response_model=InvoiceSchema)
async def get_invoice(
    invoice_id: UUID,
    caller: Caller = Depends(get_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    owner = None if caller.is_admin else caller.tenant_id
    return await service.get_invoice(invoice_id, tenant_id=owner)


@router.post("/{invoice_id}/payment", response_model=InvoiceSchema)
async def submit_payment_proof(
    invoice_id: UUID,
    request: PaymentProofRequest,
    caller: Caller = Depends(get_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    """
    Submit the reference of an uploaded payment receipt.

    Also used to resubmit a rejected invoice; the invoice keeps its id and
    number.
    """
    owner = None if caller.is_admin else caller.tenant_id
    return await service.submit_payment_proof(invoice_id, request.receipt_ref, tenant_id=owner)


@router.post("/{invoice_id}/claim", response_model=InvoiceSchema)
async def claim_invoice(
    invoice_id: UUID,
    admin_id: str = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Mark a submitted invoice as under review by the calling admin"""
    return await service.start_review(invoice_id, reviewer_id=admin_id)


@router.post("/{invoice_id}/review", response_model=InvoiceSchema)
async def review_invoice(
    invoice_id: UUID,
    request: ReviewRequest,
    admin_id: str = Depends(require_admin),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Approve or reject payment proof; approval activates or changes the subscription"""
    return await service.review(
        invoice_id,
        request.decision,
        reason=request.reason,
        reviewer_id=admin_id,
    )
