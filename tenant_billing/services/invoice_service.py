"""
Invoice & Payment Workflow.

Tier changes and renewals produce an invoice; the tenant uploads payment
proof elsewhere and submits its reference here; a platform admin reviews it.
Approval feeds back into the subscription state machine in the same
transaction. Status moves are conditional updates on the status that was
read, so a reviewer and a resubmitting tenant racing on the same invoice
cannot both win.

    PENDING -> SUBMITTED -> (UNDER_REVIEW) -> APPROVED
                    ^              |
                    +-- REJECTED <-+
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.config import settings
from tenant_billing.core.constants import (
    CONVERTIBLE_STATUSES,
    LAPSED_STATUSES,
    PAYABLE_INVOICE_STATUSES,
    RENEWABLE_STATUSES,
    REVIEWABLE_INVOICE_STATUSES,
    TRANSITIONS,
    InvoiceStatus,
    InvoiceType,
    LifecycleCommand,
    ReviewDecision,
    SubscriptionStatus,
)
from tenant_billing.core.exceptions import (
    ConflictingInvoice,
    InvalidState,
    InvalidTransition,
    MissingReason,
    MissingReceipt,
    NotFound,
)
from tenant_billing.db.base import utcnow
from tenant_billing.db.models.invoice import Invoice
from tenant_billing.db.models.tenant import Tenant
from tenant_billing.db.models.tier import Tier
from tenant_billing.db.repositories.invoice_repository import InvoiceRepository
from tenant_billing.services.lifecycle import billing_period, effective_state
from tenant_billing.services.subscription_service import SubscriptionService
from tenant_billing.services.tier_catalog import TierCatalog

logger = logging.getLogger(__name__)


def classify_tier_change(tenant: Tenant, new_tier: Tier) -> InvoiceType:
    """
    Invoice type for moving `tenant` onto `new_tier`.

    A tenant without a tier, still in trial or lapsed out of it, converts;
    the same tier renews; otherwise the price comparison decides. A
    different tier at the same price is billed as an upgrade.
    """
    current = tenant.current_tier
    if current is None:
        return InvoiceType.TRIAL_CONVERSION
    if current.id == new_tier.id:
        return InvoiceType.RENEWAL
    if Decimal(new_tier.monthly_price) < Decimal(current.monthly_price):
        return InvoiceType.DOWNGRADE
    return InvoiceType.UPGRADE


def is_lapsed_trial(tenant: Tenant, status: SubscriptionStatus) -> bool:
    """Trial ran out before the tenant bought a tier"""
    return tenant.current_tier_id is None and status in LAPSED_STATUSES


class InvoiceService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.invoices = InvoiceRepository(session)
        self.catalog = TierCatalog(session)
        self.subscriptions = SubscriptionService(session)

    # ==================== Queries ====================

    async def get_invoice(self, invoice_id: UUID, tenant_id: Optional[str] = None) -> Invoice:
        """Load an invoice; when `tenant_id` is given it must own the invoice"""
        invoice = await self.invoices.get(invoice_id, refresh=True)
        if invoice is None or (tenant_id is not None and invoice.tenant_id != tenant_id):
            raise NotFound("Invoice", invoice_id)
        return invoice

    async def list_invoices(self, tenant_id: str, limit: int = 100) -> List[Invoice]:
        """Payment history for a tenant, newest first"""
        await self.subscriptions.get_tenant(tenant_id)
        return await self.invoices.list_for_tenant(tenant_id, limit=limit)

    async def review_queue(
        self,
        status: InvoiceStatus = InvoiceStatus.SUBMITTED,
        limit: int = 100,
    ) -> List[Invoice]:
        return await self.invoices.list_by_status([status], limit=limit)

    # ==================== Tenant operations ====================

    async def request_tier_change(
        self,
        tenant_id: str,
        tier_id: UUID,
        reset_billing_period: bool = False,
        now: Optional[datetime] = None,
    ) -> Invoice:
        """
        Open an invoice moving `tenant_id` onto `tier_id`.

        A tenant whose trial lapsed without a tier may still convert, so an
        OVERDUE or SUSPENDED trial can pay its way back to ACTIVE.

        Raises ConflictingInvoice while another invoice is PENDING, SUBMITTED
        or UNDER_REVIEW for the tenant; the partial unique index backs the
        check when two requests race.
        """
        now = now or utcnow()
        try:
            tenant = await self.subscriptions.get_tenant(tenant_id, refresh=True)
            state = effective_state(tenant, now)
            if (
                state.status not in TRANSITIONS[LifecycleCommand.REQUEST_TIER_CHANGE]
                and not is_lapsed_trial(tenant, state.status)
            ):
                raise InvalidTransition(tenant_id, state.status, LifecycleCommand.REQUEST_TIER_CHANGE)

            existing = await self.invoices.get_open_for_tenant(tenant_id)
            if existing is not None:
                raise ConflictingInvoice(tenant_id, existing.id, existing.invoice_number)

            tier = await self.catalog.get_purchasable_tier(tier_id, tenant.country)
            invoice = await self._create_invoice(
                tenant, tier, classify_tier_change(tenant, tier), now,
                reset_billing_period=reset_billing_period,
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictingInvoice(tenant_id)
        except Exception:
            await self.session.rollback()
            raise

        return await self.get_invoice(invoice.id)

    async def issue_renewal_invoice(self, tenant_id: str, now: Optional[datetime] = None) -> Invoice:
        """
        System-issued RENEWAL for the tenant's current tier.

        Used by the sweep ahead of the period end and for lapsed tenants, so
        an OVERDUE or SUSPENDED tenant always has an invoice it can pay. The
        tier only has to exist; a retired tier is still renewed.
        """
        now = now or utcnow()
        try:
            tenant = await self.subscriptions.get_tenant(tenant_id, refresh=True)
            state = effective_state(tenant, now)
            if state.status not in RENEWABLE_STATUSES or tenant.current_tier_id is None:
                raise InvalidTransition(tenant_id, state.status, InvoiceType.RENEWAL.value)

            existing = await self.invoices.get_open_for_tenant(tenant_id)
            if existing is not None:
                raise ConflictingInvoice(tenant_id, existing.id, existing.invoice_number)

            tier = await self.catalog.get_tier(tenant.current_tier_id)
            invoice = await self._create_invoice(tenant, tier, InvoiceType.RENEWAL, now)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictingInvoice(tenant_id)
        except Exception:
            await self.session.rollback()
            raise

        return await self.get_invoice(invoice.id)

    async def issue_trial_conversion_invoice(self, tenant_id: str, now: Optional[datetime] = None) -> Invoice:
        """
        System-issued TRIAL_CONVERSION for a tenant that has no tier yet.

        Used by the sweep for trials about to end and for lapsed trials. The
        country's cheapest paid tier is invoiced. While it is open the tenant
        cannot request another tier; it upgrades after approval instead.
        """
        now = now or utcnow()
        try:
            tenant = await self.subscriptions.get_tenant(tenant_id, refresh=True)
            state = effective_state(tenant, now)
            if state.status not in CONVERTIBLE_STATUSES or tenant.current_tier_id is not None:
                raise InvalidTransition(tenant_id, state.status, InvoiceType.TRIAL_CONVERSION.value)

            existing = await self.invoices.get_open_for_tenant(tenant_id)
            if existing is not None:
                raise ConflictingInvoice(tenant_id, existing.id, existing.invoice_number)

            tier = await self.catalog.entry_tier(tenant.country)
            if tier is None:
                raise NotFound("Tier", tenant.country)
            invoice = await self._create_invoice(tenant, tier, InvoiceType.TRIAL_CONVERSION, now)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictingInvoice(tenant_id)
        except Exception:
            await self.session.rollback()
            raise

        return await self.get_invoice(invoice.id)

    async def submit_payment_proof(
        self,
        invoice_id: UUID,
        receipt_ref: str,
        tenant_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Invoice:
        """
        Attach a receipt reference and hand the invoice to review.

        A REJECTED invoice is resubmitted in place: same id, same number,
        previous rejection reason cleared.
        """
        now = now or utcnow()
        try:
            invoice = await self.get_invoice(invoice_id, tenant_id=tenant_id)
            if not receipt_ref or not receipt_ref.strip():
                raise MissingReceipt(invoice_id)
            if invoice.status not in {s.value for s in PAYABLE_INVOICE_STATUSES}:
                raise InvalidState(invoice_id, invoice.status, PAYABLE_INVOICE_STATUSES)

            moved = await self.invoices.set_status(invoice, PAYABLE_INVOICE_STATUSES, {
                "status": InvoiceStatus.SUBMITTED.value,
                "receipt_ref": receipt_ref.strip(),
                "submission_date": now,
                "rejection_reason": None,
            })
            if not moved:
                current = await self.get_invoice(invoice_id)
                raise InvalidState(invoice_id, current.status, PAYABLE_INVOICE_STATUSES)
            await self.session.commit()
        except IntegrityError:
            # Resubmitting a rejected invoice while a newer one is open
            conflict = ConflictingInvoice(invoice.tenant_id, invoice.id, invoice.invoice_number)
            await self.session.rollback()
            raise conflict
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            f"Payment proof submitted: invoice={invoice.invoice_number}, tenant={invoice.tenant_id}",
            extra={"tenant_id": invoice.tenant_id, "invoice_id": invoice.id},
        )
        return await self.get_invoice(invoice_id)

    # ==================== Admin operations ====================

    async def start_review(self, invoice_id: UUID, reviewer_id: Optional[str] = None) -> Invoice:
        """Mark a submitted invoice as claimed by a reviewer"""
        try:
            invoice = await self.get_invoice(invoice_id)
            if invoice.status == InvoiceStatus.UNDER_REVIEW.value:
                return invoice
            moved = await self.invoices.set_status(invoice, {InvoiceStatus.SUBMITTED}, {
                "status": InvoiceStatus.UNDER_REVIEW.value,
                "reviewed_by": reviewer_id,
            })
            if not moved:
                current = await self.get_invoice(invoice_id)
                raise InvalidState(invoice_id, current.status, {InvoiceStatus.SUBMITTED})
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        return await self.get_invoice(invoice_id)

    async def review(
        self,
        invoice_id: UUID,
        decision: ReviewDecision,
        reason: Optional[str] = None,
        reviewer_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Invoice:
        """
        Approve or reject submitted payment proof.

        Repeating the decision an invoice already carries is a no-op that
        returns it unchanged, so reviewers can retry safely.
        """
        now = now or utcnow()
        decision = ReviewDecision(decision)
        if decision == ReviewDecision.APPROVE:
            return await self._approve(invoice_id, reviewer_id, now)
        return await self._reject(invoice_id, reason, reviewer_id, now)

    async def _approve(self, invoice_id: UUID, reviewer_id: Optional[str], now: datetime) -> Invoice:
        try:
            invoice = await self.get_invoice(invoice_id)
            if invoice.status == InvoiceStatus.APPROVED.value:
                return invoice
            if invoice.status not in {s.value for s in REVIEWABLE_INVOICE_STATUSES}:
                raise InvalidState(invoice_id, invoice.status, REVIEWABLE_INVOICE_STATUSES)

            if invoice.status == InvoiceStatus.SUBMITTED.value:
                if not await self.invoices.set_status(invoice, {InvoiceStatus.SUBMITTED}, {
                    "status": InvoiceStatus.UNDER_REVIEW.value,
                }):
                    current = await self.get_invoice(invoice_id)
                    raise InvalidState(invoice_id, current.status, REVIEWABLE_INVOICE_STATUSES)
                invoice = await self.get_invoice(invoice_id)

            await self.subscriptions.approve_invoice(invoice, now=now)

            if not await self.invoices.set_status(invoice, {InvoiceStatus.UNDER_REVIEW}, {
                "status": InvoiceStatus.APPROVED.value,
                "review_date": now,
                "reviewed_by": reviewer_id or invoice.reviewed_by,
            }):
                current = await self.get_invoice(invoice_id)
                raise InvalidState(invoice_id, current.status, {InvoiceStatus.UNDER_REVIEW})
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            f"Invoice approved: invoice={invoice.invoice_number}, tenant={invoice.tenant_id}",
            extra={"tenant_id": invoice.tenant_id, "invoice_id": invoice.id, "actor_id": reviewer_id},
        )
        return await self.get_invoice(invoice_id)

    async def _reject(
        self,
        invoice_id: UUID,
        reason: Optional[str],
        reviewer_id: Optional[str],
        now: datetime,
    ) -> Invoice:
        try:
            invoice = await self.get_invoice(invoice_id)
            if invoice.status == InvoiceStatus.REJECTED.value:
                return invoice
            if not reason or not reason.strip():
                raise MissingReason(invoice_id)
            if invoice.status not in {s.value for s in REVIEWABLE_INVOICE_STATUSES}:
                raise InvalidState(invoice_id, invoice.status, REVIEWABLE_INVOICE_STATUSES)

            if not await self.invoices.set_status(invoice, REVIEWABLE_INVOICE_STATUSES, {
                "status": InvoiceStatus.REJECTED.value,
                "rejection_reason": reason.strip(),
                "review_date": now,
                "reviewed_by": reviewer_id or invoice.reviewed_by,
            }):
                current = await self.get_invoice(invoice_id)
                raise InvalidState(invoice_id, current.status, REVIEWABLE_INVOICE_STATUSES)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            f"Invoice rejected: invoice={invoice.invoice_number}, tenant={invoice.tenant_id}",
            extra={"tenant_id": invoice.tenant_id, "invoice_id": invoice.id, "actor_id": reviewer_id},
        )
        return await self.get_invoice(invoice_id)

    # ==================== Internals ====================

    async def _create_invoice(
        self,
        tenant: Tenant,
        tier: Tier,
        invoice_type: InvoiceType,
        now: datetime,
        reset_billing_period: bool = False,
    ) -> Invoice:
        """Stage a PENDING invoice; the caller commits"""
        period = billing_period(tier)

        if invoice_type == InvoiceType.TRIAL_CONVERSION:
            boundary = tenant.trial_ends_at
        elif invoice_type == InvoiceType.RENEWAL:
            boundary = tenant.subscription_ends_at
        else:
            boundary = None

        if boundary is not None and boundary > now:
            due_date = boundary
        else:
            due_date = now + timedelta(days=settings.INVOICE_DUE_DAYS)

        if boundary is not None and boundary > now:
            period_start = boundary
            period_end = boundary + period
        elif invoice_type in (InvoiceType.UPGRADE, InvoiceType.DOWNGRADE) and not reset_billing_period:
            period_start = now
            period_end = tenant.subscription_ends_at
        else:
            period_start = now
            period_end = now + period

        invoice_number = await self.invoices.next_invoice_number()
        invoice = await self.invoices.create({
            "invoice_number": invoice_number,
            "tenant_id": tenant.id,
            "tier_id": tier.id,
            "previous_tier_id": tenant.current_tier_id,
            "invoice_type": invoice_type.value,
            "amount": Decimal(tier.monthly_price),
            "currency": tier.currency,
            "status": InvoiceStatus.PENDING.value,
            "due_date": due_date,
            "billing_period_start": period_start,
            "billing_period_end": period_end,
            "resets_billing_period": bool(reset_billing_period) and invoice_type in (
                InvoiceType.UPGRADE, InvoiceType.DOWNGRADE
            ),
        })

        logger.info(
            f"Invoice created: invoice={invoice_number}, tenant={tenant.id}, "
            f"type={invoice_type.value}, amount={tier.monthly_price} {tier.currency}",
            extra={"tenant_id": tenant.id, "invoice_id": invoice.id},
        )
        return invoice
