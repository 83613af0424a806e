"""
Subscription State Machine.

Owns each tenant's lifecycle status and time boundaries. Every command checks
its guard against the tenant's *effective* status (stored status with elapsed
time applied) and lands as one conditional UPDATE on the status and version
that were read, so a concurrent writer makes the command fail instead of
interleaving with it.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.config import settings
from tenant_billing.core.constants import (
    ACTIONABLE_INVOICE_STATUSES,
    ELAPSING_STATUSES,
    PERIOD_STARTING_INVOICE_TYPES,
    TRANSITIONS,
    TRANSITION_TARGETS,
    InvoiceStatus,
    InvoiceType,
    LifecycleCommand,
    SubscriptionStatus,
)
from tenant_billing.core.exceptions import InvalidState, InvalidTransition, NotFound
from tenant_billing.db.base import utcnow
from tenant_billing.db.models.invoice import Invoice
from tenant_billing.db.models.tenant import Tenant
from tenant_billing.db.repositories.invoice_repository import InvoiceRepository
from tenant_billing.db.repositories.tenant_repository import TenantRepository
from tenant_billing.services.lifecycle import EffectiveState, billing_period, days_remaining, effective_state
from tenant_billing.services.tier_catalog import TierCatalog

logger = logging.getLogger(__name__)


class SubscriptionService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.tenants = TenantRepository(session)
        self.invoices = InvoiceRepository(session)
        self.catalog = TierCatalog(session)

    # ==================== Queries ====================

    async def get_tenant(self, tenant_id: str, refresh: bool = False) -> Tenant:
        tenant = await self.tenants.get_by_id(tenant_id, refresh=refresh)
        if tenant is None:
            raise NotFound("Tenant", tenant_id)
        return tenant

    async def effective_state(self, tenant_id: str, now: Optional[datetime] = None) -> EffectiveState:
        tenant = await self.get_tenant(tenant_id, refresh=True)
        return effective_state(tenant, now or utcnow())

    async def subscription_status(self, tenant_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Current lifecycle view of a tenant, with every derived field
        recomputed for `now`.

        Returns:
        {
            "tenant_id": "biz-1",
            "status": "TRIAL|ACTIVE|OVERDUE|SUSPENDED|PAUSED|CANCELLED",
            "tier": <Tier or None>,
            "trial_days_remaining": 3,
            "subscription_days_remaining": 0,
            "ending_soon": true,
            "urgent": false,
            "pending_invoices": [<Invoice>, ...]
        }
        """
        now = now or utcnow()
        tenant = await self.get_tenant(tenant_id, refresh=True)
        state = effective_state(tenant, now)

        trial_days = days_remaining(tenant.trial_ends_at, now)
        subscription_days = days_remaining(tenant.subscription_ends_at, now)

        if state.status == SubscriptionStatus.TRIAL:
            watched_days = trial_days
        elif state.status == SubscriptionStatus.ACTIVE:
            watched_days = subscription_days
        else:
            watched_days = None

        pending = await self.invoices.list_for_tenant(tenant.id, statuses=ACTIONABLE_INVOICE_STATUSES)

        return {
            "tenant_id": tenant.id,
            "name": tenant.name,
            "country": tenant.country,
            "status": state.status,
            "tier": tenant.current_tier,
            "trial_ends_at": tenant.trial_ends_at,
            "subscription_starts_at": tenant.subscription_starts_at,
            "subscription_ends_at": tenant.subscription_ends_at,
            "trial_days_remaining": trial_days,
            "subscription_days_remaining": subscription_days,
            "ending_soon": watched_days is not None and watched_days <= settings.ENDING_SOON_DAYS,
            "urgent": watched_days is not None and watched_days <= settings.URGENT_DAYS,
            "overdue_since": state.overdue_since,
            "grace_ends_at": state.grace_ends_at,
            "paused_at": tenant.paused_at,
            "cancelled_at": tenant.cancelled_at,
            "cancellation_reason": tenant.cancellation_reason,
            "pending_invoices": pending,
        }

    # ==================== Commands ====================

    async def start_trial(
        self,
        tenant_id: str,
        name: str,
        country: str,
        now: Optional[datetime] = None,
    ) -> Tenant:
        """Create a tenant at signup, in TRIAL for the country's trial length"""
        now = now or utcnow()
        existing = await self.tenants.get_by_id(tenant_id)
        if existing is not None:
            raise InvalidTransition(tenant_id, existing.status, LifecycleCommand.START_TRIAL)

        trial_length = await self.catalog.trial_length(country)
        try:
            tenant = await self.tenants.create({
                "id": tenant_id,
                "name": name,
                "country": country.upper(),
                "status": SubscriptionStatus.TRIAL.value,
                "trial_ends_at": now + trial_length,
            })
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise InvalidTransition(
                tenant_id, "EXISTS", LifecycleCommand.START_TRIAL,
                message=f"Tenant {tenant_id} already exists",
            )

        logger.info(
            f"Trial started: tenant={tenant_id}, ends={tenant.trial_ends_at.isoformat()}",
            extra={"tenant_id": tenant_id},
        )
        return await self.get_tenant(tenant_id, refresh=True)

    async def pause(self, tenant_id: str, now: Optional[datetime] = None) -> Tenant:
        now = now or utcnow()
        return await self._run(tenant_id, LifecycleCommand.PAUSE, now, lambda tenant: {
            "paused_at": now,
        })

    async def resume(self, tenant_id: str, now: Optional[datetime] = None) -> Tenant:
        """Resume a paused tenant; time spent paused is added back to the period"""
        now = now or utcnow()

        def effects(tenant: Tenant) -> Dict[str, Any]:
            values: Dict[str, Any] = {"paused_at": None}
            if tenant.paused_at is not None and tenant.subscription_ends_at is not None:
                paused_for = max(now - tenant.paused_at, timedelta(0))
                values["subscription_ends_at"] = tenant.subscription_ends_at + paused_for
            return values

        return await self._run(tenant_id, LifecycleCommand.RESUME, now, effects)

    async def cancel(
        self,
        tenant_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tenant:
        now = now or utcnow()
        return await self._run(tenant_id, LifecycleCommand.CANCEL, now, lambda tenant: {
            "cancelled_at": now,
            "cancellation_reason": reason.strip() if reason and reason.strip() else None,
            "paused_at": None,
            "overdue_since": None,
        })

    async def approve_invoice(self, invoice: Invoice, now: Optional[datetime] = None) -> Tenant:
        """
        Apply an approved payment to the tenant.

        Runs inside the reviewer's transaction and does not commit: the
        invoice workflow commits the invoice and tenant changes together.
        Trial conversions and renewals (re)start the paid period; upgrades
        and downgrades swap the tier and keep the renewal clock unless the
        invoice carries a new billing period.
        """
        now = now or utcnow()
        if invoice.status != InvoiceStatus.UNDER_REVIEW.value:
            raise InvalidState(invoice.id, invoice.status, {InvoiceStatus.UNDER_REVIEW})

        tenant = await self.get_tenant(invoice.tenant_id, refresh=True)
        tier = await self.catalog.get_tier(invoice.tier_id)
        invoice_type = InvoiceType(invoice.invoice_type)

        values: Dict[str, Any] = {"current_tier_id": tier.id}
        if invoice_type in PERIOD_STARTING_INVOICE_TYPES:
            command = LifecycleCommand.ACTIVATE
            values.update({
                "subscription_starts_at": now,
                "subscription_ends_at": now + billing_period(tier),
                "overdue_since": None,
                "paused_at": None,
            })
        else:
            command = LifecycleCommand.CHANGE_TIER
            if invoice.resets_billing_period:
                values.update({
                    "subscription_starts_at": now,
                    "subscription_ends_at": now + billing_period(tier),
                })

        state = self._guard(tenant, command, now)
        values["status"] = TRANSITION_TARGETS[command].value
        await self._write(tenant, command, state, values)

        logger.info(
            f"Invoice applied: tenant={tenant.id}, invoice={invoice.invoice_number}, "
            f"type={invoice_type.value}, tier={tier.name}",
            extra={"tenant_id": tenant.id, "invoice_id": invoice.id},
        )
        return await self.get_tenant(tenant.id, refresh=True)

    async def apply_elapsed_time(self, tenant_id: str, now: Optional[datetime] = None) -> Optional[SubscriptionStatus]:
        """
        Store the effective status when elapsed time has moved the tenant on.

        Returns the newly stored status, or None if nothing changed. Reads
        give the same answer before and after, so running it twice is safe.
        """
        now = now or utcnow()
        try:
            tenant = await self.get_tenant(tenant_id, refresh=True)
            state = effective_state(tenant, now)
            stored = SubscriptionStatus(tenant.status)
            if state.status == stored and tenant.overdue_since == state.overdue_since:
                return None
            if stored not in ELAPSING_STATUSES:
                return None
            if not await self.tenants.transition(tenant, {
                "status": state.status.value,
                "overdue_since": state.overdue_since,
            }):
                raise InvalidTransition(
                    tenant_id, stored, state.status,
                    message=f"Tenant {tenant_id} changed while applying elapsed time; reload and retry",
                )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            f"Subscription status stored: tenant={tenant_id}, {stored.value} -> {state.status.value}",
            extra={"tenant_id": tenant_id},
        )
        return state.status

    # ==================== Internals ====================

    def _guard(self, tenant: Tenant, command: LifecycleCommand, now: datetime) -> EffectiveState:
        state = effective_state(tenant, now)
        if state.status not in TRANSITIONS[command]:
            logger.warning(
                f"Rejected {command.value}: tenant={tenant.id}, status={state.status.value}",
                extra={"tenant_id": tenant.id},
            )
            raise InvalidTransition(tenant.id, state.status, command)
        return state

    async def _write(
        self,
        tenant: Tenant,
        command: LifecycleCommand,
        state: EffectiveState,
        values: Dict[str, Any],
    ) -> None:
        if not await self.tenants.transition(tenant, values):
            raise InvalidTransition(
                tenant.id, state.status, command,
                message=f"Tenant {tenant.id} changed while applying {command.value}; reload and retry",
            )

    async def _run(self, tenant_id: str, command: LifecycleCommand, now: datetime, effects) -> Tenant:
        """Guard, apply and commit a tenant-initiated lifecycle command"""
        try:
            tenant = await self.get_tenant(tenant_id, refresh=True)
            state = self._guard(tenant, command, now)
            values = effects(tenant)
            values["status"] = TRANSITION_TARGETS[command].value
            await self._write(tenant, command, state, values)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            f"Subscription {command.value}: tenant={tenant_id}, "
            f"{state.status.value} -> {TRANSITION_TARGETS[command].value}",
            extra={"tenant_id": tenant_id},
        )
        return await self.get_tenant(tenant_id, refresh=True)
