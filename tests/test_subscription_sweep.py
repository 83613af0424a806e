"""
Tests for the periodic subscription sweep
"""
import pytest
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.constants import InvoiceStatus, InvoiceType, ReviewDecision, SubscriptionStatus
from tenant_billing.db.repositories.invoice_repository import InvoiceRepository
from tenant_billing.db.repositories.tenant_repository import TenantRepository
from tenant_billing.services.invoice_service import InvoiceService
from tenant_billing.services.subscription_sweep import SubscriptionSweeper, run_subscription_sweep

from tests.conftest import NOW


@pytest.fixture
def sweeper(db_session: AsyncSession) -> SubscriptionSweeper:
    return SubscriptionSweeper(db_session)


@pytest.mark.asyncio
class TestSubscriptionSweep:

    async def test_renewal_invoice_within_lead_days(self, sweeper, db_session, make_tenant, tiers):
        """Period ends in 3 days: a RENEWAL due at the period end is issued"""
        tenant = await make_tenant(
            "biz-1",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["basic"],
            subscription_ends_at=NOW + timedelta(days=3),
        )

        results = await sweeper.run(now=NOW)
        invoices = await InvoiceRepository(db_session).list_for_tenant("biz-1")

        assert results["renewal_invoices"] == 1
        assert len(invoices) == 1
        assert invoices[0].invoice_type == InvoiceType.RENEWAL.value
        assert invoices[0].status == InvoiceStatus.PENDING.value
        assert invoices[0].due_date == tenant.subscription_ends_at
        assert invoices[0].billing_period_start == tenant.subscription_ends_at

    async def test_no_renewal_far_from_period_end(self, sweeper, db_session, make_tenant, tiers):
        await make_tenant("biz-1", status=SubscriptionStatus.ACTIVE, tier=tiers["basic"])

        results = await sweeper.run(now=NOW)

        assert results["renewal_invoices"] == 0
        assert await InvoiceRepository(db_session).list_for_tenant("biz-1") == []

    async def test_no_renewal_while_tier_change_open(self, sweeper, db_session, make_tenant, tiers):
        await make_tenant(
            "biz-1",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["basic"],
            subscription_ends_at=NOW + timedelta(days=2),
        )
        await InvoiceService(db_session).request_tier_change("biz-1", tiers["pro"].id, now=NOW)

        results = await sweeper.run(now=NOW)

        assert results["renewal_invoices"] == 0
        assert results["errors"] == []

    async def test_lapsed_tenant_gets_payable_renewal(self, sweeper, db_session, make_tenant, tiers):
        """An OVERDUE tenant with nothing to pay is issued a renewal due in a week"""
        await make_tenant(
            "biz-1",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["basic"],
            subscription_ends_at=NOW - timedelta(days=2),
        )

        results = await sweeper.run(now=NOW)
        invoices = await InvoiceRepository(db_session).list_for_tenant("biz-1")

        assert results["renewal_invoices"] == 1
        assert results["overdue_updates"] == 1
        assert invoices[0].due_date == NOW + timedelta(days=7)
        assert invoices[0].billing_period_start == NOW

    async def test_lapsed_tenant_with_rejected_invoice_keeps_it(self, sweeper, db_session, make_tenant, tiers):
        await make_tenant(
            "biz-1",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["basic"],
            subscription_ends_at=NOW + timedelta(days=1),
        )
        service = InvoiceService(db_session)
        invoice = await service.request_tier_change("biz-1", tiers["basic"].id, now=NOW)
        await service.submit_payment_proof(invoice.id, "receipt.jpg", now=NOW)
        await service.review(invoice.id, ReviewDecision.REJECT, reason="wrong account", now=NOW)

        results = await sweeper.run(now=NOW + timedelta(days=3))

        assert results["renewal_invoices"] == 0
        assert len(await InvoiceRepository(db_session).list_for_tenant("biz-1")) == 1

    async def test_trial_ending_soon_gets_conversion(self, sweeper, db_session, make_tenant, tiers):
        """Trial ends in 2 days: the cheapest paid tier is invoiced, due when the trial ends"""
        tenant = await make_tenant("biz-1", trial_ends_at=NOW + timedelta(days=2))

        results = await sweeper.run(now=NOW)
        invoices = await InvoiceRepository(db_session).list_for_tenant("biz-1")

        assert results["trial_conversion_invoices"] == 1
        assert len(invoices) == 1
        assert invoices[0].invoice_type == InvoiceType.TRIAL_CONVERSION.value
        assert invoices[0].tier_id == tiers["basic"].id
        assert invoices[0].due_date == tenant.trial_ends_at
        assert invoices[0].billing_period_start == tenant.trial_ends_at
        assert invoices[0].billing_period_end == tenant.trial_ends_at + timedelta(days=30)

    async def test_conversion_lead_is_inclusive(self, sweeper, make_tenant, tiers):
        await make_tenant("biz-edge", trial_ends_at=NOW + timedelta(days=3))
        await make_tenant("biz-early", trial_ends_at=NOW + timedelta(days=3, seconds=1))

        results = await sweeper.run(now=NOW)

        assert results["trial_conversion_invoices"] == 1

    async def test_no_conversion_early_in_trial(self, sweeper, db_session, make_tenant, tiers):
        await make_tenant("biz-1")

        results = await sweeper.run(now=NOW)

        assert results["trial_conversion_invoices"] == 0
        assert await InvoiceRepository(db_session).list_for_tenant("biz-1") == []

    async def test_chosen_tier_not_duplicated(self, sweeper, db_session, make_tenant, tiers):
        """A trial that already asked for Pro keeps that invoice"""
        await make_tenant("biz-1", trial_ends_at=NOW + timedelta(days=1))
        await InvoiceService(db_session).request_tier_change("biz-1", tiers["pro"].id, now=NOW)

        results = await sweeper.run(now=NOW)
        invoices = await InvoiceRepository(db_session).list_for_tenant("biz-1")

        assert results["trial_conversion_invoices"] == 0
        assert [i.tier_id for i in invoices] == [tiers["pro"].id]

    async def test_lapsed_trial_gets_payable_conversion(self, sweeper, db_session, make_tenant, tiers):
        await make_tenant("biz-1", trial_ends_at=NOW - timedelta(days=1))

        results = await sweeper.run(now=NOW)
        invoices = await InvoiceRepository(db_session).list_for_tenant("biz-1")

        assert results["trial_conversion_invoices"] == 1
        assert results["overdue_updates"] == 1
        assert invoices[0].invoice_type == InvoiceType.TRIAL_CONVERSION.value
        assert invoices[0].due_date == NOW + timedelta(days=7)
        assert invoices[0].billing_period_start == NOW

    async def test_no_conversion_without_paid_tier(self, sweeper, db_session, make_tenant, tiers):
        await make_tenant("biz-us", country="US", trial_ends_at=NOW + timedelta(days=1))
        await make_tenant("biz-de", country="DE", trial_ends_at=NOW + timedelta(days=1))

        results = await sweeper.run(now=NOW)

        assert results["trial_conversion_invoices"] == 1
        assert results["errors"] == []
        assert await InvoiceRepository(db_session).list_for_tenant("biz-de") == []

    async def test_stores_overdue_and_suspended(
self, sweeper, db_session, make_tenant, tiers):
        await make_tenant("biz-trial", trial_ends_at=NOW - timedelta(days=1))
        await make_tenant(
            "biz-late",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["basic"],
            subscription_ends_at=NOW - timedelta(days=10),
        )
        await make_tenant("biz-fine", status=SubscriptionStatus.ACTIVE, tier=tiers["basic"])

        results = await run_subscription_sweep(db_session, now=NOW)
        repo = TenantRepository(db_session)

        assert results["overdue_updates"] == 1
        assert results["suspended"] == 1
        assert (await repo.get_by_id("biz-trial", refresh=True)).status == SubscriptionStatus.OVERDUE.value
        late = await repo.get_by_id("biz-late", refresh=True)
        assert late.status == SubscriptionStatus.SUSPENDED.value
        assert late.overdue_since == NOW - timedelta(days=10)
        assert (await repo.get_by_id("biz-fine", refresh=True)).status == SubscriptionStatus.ACTIVE.value

    async def test_second_run_changes_nothing(self, sweeper, make_tenant, tiers):
        await make_tenant("biz-trial", trial_ends_at=NOW - timedelta(days=1))
        await make_tenant(
            "biz-late",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["basic"],
            subscription_ends_at=NOW - timedelta(days=3),
        )

        first = await sweeper.run(now=NOW)
        second = await sweeper.run(now=NOW)

        assert first["trial_conversion_invoices"] == 1
        assert first["renewal_invoices"] == 1
        assert first["overdue_updates"] == 2
        assert second == {"trial_conversion_invoices": 0, "renewal_invoices": 0, "overdue_updates": 0, "suspended": 0, "errors": []}

    async def test_stored_overdue_moves_to_suspended(self, sweeper, db_session, make_tenant):
        await make_tenant("biz-1", trial_ends_at=NOW - timedelta(days=1))
        await sweeper.run(now=NOW)

        results = await sweeper.run(now=NOW + timedelta(days=7))

        assert results["suspended"] == 1
        tenant = await TenantRepository(db_session).get_by_id("biz-1", refresh=True)
        assert tenant.status == SubscriptionStatus.SUSPENDED.value
