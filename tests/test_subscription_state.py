"""
Tests for the subscription state machine

Covers:
1. Trial start and passive time-based transitions (OVERDUE, SUSPENDED)
2. Derived fields (days remaining, ending soon, urgent)
3. Pause / resume / cancel guards and effects
4. Conditional writes losing to a concurrent writer
"""
import pytest
from datetime import timedelta
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.constants import SubscriptionStatus
from tenant_billing.core.exceptions import InvalidTransition, NotFound
from tenant_billing.db.models import Tenant
from tenant_billing.db.repositories.tenant_repository import TenantRepository
from tenant_billing.services.lifecycle import days_remaining, effective_state
from tenant_billing.services.subscription_service import SubscriptionService

from tests.conftest import NOW


@pytest.fixture
def service(db_session: AsyncSession) -> SubscriptionService:
    return SubscriptionService(db_session)


class TestTrialStart:

    async def test_start_trial_uses_country_trial_length(self, service, tiers):
        """New tenant is TRIAL until now + the trial tier's plan days"""
        tenant = await service.start_trial("biz-new", "Corner Cafe", "ae", now=NOW)

        assert tenant.status == SubscriptionStatus.TRIAL.value
        assert tenant.country == "AE"
        assert tenant.trial_ends_at == NOW + timedelta(days=14)
        assert tenant.current_tier_id is None

    async def test_start_trial_without_trial_tier_uses_default(self, service):
        """No catalog trial tier falls back to the configured trial length"""
        tenant = await service.start_trial("biz-new", "Corner Cafe", "NP", now=NOW)

        assert tenant.trial_ends_at == NOW + timedelta(days=14)

    async def test_start_trial_twice_is_rejected(self, service, make_tenant):
        await make_tenant("biz-1")

        with pytest.raises(InvalidTransition):
            await service.start_trial("biz-1", "Again", "AE", now=NOW)

    async def test_unknown_tenant(self, service):
        with pytest.raises(NotFound) as exc:
            await service.subscription_status("nobody", now=NOW)

        assert exc.value.status_code == 404


class TestTimeElapsed:

    async def test_expired_trial_reports_overdue(self, service, make_tenant):
        """Trial that ended yesterday with no approved invoice reads as OVERDUE"""
        await make_tenant("biz-1", trial_ends_at=NOW - timedelta(days=1))

        status = await service.subscription_status("biz-1", now=NOW)

        assert status["status"] == SubscriptionStatus.OVERDUE
        assert status["overdue_since"] == NOW - timedelta(days=1)
        assert status["grace_ends_at"] == NOW + timedelta(days=6)

    async def test_reading_does_not_store_overdue(self, service, make_tenant, db_session):
        """Derivation is passive: the stored status stays TRIAL"""
        await make_tenant("biz-1", trial_ends_at=NOW - timedelta(days=1))

        await service.subscription_status("biz-1", now=NOW)
        tenant = await TenantRepository(db_session).get_by_id("biz-1", refresh=True)

        assert tenant.status == SubscriptionStatus.TRIAL.value

    async def test_overdue_past_grace_window_is_suspended(self, service, make_tenant, tiers):
        await make_tenant(
            "biz-1",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["basic"],
            subscription_ends_at=NOW - timedelta(days=8),
        )

        status = await service.subscription_status("biz-1", now=NOW)

        assert status["status"] == SubscriptionStatus.SUSPENDED

    async def test_tier_grace_override(self, service, make_tenant, tiers):
        """Premium has a 3 day grace window instead of the default 7"""
        await make_tenant(
            "biz-1",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["premium"],
            subscription_ends_at=NOW - timedelta(days=4),
        )

        status = await service.subscription_status("biz-1", now=NOW)

        assert status["status"] == SubscriptionStatus.SUSPENDED

    async def test_boundary_instant_is_still_active(self, service, make_tenant, tiers):
        """Expiry is strict: ends_at == now has not elapsed yet"""
        await make_tenant(
            "biz-1",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["basic"],
            subscription_ends_at=NOW,
        )

        status = await service.subscription_status("biz-1", now=NOW)

        assert status["status"] == SubscriptionStatus.ACTIVE

    async def test_apply_elapsed_time_is_idempotent(self, service, make_tenant):
        await make_tenant("biz-1", trial_ends_at=NOW - timedelta(days=1))

        first = await service.apply_elapsed_time("biz-1", now=NOW)
        second = await service.apply_elapsed_time("biz-1", now=NOW)
        status = await service.subscription_status("biz-1", now=NOW)

        assert first == SubscriptionStatus.OVERDUE
        assert second is None
        assert status["status"] == SubscriptionStatus.OVERDUE
        assert status["overdue_since"] == NOW - timedelta(days=1)


class TestDerivedFields:

    def test_days_remaining_rounds_up(self):
        assert days_remaining(NOW + timedelta(days=2, hours=1), NOW) == 3
        assert days_remaining(NOW + timedelta(days=2), NOW) == 2
        assert days_remaining(NOW - timedelta(days=2), NOW) == 0
        assert days_remaining(None, NOW) == 0

    async def test_trial_ending_soon(self, service, make_tenant):
        await make_tenant("biz-1", trial_ends_at=NOW + timedelta(days=3))

        status = await service.subscription_status("biz-1", now=NOW)

        assert status["trial_days_remaining"] == 3
        assert status["ending_soon"] is True
        assert status["urgent"] is False

    async def test_trial_urgent(self, service, make_tenant):
        await make_tenant("biz-1", trial_ends_at=NOW + timedelta(hours=30))

        status = await service.subscription_status("biz-1", now=NOW)

        assert status["trial_days_remaining"] == 2
        assert status["urgent"] is True

    async def test_active_uses_subscription_days(self, service, make_tenant, tiers):
        await make_tenant("biz-1", status=SubscriptionStatus.ACTIVE, tier=tiers["basic"])

        status = await service.subscription_status("biz-1", now=NOW)

        assert status["subscription_days_remaining"] == 20
        assert status["trial_days_remaining"] == 0
        assert status["ending_soon"] is False
        assert status["tier"].name == "Basic"


class TestLifecycleCommands:

    async def test_pause_active(self, service, make_tenant, tiers):
        await make_tenant("biz-1", status=SubscriptionStatus.ACTIVE, tier=tiers["basic"])

        tenant = await service.pause("biz-1", now=NOW)

        assert tenant.status == SubscriptionStatus.PAUSED.value
        assert tenant.paused_at == NOW

    async def test_pause_trial_rejected(self, service, make_tenant):
        await make_tenant("biz-1")

        with pytest.raises(InvalidTransition) as exc:
            await service.pause("biz-1", now=NOW)

        assert exc.value.context["current_status"] == "TRIAL"
        assert exc.value.context["requested"] == "pause"

    async def test_pause_effectively_overdue_rejected(self, service, make_tenant, tiers):
        """Stored ACTIVE but past its end date: guards see OVERDUE"""
        await make_tenant(
            "biz-1",
            status=SubscriptionStatus.ACTIVE,
            tier=tiers["basic"],
            subscription_ends_at=NOW - timedelta(hours=1),
        )

        with pytest.raises(InvalidTransition):
            await service.pause("biz-1", now=NOW)

    async def test_resume_shifts_end_by_pause_duration(self, service, make_tenant, tiers):
        """Paused for 3 days: the subscription ends 3 days later than before"""
        tenant = await make_tenant("biz-1", status=SubscriptionStatus.ACTIVE, tier=tiers["basic"])
        original_end = tenant.subscription_ends_at

        await service.pause("biz-1", now=NOW)
        resumed = await service.resume("biz-1", now=NOW + timedelta(days=3))

        assert resumed.status == SubscriptionStatus.ACTIVE.value
        assert resumed.paused_at is None
        assert resumed.subscription_ends_at == original_end + timedelta(days=3)

    async def test_paused_tenant_does_not_expire(self, service, make_tenant, tiers):
        await make_tenant("biz-1", status=SubscriptionStatus.ACTIVE, tier=tiers["basic"])
        await service.pause("biz-1", now=NOW)

        status = await service.subscription_status("biz-1", now=NOW + timedelta(days=60))

        assert status["status"] == SubscriptionStatus.PAUSED

    async def test_resume_requires_paused(self, service, make_tenant, tiers):
        await make_tenant("biz-1", status=SubscriptionStatus.ACTIVE, tier=tiers["basic"])

        with pytest.raises(InvalidTransition):
            await service.resume("biz-1", now=NOW)

    async def test_cancel_overdue_records_reason(self, service, make_tenant):
        await make_tenant("biz-1", trial_ends_at=NOW - timedelta(days=2))

        tenant = await service.cancel("biz-1", reason="  closing the shop ", now=NOW)

        assert tenant.status == SubscriptionStatus.CANCELLED.value
        assert tenant.cancelled_at == NOW
        assert tenant.cancellation_reason == "closing the shop"

    async def test_cancelled_is_terminal(self, service, make_tenant):
        await make_tenant("biz-1")
        await service.cancel("biz-1", now=NOW)

        with pytest.raises(InvalidTransition):
            await service.cancel("biz-1", now=NOW)
        with pytest.raises(InvalidTransition):
            await service.resume("biz-1", now=NOW)

    async def test_cancel_suspended_rejected(self, service, make_tenant):
        await make_tenant("biz-1", trial_ends_at=NOW - timedelta(days=30))

        with pytest.raises(InvalidTransition):
            await service.cancel("biz-1", now=NOW)


class TestConditionalWrites:

    async def test_stale_version_loses(self, db_session, make_tenant, tiers):
        """A writer holding an old version changes nothing"""
        await make_tenant("biz-1", status=SubscriptionStatus.ACTIVE, tier=tiers["basic"])
        repo = TenantRepository(db_session)
        stale = await repo.get_by_id("biz-1", refresh=True)
        await db_session.execute(
            update(Tenant)
            .where(Tenant.id == "biz-1")
            .values(version=Tenant.version + 1)
            .execution_options(synchronize_session=False)
        )
        await db_session.commit()

        applied = await repo.transition(stale, {"status": SubscriptionStatus.PAUSED.value})
        await db_session.commit()
        current = await repo.get_by_id("biz-1", refresh=True)

        assert applied is False
        assert current.status == SubscriptionStatus.ACTIVE.value

    def test_effective_state_is_pure(self):
        tenant = Tenant(
            id="biz-x",
            status=SubscriptionStatus.TRIAL.value,
            trial_ends_at=NOW - timedelta(days=1),
        )

        state = effective_state(tenant, NOW)

        assert state.status == SubscriptionStatus.OVERDUE
        assert tenant.status == SubscriptionStatus.TRIAL.value
