"""
Passive lifecycle derivation.

Time-based transitions are never stored by a read. Every query recomputes the
effective status from the stored one and the tenant's time boundaries:

    TRIAL   and trial_ends_at < now          -> OVERDUE since trial_ends_at
    ACTIVE  and subscription_ends_at < now   -> OVERDUE since subscription_ends_at
    OVERDUE for longer than the grace window -> SUSPENDED

All functions here are pure so commands, queries and the sweep agree.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from tenant_billing.core.config import settings
from tenant_billing.core.constants import SubscriptionStatus

DAY = timedelta(days=1)


@dataclass(frozen=True)
class EffectiveState:
    status: SubscriptionStatus
    overdue_since: Optional[datetime] = None
    grace_ends_at: Optional[datetime] = None


def grace_window(tier=None) -> timedelta:
    """Grace window for a tenant on `tier`; per-tier override wins over the default"""
    days = getattr(tier, "overdue_grace_days", None)
    if days is None:
        days = settings.OVERDUE_GRACE_DAYS
    return timedelta(days=days)


def effective_state(tenant, now: datetime, grace: Optional[timedelta] = None) -> EffectiveState:
    """Apply elapsed-time transitions to a tenant's stored status"""
    if grace is None:
        grace = grace_window(getattr(tenant, "current_tier", None))
    status = SubscriptionStatus(tenant.status)

    overdue_since = None
    if status == SubscriptionStatus.TRIAL:
        if tenant.trial_ends_at is None or tenant.trial_ends_at >= now:
            return EffectiveState(status)
        overdue_since = tenant.trial_ends_at
    elif status == SubscriptionStatus.ACTIVE:
        if tenant.subscription_ends_at is None or tenant.subscription_ends_at >= now:
            return EffectiveState(status)
        overdue_since = tenant.subscription_ends_at
    elif status == SubscriptionStatus.OVERDUE:
        overdue_since = tenant.overdue_since or tenant.subscription_ends_at or tenant.trial_ends_at
        if overdue_since is None:
            return EffectiveState(status)
    else:
        return EffectiveState(status)

    grace_ends_at = overdue_since + grace
    if now > grace_ends_at:
        return EffectiveState(SubscriptionStatus.SUSPENDED, overdue_since, grace_ends_at)
    return EffectiveState(SubscriptionStatus.OVERDUE, overdue_since, grace_ends_at)


def days_remaining(ends_at: Optional[datetime], now: datetime) -> int:
    """Whole days left until `ends_at`, rounded up, never negative"""
    if ends_at is None:
        return 0
    return max(0, math.ceil((ends_at - now) / DAY))


def current_month_bounds(now: datetime):
    """Start of this calendar month and start of the next one"""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def billing_period(tier=None) -> timedelta:
    """Length of one paid period on `tier`"""
    days = getattr(tier, "plan_days", None) or settings.BILLING_PERIOD_DAYS
    return timedelta(days=days)
