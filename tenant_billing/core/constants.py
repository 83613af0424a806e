# tenant_billing/core/constants.py
from enum import Enum
from typing import Dict, FrozenSet


class SubscriptionStatus(str, Enum):
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    OVERDUE = "OVERDUE"
    SUSPENDED = "SUSPENDED"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"


class InvoiceStatus(str, Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class InvoiceType(str, Enum):
    TRIAL_CONVERSION = "TRIAL_CONVERSION"
    RENEWAL = "RENEWAL"
    UPGRADE = "UPGRADE"
    DOWNGRADE = "DOWNGRADE"


class ReviewDecision(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class LifecycleCommand(str, Enum):
    START_TRIAL = "start_trial"
    ACTIVATE = "activate"
    CHANGE_TIER = "change_tier"
    PAUSE = "pause"
    RESUME = "resume"
    CANCEL = "cancel"
    REQUEST_TIER_CHANGE = "request_tier_change"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


UNLIMITED = -1

# Invoices a tenant may hold at most one of at a time
OPEN_INVOICE_STATUSES: FrozenSet[InvoiceStatus] = frozenset({
    InvoiceStatus.PENDING,
    InvoiceStatus.SUBMITTED,
    InvoiceStatus.UNDER_REVIEW,
})

# Invoices still awaiting tenant or reviewer action
ACTIONABLE_INVOICE_STATUSES: FrozenSet[InvoiceStatus] = OPEN_INVOICE_STATUSES | {InvoiceStatus.REJECTED}

PAYABLE_INVOICE_STATUSES: FrozenSet[InvoiceStatus] = frozenset({
    InvoiceStatus.PENDING,
    InvoiceStatus.REJECTED,
})

REVIEWABLE_INVOICE_STATUSES: FrozenSet[InvoiceStatus] = frozenset({
    InvoiceStatus.SUBMITTED,
    InvoiceStatus.UNDER_REVIEW,
})

# Orders that never count towards the monthly order limit
UNCOUNTED_ORDER_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.CANCELLED,
    OrderStatus.RETURNED,
})

# Stored statuses that elapsed time can move on
ELAPSING_STATUSES: FrozenSet[SubscriptionStatus] = frozenset({
    SubscriptionStatus.TRIAL,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.OVERDUE,
})

# Effective statuses that get a system-issued renewal invoice
RENEWABLE_STATUSES: FrozenSet[SubscriptionStatus] = frozenset({
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.OVERDUE,
    SubscriptionStatus.SUSPENDED,
})

# Effective statuses of a tenant whose trial ran out before it bought a tier
LAPSED_STATUSES: FrozenSet[SubscriptionStatus] = frozenset({
    SubscriptionStatus.OVERDUE,
    SubscriptionStatus.SUSPENDED,
})

# Effective statuses that get a system-issued trial conversion invoice
CONVERTIBLE_STATUSES: FrozenSet[SubscriptionStatus] = LAPSED_STATUSES | {SubscriptionStatus.TRIAL}

ORDER_BLOCKING_STATUSES: FrozenSet[SubscriptionStatus] = frozenset({
    SubscriptionStatus.OVERDUE,
    SubscriptionStatus.SUSPENDED,
    SubscriptionStatus.CANCELLED,
})


# Lifecycle transition table: command -> effective statuses it may start from.
# START_TRIAL has no source state; it only applies to a tenant that does not exist yet.
TRANSITIONS: Dict[LifecycleCommand, FrozenSet[SubscriptionStatus]] = {
    LifecycleCommand.START_TRIAL: frozenset(),
    LifecycleCommand.ACTIVATE: frozenset({
        SubscriptionStatus.TRIAL,
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.OVERDUE,
        SubscriptionStatus.SUSPENDED,
        SubscriptionStatus.PAUSED,
    }),
    LifecycleCommand.CHANGE_TIER: frozenset({SubscriptionStatus.ACTIVE}),
    LifecycleCommand.PAUSE: frozenset({SubscriptionStatus.ACTIVE}),
    LifecycleCommand.RESUME: frozenset({SubscriptionStatus.PAUSED}),
    LifecycleCommand.CANCEL: frozenset({
        SubscriptionStatus.TRIAL,
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.OVERDUE,
        SubscriptionStatus.PAUSED,
    }),
    LifecycleCommand.REQUEST_TIER_CHANGE: frozenset({
        SubscriptionStatus.TRIAL,
        SubscriptionStatus.ACTIVE,
    }),
}

# Status each command lands in
TRANSITION_TARGETS: Dict[LifecycleCommand, SubscriptionStatus] = {
    LifecycleCommand.START_TRIAL: SubscriptionStatus.TRIAL,
    LifecycleCommand.ACTIVATE: SubscriptionStatus.ACTIVE,
    LifecycleCommand.CHANGE_TIER: SubscriptionStatus.ACTIVE,
    LifecycleCommand.PAUSE: SubscriptionStatus.PAUSED,
    LifecycleCommand.RESUME: SubscriptionStatus.ACTIVE,
    LifecycleCommand.CANCEL: SubscriptionStatus.CANCELLED,
}

# Invoice types that (re)start the paid billing period when approved
PERIOD_STARTING_INVOICE_TYPES: FrozenSet[InvoiceType] = frozenset({
    InvoiceType.TRIAL_CONVERSION,
    InvoiceType.RENEWAL,
})
