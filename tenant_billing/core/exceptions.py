# tenant_billing/core/exceptions.py
"""
Billing engine exceptions.

Every error carries a machine-readable code, the HTTP status the API answers
with, context about the rejected request and a hint for the caller.
"""
from typing import Any, Dict, Iterable, Optional


class BillingError(Exception):
    """Base error for the subscription and billing engine."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: int = 400,
        context: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
    ):
        self.message = message
        self.error_code = error_code or "BILLING_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


class NotFound(BillingError):
    """Unknown tenant, tier or invoice id."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} {resource_id} not found",
            "NOT_FOUND",
            status_code=404,
            context={"resource": resource, "id": str(resource_id)},
        )


class InvalidTransition(BillingError):
    """Lifecycle command not valid from the tenant's current state."""

    def __init__(self, tenant_id: str, current: Any, requested: Any, message: Optional[str] = None):
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        super().__init__(
            message or f"Cannot {requested_value} tenant {tenant_id} from status {current_value}",
            "INVALID_TRANSITION",
            status_code=409,
            context={
                "tenant_id": tenant_id,
                "current_status": current_value,
                "requested": requested_value,
            },
            recovery_hint="Refresh the subscription status and issue the command valid for it",
        )


class ConflictingInvoice(BillingError):
    """A tier change was requested while another invoice is still open."""

    def __init__(self, tenant_id: str, invoice_id: Any = None, invoice_number: Optional[str] = None):
        context: Dict[str, Any] = {"tenant_id": tenant_id}
        if invoice_id is not None:
            context["invoice_id"] = str(invoice_id)
        if invoice_number:
            context["invoice_number"] = invoice_number
        super().__init__(
            f"Tenant {tenant_id} already has an open invoice",
            "CONFLICTING_INVOICE",
            status_code=409,
            context=context,
            recovery_hint="Pay or wait for review of the existing invoice instead",
        )


class InvalidState(BillingError):
    """Invoice operation not valid from the invoice's current status."""

    def __init__(self, invoice_id: Any, current: Any, allowed: Iterable[Any]):
        current_value = getattr(current, "value", current)
        allowed_values = sorted(getattr(s, "value", s) for s in allowed)
        super().__init__(
            f"Invoice {invoice_id} is {current_value}; expected one of {', '.join(allowed_values)}",
            "INVALID_STATE",
            status_code=409,
            context={
                "invoice_id": str(invoice_id),
                "current_status": current_value,
                "allowed_statuses": allowed_values,
            },
            recovery_hint="Reload the invoice before retrying",
        )


class MissingReason(BillingError):
    """Rejection submitted without a reason."""

    def __init__(self, invoice_id: Any):
        super().__init__(
            "A rejection reason is required",
            "MISSING_REASON",
            status_code=422,
            context={"invoice_id": str(invoice_id)},
        )


class MissingReceipt(BillingError):
    """Payment proof submitted without a receipt reference."""

    def __init__(self, invoice_id: Any):
        super().__init__(
            "A receipt reference is required",
            "MISSING_RECEIPT",
            status_code=422,
            context={"invoice_id": str(invoice_id)},
            recovery_hint="Upload the receipt first and submit the returned reference",
        )


class LimitExceeded(BillingError):
    """Tier limit reached for a counted resource."""

    def __init__(self, tenant_id: str, resource: str, limit: int, current_count: Any):
        super().__init__(
            f"{resource} limit reached ({current_count}/{limit})",
            "LIMIT_EXCEEDED",
            status_code=403,
            context={
                "tenant_id": tenant_id,
                "resource": resource,
                "limit": limit,
                "current_count": current_count,
            },
            recovery_hint="Upgrade the subscription tier to raise the limit",
        )


class SubscriptionInactive(BillingError):
    """Tenant's subscription does not allow order processing."""

    def __init__(self, tenant_id: str, status: Any):
        status_value = getattr(status, "value", status)
        super().__init__(
            f"Subscription inactive for tenant {tenant_id} ({status_value})",
            "SUBSCRIPTION_INACTIVE",
            status_code=402,
            context={"tenant_id": tenant_id, "status": status_value},
            recovery_hint="Settle the outstanding invoice to restore order processing",
        )
