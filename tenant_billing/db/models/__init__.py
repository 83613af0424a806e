from tenant_billing.db.models.tenant import Tenant
from tenant_billing.db.models.tier import Tier
from tenant_billing.db.models.invoice import Invoice, InvoiceSequence
from tenant_billing.db.models.catalog import Product, Order, StoredFile

__all__ = ["Tenant", "Tier", "Invoice", "InvoiceSequence", "Product", "Order", "StoredFile"]
