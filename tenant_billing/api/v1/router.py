from fastapi import APIRouter
from tenant_billing.api.v1 import subscriptions, invoices, tiers, enforcement, admin

api_router = APIRouter()

api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(tiers.router, prefix="/tiers", tags=["tiers"])
api_router.include_router(enforcement.router, prefix="/enforcement", tags=["enforcement"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
