"""Caller identity resolvers for FastAPI routes."""
from dataclasses import dataclass
from typing import Optional
from fastapi import Header, HTTPException, status


@dataclass(frozen=True)
class Caller:
    """Identity asserted by the upstream gateway"""
    tenant_id: Optional[str] = None
    admin_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.admin_id is not None

    @property
    def actor_id(self) -> str:
        return self.admin_id or self.tenant_id or ""

    def can_act_for(self, tenant_id: str) -> bool:
        return self.is_admin or self.tenant_id == tenant_id


async def get_caller(
    x_tenant_id: Optional[str] = Header(None),
    x_admin_id: Optional[str] = Header(None),
) -> Caller:
    """
    FastAPI dependency that extracts the caller from request headers.

    Args:
        x_tenant_id: Tenant ID from X-Tenant-ID header
        x_admin_id: Platform admin ID from X-Admin-ID header

    Raises:
        HTTPException: 401 if neither header is present
    """
    tenant_id = x_tenant_id.strip() if x_tenant_id else None
    admin_id = x_admin_id.strip() if x_admin_id else None
    if not tenant_id and not admin_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Tenant-ID or X-Admin-ID header is required",
        )
    return Caller(tenant_id=tenant_id or None, admin_id=admin_id or None)


def ensure_tenant_access(caller: Caller, tenant_id: str) -> None:
    """Raise 403 unless the caller is the tenant itself or an admin"""
    if not caller.can_act_for(tenant_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to act for this tenant",
        )


async def require_admin(
    x_admin_id: Optional[str] = Header(None),
) -> str:
    """FastAPI dependency for platform-admin routes; returns the admin id"""
    if not x_admin_id or not x_admin_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Admin-ID header is required",
        )
    return x_admin_id.strip()
