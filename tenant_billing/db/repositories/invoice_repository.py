# tenant_billing/db/repositories/invoice_repository.py
from typing import Any, Iterable, List, Optional
from sqlalchemy import select, update, insert
from sqlalchemy.ext.asyncio import AsyncSession

from tenant_billing.core.constants import OPEN_INVOICE_STATUSES
from tenant_billing.db.base import utcnow
from tenant_billing.db.models.invoice import Invoice, InvoiceSequence
from tenant_billing.db.repositories.base import BaseRepository

INVOICE_SEQUENCE = "invoice"


def _values(statuses: Iterable[Any]) -> List[str]:
    return [getattr(s, "value", s) for s in statuses]


class InvoiceRepository(BaseRepository[Invoice]):
    """Repository for payment invoices"""

    def __init__(self, session: AsyncSession):
        super().__init__(Invoice, session)

    async def get_open_for_tenant(self, tenant_id: str) -> Optional[Invoice]:
        """The tenant's invoice in PENDING, SUBMITTED or UNDER_REVIEW, if any"""
        result = await self.session.execute(
            select(Invoice)
            .where(Invoice.tenant_id == tenant_id)
            .where(Invoice.status.in_(_values(OPEN_INVOICE_STATUSES)))
            .order_by(Invoice.created_at.desc())
            .limit(1)
        )
        return result.unique().scalar_one_or_none()

    async def list_for_tenant(
        self,
        tenant_id: str,
        statuses: Optional[Iterable[Any]] = None,
        limit: int = 100,
    ) -> List[Invoice]:
        """Tenant's invoices, newest first"""
        query = select(Invoice).where(Invoice.tenant_id == tenant_id)
        if statuses is not None:
            query = query.where(Invoice.status.in_(_values(statuses)))
        query = query.order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.unique().scalars().all())

    async def list_by_status(self, statuses: Iterable[Any], limit: int = 100) -> List[Invoice]:
        """Invoices across tenants, oldest submission first (review queue order)"""
        result = await self.session.execute(
            select(Invoice)
            .where(Invoice.status.in_(_values(statuses)))
            .order_by(Invoice.submission_date.asc(), Invoice.created_at.asc())
            .limit(limit)
        )
        return list(result.unique().scalars().all())

    async def set_status(self, invoice: Invoice, expected: Iterable[Any], values: dict) -> bool:
        """Move an invoice out of one of the `expected` statuses atomically"""
        return await self.compare_and_set(
            invoice.id,
            [Invoice.status.in_(_values(expected))],
            {**values, "updated_at": utcnow()},
        )

    async def next_invoice_number(self) -> str:
        """
        Allocate the next `INV-<sequence>` number.

        The counter row stays locked by the UPDATE until the surrounding
        transaction ends, so concurrent requests queue instead of colliding,
        and a rolled-back request never hands out its number.
        """
        result = await self.session.execute(
            update(InvoiceSequence)
            .where(InvoiceSequence.name == INVOICE_SEQUENCE)
            .values(value=InvoiceSequence.value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.session.execute(
                insert(InvoiceSequence).values(name=INVOICE_SEQUENCE, value=1)
            )
        value = (
            await self.session.execute(
                select(InvoiceSequence.value).where(InvoiceSequence.name == INVOICE_SEQUENCE)
            )
        ).scalar_one()
        return f"INV-{value:06d}"
