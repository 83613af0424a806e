# tenant_billing/db/models/catalog.py
"""
Tenant-owned records written by the admin console and storefront.

The billing engine only reads these to count usage, except for the guarded
slots in the enforcement gate where the caller inserts inside the gate's
transaction.
"""
from sqlalchemy import Column, String, Boolean, BigInteger, ForeignKey, Uuid
import uuid
from tenant_billing.db.base import BaseModel


class Product(BaseModel):
    __tablename__ = "products"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(100), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


class Order(BaseModel):
    __tablename__ = "orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(100), ForeignKey("tenants.id"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="PENDING", index=True)


class StoredFile(BaseModel):
    __tablename__ = "stored_files"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(100), ForeignKey("tenants.id"), nullable=False, index=True)
    file_name = Column(String(500), nullable=False)
    size_bytes = Column(BigInteger, nullable=False, default=0)
