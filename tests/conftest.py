"""
Pytest configuration and fixtures
Shared test setup for all test modules
"""

import pytest
from typing import AsyncGenerator, Dict
from decimal import Decimal
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from tenant_billing.main import app
from tenant_billing.core.constants import SubscriptionStatus
from tenant_billing.db.base import Base, utcnow
from tenant_billing.db.database import get_db
from tenant_billing.db.models import Tenant, Tier, Product, Order, StoredFile

# In-memory SQLite shared across sessions through a single connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed clock for service-level tests
NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture(scope="function")
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Clean database for each test"""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """API client with the database dependency pointed at the test engine"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def tiers(session_factory) -> Dict[str, Tier]:
    """
    Tier catalog: AE trial, Basic, Pro, Premium (unlimited) plus a US plan.

    Written through their own session so the returned objects stay loaded
    after a service rolls the test session back.
    """
    catalog = {
        "trial": Tier(
            name="Trial", country="AE", currency="AED", monthly_price=Decimal("0.00"),
            product_limit=10, order_limit_per_month=50, storage_limit_mb=100,
            plan_days=14, tier_order=0, is_trial=True,
        ),
        "basic": Tier(
            name="Basic", country="AE", currency="AED", monthly_price=Decimal("29.00"),
            product_limit=10, order_limit_per_month=3, storage_limit_mb=1,
            plan_days=30, tier_order=1,
        ),
        "pro": Tier(
            name="Pro", country="AE", currency="AED", monthly_price=Decimal("49.00"),
            product_limit=100, order_limit_per_month=1000, storage_limit_mb=1024,
            plan_days=30, tier_order=2,
        ),
        "premium": Tier(
            name="Premium", country="AE", currency="AED", monthly_price=Decimal("120.00"),
            product_limit=-1, order_limit_per_month=-1, storage_limit_mb=-1,
            plan_days=30, overdue_grace_days=3, tier_order=3,
        ),
        "us_basic": Tier(
            name="Basic", country="US", currency="USD", monthly_price=Decimal("20.00"),
            product_limit=40, order_limit_per_month=600, storage_limit_mb=500,
            plan_days=30, tier_order=1,
        ),
    }
    async with session_factory() as session:
        session.add_all(catalog.values())
        await session.commit()
    return catalog


@pytest.fixture
def make_tenant(session_factory):
    """
    Factory for tenants in a given lifecycle state.

    Trial tenants end their trial 14 days after `now`; active tenants are
    ten days into a 30 day period. Any column can be overridden.
    """

    async def _make(
        tenant_id: str = "biz-1",
        status: SubscriptionStatus = SubscriptionStatus.TRIAL,
        tier: Tier = None,
        country: str = "AE",
        now: datetime = NOW,
        **fields,
    ) -> Tenant:
        values = {
            "id": tenant_id,
            "name": f"Business {tenant_id}",
            "country": country,
            "status": status.value,
            "current_tier_id": tier.id if tier is not None else None,
        }
        if status == SubscriptionStatus.TRIAL:
            values["trial_ends_at"] = now + timedelta(days=14)
        else:
            values["trial_ends_at"] = now - timedelta(days=20)
            values["subscription_starts_at"] = now - timedelta(days=10)
            values["subscription_ends_at"] = now + timedelta(days=20)
        values.update(fields)

        tenant = Tenant(**values)
        async with session_factory() as session:
            session.add(tenant)
            await session.commit()
        return tenant

    return _make


@pytest.fixture
def add_products(db_session: AsyncSession):
    async def _add(tenant_id: str, count: int, is_active: bool = True):
        db_session.add_all([
            Product(tenant_id=tenant_id, name=f"Product {i}", is_active=is_active)
            for i in range(count)
        ])
        await db_session.commit()

    return _add


@pytest.fixture
def add_orders(db_session: AsyncSession):
    async def _add(tenant_id: str, count: int, status: str = "PENDING", created_at: datetime = NOW):
        db_session.add_all([
            Order(tenant_id=tenant_id, status=status, created_at=created_at)
            for _ in range(count)
        ])
        await db_session.commit()

    return _add


@pytest.fixture
def add_files(db_session: AsyncSession):
    async def _add(tenant_id: str, *sizes: int):
        db_session.add_all([
            StoredFile(tenant_id=tenant_id, file_name=f"file-{i}.jpg", size_bytes=size)
            for i, size in enumerate(sizes)
        ])
        await db_session.commit()

    return _add


@pytest.fixture
def tenant_headers():
    def _headers(tenant_id: str = "biz-1") -> dict:
        return {"X-Tenant-ID": tenant_id}

    return _headers


@pytest.fixture
def admin_headers() -> dict:
    return {"X-Admin-ID": "admin-1"}


@pytest.fixture
def live_now() -> datetime:
    """Wall-clock now, for tests that go through the API"""
    return utcnow()
