# scripts/seed_tiers.py
"""Seed the tier catalog with the default plans"""
import asyncio
from decimal import Decimal

from tenant_billing.db.database import async_session_local, init_db
from tenant_billing.db.repositories.tier_repository import TierRepository

DEFAULT_TIERS = [
    # name, country, currency, price, products, orders/month, storage MB, order, is_trial, plan days
    ("Trial", "AE", "AED", "0", 10, 50, 100, 0, True, 14),
    ("Basic", "AE", "AED", "29", 40, 600, 500, 1, False, 30),
    ("Pro", "AE", "AED", "49", 100, 1500, 1024, 2, False, 30),
    ("Premium", "AE", "AED", "120", -1, -1, 2048, 3, False, 30),
    ("Trial", "US", "USD", "0", 10, 50, 100, 0, True, 14),
    ("Basic", "US", "USD", "20", 40, 600, 500, 1, False, 30),
    ("Premium", "US", "USD", "40", -1, -1, 2048, 3, False, 30),
]


async def seed_tiers():
    """Create any default tier that is not in the catalog yet"""
    await init_db()
    async with async_session_local() as session:
        tier_repo = TierRepository(session)

        for name, country, currency, price, products, orders, storage, order, is_trial, days in DEFAULT_TIERS:
            existing = await tier_repo.list_for_country(country, include_inactive=True)
            if any(t.name == name for t in existing):
                continue

            tier = await tier_repo.create({
                "name": name,
                "country": country,
                "currency": currency,
                "monthly_price": Decimal(price),
                "product_limit": products,
                "order_limit_per_month": orders,
                "storage_limit_mb": storage,
                "tier_order": order,
                "is_trial": is_trial,
                "plan_days": days,
            })
            print(f"Created tier: {tier.name} ({tier.country}) {tier.monthly_price} {tier.currency}")

        await session.commit()


if __name__ == "__main__":
    asyncio.run(seed_tiers())
