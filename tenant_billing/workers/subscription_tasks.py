# tenant_billing/workers/subscription_tasks.py
import asyncio
from typing import Dict, Any
from celery import Task

from tenant_billing.workers.celery_app import celery_app
from tenant_billing.core.logging import logger


class SubscriptionTask(Task):
    """Custom task class for subscription housekeeping"""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Handle task failure"""
        logger.error(f"Subscription task {task_id} failed: {exc}", exc_info=True)


@celery_app.task(bind=True, base=SubscriptionTask, name="subscription_sweep")
def subscription_sweep_task(self) -> Dict[str, Any]:
    """Issue renewal invoices and store elapsed lifecycle statuses"""
    return asyncio.run(_run_sweep_async())


async def _run_sweep_async() -> Dict[str, Any]:
    """Async sweep in a fresh session"""
    from tenant_billing.db.database import async_session_local, close_db
    from tenant_billing.services.subscription_sweep import run_subscription_sweep

    try:
        async with async_session_local() as session:
            return await run_subscription_sweep(session)
    finally:
        # Pooled connections are bound to this task's event loop
        await close_db()
