# tenant_billing/workers/celery_app.py
from celery import Celery

from tenant_billing.core.config import settings

celery_app = Celery(
    "tenant_billing",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["tenant_billing.workers.subscription_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
    task_track_started=True,
    task_time_limit=300,
    task_soft_time_limit=240,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    beat_schedule={
        "subscription-sweep": {
            "task": "subscription_sweep",
            "schedule": settings.SWEEP_INTERVAL_MINUTES * 60.0,
        },
    },
)
