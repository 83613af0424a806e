"""
Tests for the background worker wiring
"""
from unittest.mock import patch, AsyncMock

from tenant_billing.core.config import settings
from tenant_billing.workers.celery_app import celery_app
from tenant_billing.workers.subscription_tasks import subscription_sweep_task


class TestCeleryWiring:

    def test_sweep_is_scheduled(self):
        entry = celery_app.conf.beat_schedule["subscription-sweep"]

        assert entry["task"] == "subscription_sweep"
        assert entry["schedule"] == settings.SWEEP_INTERVAL_MINUTES * 60.0

    def test_task_registered(self):
        assert "subscription_sweep" in celery_app.tasks

    @patch("tenant_billing.workers.subscription_tasks._run_sweep_async", new_callable=AsyncMock)
    def test_task_returns_sweep_results(self, mock_sweep):
        mock_sweep.return_value = {"trial_conversion_invoices": 0, "renewal_invoices": 1, "overdue_updates": 0, "suspended": 0, "errors": []}

        result = subscription_sweep_task.apply().get()

        assert result["renewal_invoices"] == 1
        mock_sweep.assert_awaited_once()
