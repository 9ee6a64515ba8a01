"""
Payment reconciliation: apply captures whose webhook never arrived.
"""
from __future__ import annotations

from dataclasses import asdict

from celery import shared_task

from ..utils.base_task import BaseTask, run_async


@shared_task(name="payments.reconcile_pending_intents", bind=True, base=BaseTask, max_retries=3, default_retry_delay=60)
def reconcile_pending_intents(self, limit: int = 100) -> dict:
    from infrastructure.container import ServiceContainer

    async def _run():
        container = ServiceContainer()
        try:
            return await container.payment_service().reconcile_pending_intents(limit=limit)
        finally:
            await container.aclose()

    report = run_async(_run)
    return asdict(report)
