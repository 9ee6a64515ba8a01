"""
Carrier label refunds: resolve refunds still queued or pending at the carrier.
"""
from __future__ import annotations

from celery import shared_task

from core.logging_config import get_logger
from ..utils.base_task import BaseTask, run_async

logger = get_logger(__name__)


@shared_task(name="labels.poll_pending_refunds", bind=True, base=BaseTask, max_retries=3, default_retry_delay=120)
def poll_pending_refunds(self, limit: int = 100) -> dict:
    from infrastructure.container import ServiceContainer

    async def _run():
        container = ServiceContainer()
        if container.carrier is None:
            logger.info("label_refund_poll_skipped", reason="carrier_not_configured")
            return 0
        try:
            return await container.label_service().poll_pending_refunds(limit=limit)
        finally:
            await container.aclose()

    return {"resolved": run_async(_run)}
