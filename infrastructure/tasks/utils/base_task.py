"""Common base task for Celery jobs"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from celery import Task
from core.logging_config import get_logger

logger = get_logger(__name__)


def run_async(factory: Callable[[], Awaitable[Any]]) -> Any:
    """Run one coroutine per task on a fresh loop, disposing pooled connections after."""

    async def _runner():
        from infrastructure.database import engine

        try:
            return await factory()
        finally:
            # Pooled asyncpg connections are bound to the loop that opened them
            await engine.dispose()

    return asyncio.run(_runner())


class BaseTask(Task):
    """Provides unified failure logging for periodic jobs."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.error(
            "celery_task_failure",
            task_id=task_id,
            task_name=self.name,
            args=args,
            kwargs=kwargs,
            exc=str(exc),
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):  # type: ignore[override]
        logger.info(
            "celery_task_success",
            task_id=task_id,
            task_name=self.name,
            result=retval,
        )
        super().on_success(retval, task_id, args, kwargs)
