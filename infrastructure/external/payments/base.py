"""
Base payment client implementing shared concerns: bounded SDK calls,
read-only retry, logging, status mapping.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

import functools
from typing import Any, Callable, Optional

import anyio
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from application.dtos.payments import (
    CreatePayment,
    PaymentIntent,
    RefundRequest,
    RefundResult,
    QueryPayment,
    WebhookEvent,
)
from application.ports.payment_gateway import PaymentGateway
from infrastructure.external.payments.exceptions import PaymentTimeoutError
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)


class BasePaymentClient(PaymentGateway):
    provider: str = "base"
    # Transport-level failures worth retrying on read-only calls
    retryable: tuple[type[BaseException], ...] = (PaymentTimeoutError,)

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._retry_cfg = retry or {"max": 2, "base": 0.2}

    @property
    def total_timeout(self) -> float:
        return float(self._timeouts_cfg["total"])

    async def _call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking SDK call in a worker thread, bounded by the total timeout."""
        try:
            with anyio.fail_after(self.total_timeout):
                return await anyio.to_thread.run_sync(functools.partial(fn, *args, **kwargs))
        except TimeoutError as exc:
            self._log("provider_call_timeout", call=getattr(fn, "__qualname__", str(fn)))
            raise PaymentTimeoutError("Payment processor timed out", provider=self.provider) from exc

    async def _retry(self, fn: Callable[[], Any]):
        """Retry for idempotent reads only; never wrap money-moving calls."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(self.retryable),
            reraise=True,
        ):
            with attempt:
                return await fn()

    async def aclose(self) -> None:
        """Nothing pooled by default."""

    # Default implementations raise to force override where needed
    async def create_payment(self, req: CreatePayment) -> PaymentIntent:  # type: ignore[override]
        raise NotImplementedError

    async def query_payment(self, query: QueryPayment) -> PaymentIntent:  # type: ignore[override]
        raise NotImplementedError

    async def refund(self, req: RefundRequest) -> RefundResult:  # type: ignore[override]
        raise NotImplementedError

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:  # type: ignore[override]
        raise NotImplementedError

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
