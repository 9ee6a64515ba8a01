"""
Stripe PaymentIntents adapter using the official stripe-python SDK.

Notes on SDK usage:
- SDK calls are blocking; they run in a worker thread bounded by the
  configured total timeout.
- Idempotency keys are supplied via the `idempotency_key` kwarg. Money-moving
  calls are never retried here; a retry goes through the caller with the
  same key.
- Webhook verification uses `stripe.WebhookSignature.verify_header` against
  the raw body and the `Stripe-Signature` header.
"""
from __future__ import annotations

import json
from typing import Any, Optional

import stripe

from application.dtos.payments import (
    CreatePayment,
    PaymentIntent,
    RefundRequest,
    RefundResult,
    QueryPayment,
    WebhookEvent,
)
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.money import from_minor_units, to_minor_units
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentSignatureError,
    PaymentTimeoutError,
)


logger = get_logger(__name__)

# Stripe only accepts these refund reasons; free text goes to metadata
_STRIPE_REFUND_REASONS = {"duplicate", "fraudulent", "requested_by_customer"}


def _header(headers: dict[str, Any], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


class StripeClient(BasePaymentClient):
    provider = "stripe"

    def __init__(self, *, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        super().__init__(
            timeouts=payment_settings.timeouts.model_dump(),
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
        )
        self.secret_key = secret_key or payment_settings.stripe.secret_key
        self.webhook_secret = webhook_secret or payment_settings.stripe.webhook_secret
        if not self.secret_key:
            raise RuntimeError("PAYMENT__STRIPE__SECRET_KEY not configured")
        stripe.api_key = self.secret_key
        # Retries of money-moving calls are the caller's decision
        stripe.max_network_retries = 0
        self.retryable = (PaymentTimeoutError, stripe.APIConnectionError, stripe.RateLimitError)

    def _provider_error(self, exc: stripe.StripeError) -> PaymentProviderError:
        code = getattr(exc, "code", None) or type(exc).__name__
        return PaymentProviderError(
            getattr(exc, "user_message", None) or "Payment processor error",
            provider=self.provider,
            provider_code=str(code),
            details={"http_status": getattr(exc, "http_status", None), "error": str(exc)},
        )

    def _to_intent(self, pi: Any, order_id: Optional[str] = None) -> PaymentIntent:
        currency = str(pi.get("currency") or "usd").upper()
        metadata = dict(pi.get("metadata") or {})
        return PaymentIntent(
            intent_id=str(pi["id"]),
            status=self._map_status(str(pi["status"])),
            client_secret=pi.get("client_secret"),
            provider=self.provider,
            amount=from_minor_units(int(pi.get("amount") or 0), currency),
            currency=currency,
            provider_ref=str(pi.get("latest_charge") or "") or None,
            order_id=order_id or metadata.get("order_id"),
            metadata=metadata,
        )

    async def create_payment(self, req: CreatePayment) -> PaymentIntent:  # type: ignore[override]
        metadata = {k: str(v) for k, v in (req.metadata or {}).items()}
        metadata.setdefault("order_id", req.order_id)
        metadata.setdefault("stage", req.stage)
        amount_minor = to_minor_units(req.amount, req.currency)
        self._log("create_payment", order_id=req.order_id, amount_minor=amount_minor, currency=req.currency)
        try:
            pi = await self._call(
                stripe.PaymentIntent.create,
                amount=amount_minor,
                currency=req.currency.lower(),
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                idempotency_key=req.idempotency_key,
            )
        except stripe.StripeError as exc:
            raise self._provider_error(exc) from exc
        return self._to_intent(pi, req.order_id)

    async def query_payment(self, query: QueryPayment) -> PaymentIntent:  # type: ignore[override]
        try:
            pi = await self._retry(lambda: self._call(stripe.PaymentIntent.retrieve, query.intent_id))
        except stripe.StripeError as exc:
            raise self._provider_error(exc) from exc
        return self._to_intent(pi, query.order_id)

    async def refund(self, req: RefundRequest) -> RefundResult:  # type: ignore[override]
        params: dict[str, Any] = {
            "payment_intent": req.intent_id,
            "amount": to_minor_units(req.amount, req.currency),
            "metadata": {"order_id": req.order_id, "reason": req.reason or ""},
            "idempotency_key": req.idempotency_key,
        }
        if req.reason in _STRIPE_REFUND_REASONS:
            params["reason"] = req.reason
        self._log("refund", order_id=req.order_id, intent_id=req.intent_id, amount_minor=params["amount"])
        try:
            refund = await self._call(stripe.Refund.create, **params)
        except stripe.InvalidRequestError as exc:
            # Processor rejected the refund itself (e.g. already refunded)
            return RefundResult(
                refund_id="",
                status="failed",
                provider=self.provider,
                failure_reason=getattr(exc, "user_message", None) or str(exc),
            )
        except stripe.StripeError as exc:
            raise self._provider_error(exc) from exc
        status = self._map_status(str(refund.get("status", "")))
        return RefundResult(
            refund_id=str(refund["id"]),
            status="failed" if status == "canceled" else status,
            provider=self.provider,
            failure_reason=refund.get("failure_reason"),
        )

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:  # type: ignore[override]
        if not self.webhook_secret:
            raise PaymentSignatureError("Missing PAYMENT__STRIPE__WEBHOOK_SECRET", provider=self.provider)
        sig = _header(headers, "Stripe-Signature")
        if not sig:
            raise PaymentSignatureError("Missing Stripe-Signature header", provider=self.provider)
        payload = body.decode("utf-8") if isinstance(body, (bytes, bytearray)) else str(body)
        try:
            stripe.WebhookSignature.verify_header(
                payload,
                sig,
                self.webhook_secret,
                tolerance=payment_settings.webhook.tolerance_seconds,
            )
        except stripe.SignatureVerificationError as exc:
            raise PaymentSignatureError(str(exc), provider=self.provider) from exc
        try:
            event = json.loads(payload)
        except ValueError as exc:
            raise PaymentSignatureError("Webhook body is not valid JSON", provider=self.provider) from exc
        return WebhookEvent(
            id=str(event.get("id")),
            type=str(event.get("type")),
            provider=self.provider,
            data=event.get("data", {}) or {},
            raw_headers=dict(headers),
            raw_body=body,
        )
