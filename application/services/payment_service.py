"""
Application service orchestrating payment capture.

This class depends only on the application PaymentGateway port, the unit of
work and DTOs. Gateway implementations are provided by infrastructure and
must be injected from the composition root (API/tasks), keeping
dependencies one-way.

Every read-modify-write of an order's money columns happens under the
order row lock, and the processed webhook event id is written in the same
transaction, so a redelivered event can never be applied twice.
"""
from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from application.dtos.orders import PaymentSessionDTO
from application.dtos.payments import (
    CreatePayment,
    PaymentIntent,
    QueryPayment,
    RefundRequest,
    WebhookEvent,
)
from application.ports.events import EventPublisher
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.common.exceptions import (
    ConflictError,
    ExternalServiceError,
    OrderNotFoundError,
    PaymentSignatureError,
)
from domain.common.money import from_minor_units, quantize_money
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, PaymentStage, PaymentStatus
from domain.order.events import OrderBalanceDue, OrderDepositPaid, OrderPaid
from domain.payment.entity import IntentStatus, PaymentIntentRecord, ProcessedWebhookEvent
from domain.shipping.entity import LedgerKind, WalletLedgerEntry


logger = get_logger(__name__)

SUCCEEDED_EVENT = "payment_intent.succeeded"
FAILED_EVENT = "payment_intent.payment_failed"
WALLET_TOPUP_PURPOSE = "wallet_topup"


def _ensure_idempotency_key(req: CreatePayment | RefundRequest) -> None:
    if getattr(req, "idempotency_key", None):
        return
    # Stable, reproducible key derived from business identifiers (no timestamp)
    def pick_meta(meta: dict | None) -> str:
        if not meta:
            return ""
        keys = [k for k in ("idempotency_hint", "seller_id") if k in meta]
        return "|".join(f"{k}={meta[k]}" for k in keys)

    if isinstance(req, CreatePayment):
        base = f"create|{req.order_id}|{req.stage}|{req.amount}|{req.currency}|{(req.provider or '').lower()}|{pick_meta(req.metadata)}"
    else:
        base = f"refund|{req.order_id}|{req.intent_id}|{req.amount}|{req.currency}|{(req.provider or '').lower()}"
    setattr(req, "idempotency_key", hashlib.sha256(base.encode("utf-8")).hexdigest())


@dataclass(frozen=True)
class WebhookOutcome:
    # processed | duplicate | ignored | rejected | unknown_order
    status: str
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    order_id: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status != "rejected"


@dataclass(frozen=True)
class ReconcileReport:
    checked: int = 0
    applied: int = 0
    failed: int = 0
    errors: int = 0


def _session_from_record(record: PaymentIntentRecord) -> PaymentSessionDTO:
    return PaymentSessionDTO(
        intent_id=record.provider_intent_id,
        client_secret=record.client_secret,
        stage=record.stage.value,
        amount=record.amount,
        currency=record.currency,
        status=record.status.value,
    )


class PaymentCaptureService:
    def __init__(
        self,
        gateway: PaymentGateway,
        uow_factory: Callable[[], AbstractUnitOfWork],
        publisher: Optional[EventPublisher] = None,
        *,
        reconcile_after_minutes: int = 15,
    ) -> None:
        self.gateway = gateway
        self._uow_factory = uow_factory
        self._publisher = publisher
        self._reconcile_after = timedelta(minutes=reconcile_after_minutes)

    @property
    def provider(self) -> str:
        return self.gateway.provider

    async def _publish(self, events: list) -> None:
        if events and self._publisher is not None:
            await self._publisher.publish(events)

    # ------------------------------------------------------------------
    # Intent creation
    # ------------------------------------------------------------------

    async def initiate_payment(self, order_id: str) -> PaymentSessionDTO:
        """Create (or reuse) the processor intent for the order's next stage."""
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            stage = order.next_payment_stage()
            if stage is None:
                raise ConflictError(
                    "Order has no outstanding payment",
                    details={"order_id": order.id, "payment_status": order.payment_status.value},
                )
            amount = order.amount_due_for(stage)
            for record in await uow.payment_intents.list_by_order(order.id):
                if record.stage == stage and record.status == IntentStatus.PENDING and record.amount == amount:
                    logger.info("payment_intent_reused", order_id=order.id, stage=stage.value)
                    return _session_from_record(record)

        req = CreatePayment(
            order_id=order.id,
            amount=amount,
            currency=order.currency,
            stage=stage.value,
            provider=self.provider,
            metadata={
                "order_id": order.id,
                "stage": stage.value,
                "seller_id": order.seller_id,
                "idempotency_hint": order.idempotency_key or order.id,
            },
        )
        _ensure_idempotency_key(req)
        logger.info(
            "payment_create_request",
            order_id=order.id,
            stage=stage.value,
            amount=str(amount),
            provider=self.provider,
            idempotency_key=req.idempotency_key,
        )
        try:
            intent = await self.gateway.create_payment(req)
        except ExternalServiceError as exc:
            logger.error(
                "payment_create_failed",
                order_id=order.id,
                amount=str(amount),
                provider=exc.provider,
                provider_code=exc.provider_code,
                error=exc.message,
            )
            raise

        record = await self._record_intent(order, stage, amount, req.idempotency_key, intent)
        logger.info(
            "payment_create_response",
            order_id=order.id,
            provider=intent.provider,
            intent_id=intent.intent_id,
            status=intent.status,
        )
        return _session_from_record(record)

    async def _record_intent(
        self,
        order: Order,
        stage: PaymentStage,
        amount,
        idempotency_key: Optional[str],
        intent: PaymentIntent,
    ) -> PaymentIntentRecord:
        async with self._uow_factory() as uow:
            # Same idempotency key returns the same processor intent
            existing = await uow.payment_intents.get_by_provider_intent_id(intent.provider, intent.intent_id)
            if existing is not None:
                return existing
            return await uow.payment_intents.add(
                PaymentIntentRecord(
                    id=uuid.uuid4().hex,
                    order_id=order.id,
                    stage=stage,
                    provider=intent.provider,
                    provider_intent_id=intent.intent_id,
                    amount=amount,
                    currency=order.currency,
                    status=IntentStatus.PENDING,
                    idempotency_key=idempotency_key,
                    client_secret=intent.client_secret,
                )
            )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def handle_webhook(self, headers: dict, body: bytes) -> WebhookOutcome:
        try:
            event = self.gateway.parse_webhook(headers, body)
        except PaymentSignatureError as exc:
            logger.warning("payment_webhook_signature_invalid", provider=self.provider, error=exc.message)
            return WebhookOutcome(status="rejected")
        logger.info("payment_webhook_parsed", provider=self.provider, event_type=event.type, event_id=event.id)

        if event.type == SUCCEEDED_EVENT:
            metadata = event.object.get("metadata") or {}
            if metadata.get("purpose") == WALLET_TOPUP_PURPOSE:
                return await self._apply_topup(event)
            return await self._apply_succeeded(event)
        if event.type == FAILED_EVENT:
            return await self._apply_failed(event)

        logger.info("payment_webhook_ignored", event_type=event.type, event_id=event.id)
        return WebhookOutcome(status="ignored", event_id=event.id, event_type=event.type)

    async def _resolve_order_id(self, uow: AbstractUnitOfWork, obj: dict) -> Optional[str]:
        metadata = obj.get("metadata") or {}
        if metadata.get("order_id"):
            return str(metadata["order_id"])
        intent_id = obj.get("id")
        if intent_id:
            record = await uow.payment_intents.get_by_provider_intent_id(self.provider, str(intent_id))
            if record is not None:
                return record.order_id
        return None

    async def _apply_succeeded(self, event: WebhookEvent) -> WebhookOutcome:
        obj = event.object
        intent_id = str(obj.get("id") or "")
        published: list = []
        async with self._uow_factory() as uow:
            order_id = await self._resolve_order_id(uow, obj)
            # Lock first so concurrent deliveries serialize before the dedupe check
            order = await uow.orders.get_by_id(order_id, for_update=True) if order_id else None
            if await uow.webhook_events.exists(self.provider, event.id):
                logger.info("payment_webhook_duplicate", event_id=event.id, order_id=order_id)
                return WebhookOutcome(status="duplicate", event_id=event.id, event_type=event.type, order_id=order_id)
            if order is None:
                logger.warning("payment_webhook_unknown_order", event_id=event.id, order_id=order_id, intent_id=intent_id)
                await uow.webhook_events.add(
                    ProcessedWebhookEvent(event_id=event.id, provider=self.provider, event_type=event.type, order_id=order_id)
                )
                return WebhookOutcome(status="unknown_order", event_id=event.id, event_type=event.type, order_id=order_id)

            record = await uow.payment_intents.get_by_provider_intent_id(self.provider, intent_id)
            if record is None:
                record = await self._adopt_remote_intent(uow, order, obj)
            published = await self._capture(uow, order, record, obj.get("latest_charge"))
            await uow.webhook_events.add(
                ProcessedWebhookEvent(event_id=event.id, provider=self.provider, event_type=event.type, order_id=order.id)
            )

        await self._publish(published)
        return WebhookOutcome(status="processed", event_id=event.id, event_type=event.type, order_id=order.id)

    async def _adopt_remote_intent(self, uow: AbstractUnitOfWork, order: Order, obj: dict) -> PaymentIntentRecord:
        """Mirror an intent we never recorded locally (e.g. the insert was lost)."""
        metadata = obj.get("metadata") or {}
        stage = metadata.get("stage")
        stage = PaymentStage(stage) if stage in PaymentStage._value2member_map_ else order.next_payment_stage()
        currency = str(obj.get("currency") or order.currency).upper()
        minor = obj.get("amount_received") or obj.get("amount") or 0
        logger.warning("payment_intent_adopted", order_id=order.id, intent_id=obj.get("id"))
        return await uow.payment_intents.add(
            PaymentIntentRecord(
                id=uuid.uuid4().hex,
                order_id=order.id,
                stage=stage or PaymentStage.FULL,
                provider=self.provider,
                provider_intent_id=str(obj.get("id")),
                amount=from_minor_units(int(minor), currency),
                currency=currency,
            )
        )

    async def _capture(
        self,
        uow: AbstractUnitOfWork,
        order: Order,
        record: PaymentIntentRecord,
        charge_id: Optional[str],
    ) -> list:
        """Apply one confirmed intent to a locked order. Returns events to publish."""
        if record.is_applied:
            logger.info("payment_intent_already_applied", order_id=order.id, intent_id=record.provider_intent_id)
            return []

        record.mark_succeeded(str(charge_id) if charge_id else None)
        await uow.payment_intents.update(record)
        try:
            new_status = order.apply_payment(record.amount)
        except ConflictError as exc:
            # Money moved at the processor but cannot be applied; needs manual review
            logger.error(
                "payment_capture_unapplied",
                order_id=order.id,
                intent_id=record.provider_intent_id,
                amount=str(record.amount),
                remaining_balance=str(order.remaining_balance),
                payment_status=order.payment_status.value,
                error=exc.message,
            )
            return []
        await uow.orders.update(order)
        logger.info(
            "payment_captured",
            order_id=order.id,
            stage=record.stage.value,
            amount=str(record.amount),
            amount_paid=str(order.amount_paid),
            remaining_balance=str(order.remaining_balance),
            payment_status=new_status.value,
        )

        if new_status == PaymentStatus.DEPOSIT_PAID:
            return [
                OrderDepositPaid(
                    order_id=order.id,
                    amount=str(record.amount),
                    remaining_balance=str(order.remaining_balance),
                ),
                OrderBalanceDue(order_id=order.id, remaining_balance=str(order.remaining_balance)),
            ]
        return [OrderPaid(order_id=order.id, amount_paid=str(order.amount_paid))]

    async def _apply_failed(self, event: WebhookEvent) -> WebhookOutcome:
        obj = event.object
        intent_id = str(obj.get("id") or "")
        reason = (obj.get("last_payment_error") or {}).get("message")
        async with self._uow_factory() as uow:
            if await uow.webhook_events.exists(self.provider, event.id):
                return WebhookOutcome(status="duplicate", event_id=event.id, event_type=event.type)
            record = await uow.payment_intents.get_by_provider_intent_id(self.provider, intent_id)
            order_id = record.order_id if record else (obj.get("metadata") or {}).get("order_id")
            if record is not None and record.status == IntentStatus.PENDING:
                record.mark_failed(reason)
                await uow.payment_intents.update(record)
            logger.warning(
                "payment_intent_failed",
                order_id=order_id,
                intent_id=intent_id,
                amount=str(record.amount) if record else None,
                reason=reason,
            )
            await uow.webhook_events.add(
                ProcessedWebhookEvent(event_id=event.id, provider=self.provider, event_type=event.type, order_id=order_id)
            )
        return WebhookOutcome(status="processed", event_id=event.id, event_type=event.type, order_id=order_id)

    async def _apply_topup(self, event: WebhookEvent) -> WebhookOutcome:
        obj = event.object
        metadata = obj.get("metadata") or {}
        seller_id = metadata.get("seller_id")
        intent_id = str(obj.get("id") or "")
        currency = str(obj.get("currency") or "usd").upper()
        async with self._uow_factory() as uow:
            if await uow.webhook_events.exists(self.provider, event.id):
                return WebhookOutcome(status="duplicate", event_id=event.id, event_type=event.type)
            seller = await uow.sellers.get_by_id(seller_id, for_update=True) if seller_id else None
            if seller is None:
                logger.warning("wallet_topup_unknown_seller", event_id=event.id, seller_id=seller_id)
            elif not await uow.wallet.exists(LedgerKind.TOPUP, intent_id):
                amount = from_minor_units(int(obj.get("amount_received") or obj.get("amount") or 0), currency)
                if amount > 0:
                    await uow.wallet.add(
                        WalletLedgerEntry(
                            id=uuid.uuid4().hex,
                            seller_id=seller.id,
                            kind=LedgerKind.TOPUP,
                            amount=amount,
                            reference=intent_id,
                            currency=currency,
                            description="Wallet top-up",
                        )
                    )
                    logger.info("wallet_topup_credited", seller_id=seller.id, amount=str(amount), intent_id=intent_id)
            await uow.webhook_events.add(
                ProcessedWebhookEvent(event_id=event.id, provider=self.provider, event_type=event.type)
            )
        return WebhookOutcome(status="processed", event_id=event.id, event_type=event.type)

    # ------------------------------------------------------------------
    # Reconciliation sweep
    # ------------------------------------------------------------------

    async def reconcile_pending_intents(self, *, now: Optional[datetime] = None, limit: int = 100) -> ReconcileReport:
        """Apply intents the processor confirmed but whose webhook never landed."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - self._reconcile_after
        async with self._uow_factory() as uow:
            pending = await uow.payment_intents.list_pending_before(cutoff, limit=limit)

        applied = failed = errors = 0
        for record in pending:
            try:
                remote = await self.gateway.query_payment(
                    QueryPayment(intent_id=record.provider_intent_id, order_id=record.order_id, provider=record.provider)
                )
            except ExternalServiceError as exc:
                errors += 1
                logger.warning(
                    "payment_reconcile_query_failed",
                    order_id=record.order_id,
                    intent_id=record.provider_intent_id,
                    provider_code=exc.provider_code,
                    error=exc.message,
                )
                continue

            if remote.status == IntentStatus.SUCCEEDED.value:
                published: list = []
                async with self._uow_factory() as uow:
                    order = await uow.orders.get_by_id(record.order_id, for_update=True)
                    fresh = await uow.payment_intents.get_by_provider_intent_id(record.provider, record.provider_intent_id)
                    if order is not None and fresh is not None and fresh.status == IntentStatus.PENDING:
                        published = await self._capture(uow, order, fresh, remote.provider_ref)
                        applied += 1
                await self._publish(published)
            elif remote.status in (IntentStatus.FAILED.value, IntentStatus.CANCELED.value):
                async with self._uow_factory() as uow:
                    fresh = await uow.payment_intents.get_by_provider_intent_id(record.provider, record.provider_intent_id)
                    if fresh is not None and fresh.status == IntentStatus.PENDING:
                        fresh.mark_failed(f"processor status {remote.status}")
                        await uow.payment_intents.update(fresh)
                        failed += 1

        report = ReconcileReport(checked=len(pending), applied=applied, failed=failed, errors=errors)
        logger.info("payment_reconcile_finished", **report.__dict__)
        return report

    async def aclose(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.gateway, "aclose", None)
        if callable(close):
            await close()
