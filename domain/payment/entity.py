"""
Payment domain entities: processor intent mirror, refunds and processed
webhook events.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from enum import Enum

from domain.common.exceptions import InvalidStateTransitionError, ValidationError
from domain.common.money import ZERO
from domain.order.entity import PaymentStage


class IntentStatus(str, Enum):
    """Processor intent status as mirrored locally."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


class RefundStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class PaymentIntentRecord:
    """
    Local mirror of one processor charge attempt.

    Append-only: a row is created per intent and only its status and
    refunded amount ever change.
    """

    id: Optional[str]
    order_id: str
    stage: PaymentStage
    provider: str
    provider_intent_id: str
    amount: Decimal
    currency: str
    status: IntentStatus = IntentStatus.PENDING
    idempotency_key: Optional[str] = None
    client_secret: Optional[str] = None
    provider_charge_id: Optional[str] = None
    refunded_amount: Decimal = ZERO
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    succeeded_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount <= 0:
            raise ValidationError(f"Intent amount must be greater than 0: {self.amount}", field="amount")
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.succeeded_at = _ensure_utc(self.succeeded_at)

    @property
    def is_applied(self) -> bool:
        return self.status == IntentStatus.SUCCEEDED

    @property
    def refundable_amount(self) -> Decimal:
        if self.status != IntentStatus.SUCCEEDED:
            return ZERO
        return self.amount - self.refunded_amount

    def mark_succeeded(self, provider_charge_id: Optional[str] = None) -> None:
        if self.status not in (IntentStatus.PENDING, IntentStatus.FAILED):
            raise InvalidStateTransitionError("payment intent", self.status.value, "mark succeeded")
        self.status = IntentStatus.SUCCEEDED
        if provider_charge_id:
            self.provider_charge_id = provider_charge_id
        self.succeeded_at = datetime.now(timezone.utc)
        self.updated_at = self.succeeded_at
        self.failure_reason = None

    def mark_failed(self, reason: Optional[str] = None) -> None:
        if self.status != IntentStatus.PENDING:
            raise InvalidStateTransitionError("payment intent", self.status.value, "mark failed")
        self.status = IntentStatus.FAILED
        self.failure_reason = reason
        self.updated_at = datetime.now(timezone.utc)

    def add_refund(self, amount: Decimal) -> None:
        if amount > self.refundable_amount:
            raise ValidationError(
                f"Refund {amount} exceeds intent refundable {self.refundable_amount}",
                field="amount",
            )
        self.refunded_amount += amount
        self.updated_at = datetime.now(timezone.utc)


@dataclass
class Refund:
    """
    Immutable record of one processor refund attempt.

    Only the status ever changes after creation.
    """

    id: Optional[str]
    order_id: str
    payment_intent_id: str
    provider: str
    amount: Decimal
    currency: str
    status: RefundStatus = RefundStatus.PENDING
    provider_refund_id: Optional[str] = None
    reason: Optional[str] = None
    idempotency_key: Optional[str] = None
    # item_id -> quantity for itemized refunds
    items: dict[str, int] = field(default_factory=dict)
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount <= 0:
            raise ValidationError(f"Refund amount must be greater than 0: {self.amount}", field="amount")
        self.created_at = _ensure_utc(self.created_at)


@dataclass
class ProcessedWebhookEvent:
    """Processor event id recorded in the same transaction that applied it."""

    event_id: str
    provider: str
    event_type: str
    order_id: Optional[str] = None
    processed_at: Optional[datetime] = None
