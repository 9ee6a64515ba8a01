"""
Shipping label entities and the seller wallet ledger.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import InvalidStateTransitionError, ValidationError
from domain.common.money import quantize_money


class LabelStatus(str, Enum):
    PURCHASED = "purchased"
    VOIDED = "voided"
    REFUND_REQUESTED = "refund_requested"


class LabelRefundStatus(str, Enum):
    """Carrier refund outcome."""
    QUEUED = "queued"
    PENDING = "pending"
    SUCCESS = "success"
    REJECTED = "rejected"

    @property
    def is_open(self) -> bool:
        return self in (LabelRefundStatus.QUEUED, LabelRefundStatus.PENDING)


class LedgerKind(str, Enum):
    LABEL_PURCHASE = "label_purchase"
    LABEL_REFUND = "label_refund"
    TOPUP = "topup"


def label_total_charged(base_cost: Decimal, markup_percent: Decimal, currency: str = "USD") -> Decimal:
    """base * (1 + markup/100), rounded half up once."""
    return quantize_money(base_cost * (1 + markup_percent / Decimal(100)), currency)


@dataclass
class ShippingLabel:
    """
    Purchased carrier label.

    `total_charged` is fixed at purchase time and never recalculated.
    """

    id: Optional[str]
    order_id: str
    seller_id: str
    carrier: str
    service_level: Optional[str]
    tracking_number: str
    label_url: Optional[str]
    carrier_transaction_id: str
    base_cost: Decimal
    markup_percent: Decimal
    total_charged: Decimal
    currency: str = "USD"
    status: LabelStatus = LabelStatus.PURCHASED
    warehouse_address_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status != LabelStatus.VOIDED

    def _require(self, allowed: tuple[LabelStatus, ...], action: str) -> None:
        if self.status not in allowed:
            raise InvalidStateTransitionError("shipping label", self.status.value, action)

    def ensure_cancellable(self) -> None:
        self._require((LabelStatus.PURCHASED,), "cancel")

    def mark_refund_requested(self) -> None:
        self._require((LabelStatus.PURCHASED,), "request refund for")
        self.status = LabelStatus.REFUND_REQUESTED
        self.updated_at = datetime.now(timezone.utc)

    def mark_voided(self) -> None:
        self._require((LabelStatus.PURCHASED, LabelStatus.REFUND_REQUESTED), "void")
        self.status = LabelStatus.VOIDED
        self.updated_at = datetime.now(timezone.utc)

    def revert_to_purchased(self) -> None:
        """Carrier rejected an asynchronous refund."""
        self._require((LabelStatus.REFUND_REQUESTED,), "revert")
        self.status = LabelStatus.PURCHASED
        self.updated_at = datetime.now(timezone.utc)


@dataclass
class LabelRefund:
    id: Optional[str]
    label_id: str
    status: LabelRefundStatus
    carrier_refund_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def resolve(self, status: LabelRefundStatus, reason: Optional[str] = None) -> None:
        if not self.status.is_open:
            raise InvalidStateTransitionError("label refund", self.status.value, "resolve")
        self.status = status
        if status == LabelRefundStatus.REJECTED:
            self.rejection_reason = reason
        self.updated_at = datetime.now(timezone.utc)


@dataclass
class WalletLedgerEntry:
    """
    Append-only wallet movement; the balance is the SUM of amounts.

    (kind, reference) is unique so each debit or credit lands exactly once.
    """

    id: Optional[str]
    seller_id: str
    kind: LedgerKind
    amount: Decimal
    reference: str
    currency: str = "USD"
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.amount == 0:
            raise ValidationError("Ledger entry amount must be non-zero", field="amount")
        if self.kind == LedgerKind.LABEL_PURCHASE and self.amount > 0:
            raise ValidationError("Label purchase entries are debits", field="amount")
        if self.kind in (LedgerKind.LABEL_REFUND, LedgerKind.TOPUP) and self.amount < 0:
            raise ValidationError("Refund and top-up entries are credits", field="amount")
