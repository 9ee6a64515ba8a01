"""
Order aggregate: order header, line items and per-item refund counters.

Money invariants held by the aggregate:
1. amount_paid + remaining_balance == total
2. remaining_balance never negative
3. for each item, refunded_quantity <= quantity and
   refunded_amount <= unit_price * quantity
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional, Union

from domain.catalog.entity import Address
from domain.common.exceptions import (
    ConflictError,
    InvalidStateTransitionError,
    RefundExceedsRefundableError,
    ValidationError,
)
from domain.common.money import ZERO, quantize_money, to_decimal


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"
    REFUNDED = "refunded"


class PaymentType(str, Enum):
    DEPOSIT = "deposit"
    FULL = "full"


class PaymentStage(str, Enum):
    """Which part of the total a processor intent charges."""
    DEPOSIT = "deposit"
    BALANCE = "balance"
    FULL = "full"


class ItemStatus(str, Enum):
    ACTIVE = "active"
    REFUNDED = "refunded"
    RETURNED = "returned"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Line items (tagged union, persisted as JSON on the order)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _LineItemBase:
    product_id: str
    name: str
    # Server-resolved unit price after any promotion
    price: Decimal
    quantity: int
    original_price: Optional[Decimal] = None
    discount_percentage: Optional[Decimal] = None
    requires_deposit: bool = False
    # Unquantized; clamped to the line total by `deposit_total`
    deposit_per_unit: Optional[Decimal] = None

    kind: ClassVar[str] = ""

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @property
    def deposit_total(self) -> Decimal:
        """Deposit contribution of this line.

        Lines without a deposit policy are paid in full up front.
        """
        if not self.requires_deposit or self.deposit_per_unit is None:
            return self.line_total
        return min(self.deposit_per_unit * self.quantity, self.line_total)

    def to_dict(self) -> dict:
        data = {"kind": self.kind}
        for key, value in asdict(self).items():
            data[key] = str(value) if isinstance(value, Decimal) else value
        return data


@dataclass(frozen=True)
class SimpleLineItem(_LineItemBase):
    kind: ClassVar[str] = "simple"


@dataclass(frozen=True)
class VariantLineItem(_LineItemBase):
    variant_id: str = ""
    size: Optional[str] = None
    color: Optional[str] = None

    kind: ClassVar[str] = "variant"


LineItem = Union[SimpleLineItem, VariantLineItem]


def line_item_from_dict(data: dict) -> LineItem:
    payload = dict(data)
    kind = payload.pop("kind", "simple")
    for key in ("price", "original_price", "discount_percentage", "deposit_per_unit"):
        if payload.get(key) is not None:
            payload[key] = Decimal(str(payload[key]))
    payload["quantity"] = int(payload["quantity"])
    if kind == "simple":
        return SimpleLineItem(**payload)
    if kind == "variant":
        return VariantLineItem(**payload)
    raise ValueError(f"unknown line item kind: {kind!r}")


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass
class OrderItem:
    """One persisted row per purchased line; carries refund counters."""

    id: Optional[str]
    order_id: Optional[str]
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    variant_id: Optional[str] = None
    refunded_quantity: int = 0
    refunded_amount: Decimal = ZERO
    item_status: ItemStatus = ItemStatus.ACTIVE

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def refundable_quantity(self) -> int:
        return self.quantity - self.refunded_quantity

    def apply_refund(self, quantity: int, amount: Decimal) -> None:
        if quantity <= 0:
            raise ValidationError("Refund quantity must be positive", field="quantity")
        if quantity > self.refundable_quantity:
            raise RefundExceedsRefundableError(
                quantity, self.refundable_quantity, item_id=self.id
            )
        if self.refunded_amount + amount > self.line_total:
            raise RefundExceedsRefundableError(
                self.refunded_amount + amount, self.line_total, item_id=self.id
            )
        self.refunded_quantity += quantity
        self.refunded_amount += amount
        if self.refunded_quantity == self.quantity:
            self.item_status = ItemStatus.REFUNDED


@dataclass
class Order:
    """
    Order aggregate root.

    `status` is driven by seller actions; `payment_status` only by payment
    capture and refunds.
    """

    id: str
    seller_id: str
    currency: str
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total: Decimal
    deposit_amount: Decimal
    payment_type: PaymentType
    customer_email: Optional[str] = None
    user_id: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    discount_total: Decimal = ZERO
    amount_paid: Decimal = ZERO
    remaining_balance: Optional[Decimal] = None
    refunded_amount: Decimal = ZERO
    line_items: list[LineItem] = field(default_factory=list)
    items: list[OrderItem] = field(default_factory=list)
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    payment_method: Optional[str] = None
    tracking_number: Optional[str] = None
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.remaining_balance is None:
            self.remaining_balance = self.total - self.amount_paid
        if not self.customer_email and not self.user_id:
            raise ValidationError(
                "Either a customer email or a user id is required",
                field="customer_email",
            )
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    # -- payment stage -----------------------------------------------------

    def next_payment_stage(self) -> Optional[PaymentStage]:
        """Stage of the next charge, or None when nothing is due."""
        if self.status == OrderStatus.CANCELLED or self.remaining_balance <= 0:
            return None
        if self.payment_status == PaymentStatus.PENDING:
            if self.payment_type == PaymentType.DEPOSIT:
                return PaymentStage.DEPOSIT
            return PaymentStage.FULL
        if self.payment_status == PaymentStatus.DEPOSIT_PAID:
            return PaymentStage.BALANCE
        return None

    def amount_due_for(self, stage: PaymentStage) -> Decimal:
        if stage == PaymentStage.DEPOSIT:
            return self.deposit_amount
        if stage == PaymentStage.FULL:
            return self.total
        return self.remaining_balance

    def can_request_balance(self) -> bool:
        return self.payment_status == PaymentStatus.DEPOSIT_PAID and self.remaining_balance > 0

    def apply_payment(self, amount: Decimal) -> PaymentStatus:
        """Record a confirmed capture and advance the payment axis."""
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError("Captured amount must be positive", field="amount")
        if self.payment_status not in (PaymentStatus.PENDING, PaymentStatus.DEPOSIT_PAID):
            raise InvalidStateTransitionError("order", self.payment_status.value, "capture payment for")
        if amount > self.remaining_balance:
            raise ConflictError(
                f"Captured amount {amount} exceeds remaining balance {self.remaining_balance}",
                details={"order_id": self.id, "amount": str(amount), "remaining": str(self.remaining_balance)},
            )
        self.amount_paid = quantize_money(self.amount_paid + amount, self.currency)
        self.remaining_balance = self.total - self.amount_paid
        if self.remaining_balance == 0:
            self.payment_status = PaymentStatus.FULLY_PAID
        else:
            self.payment_status = PaymentStatus.DEPOSIT_PAID
        if self.status == OrderStatus.PENDING:
            self.status = OrderStatus.PROCESSING
        self._touch()
        return self.payment_status

    # -- refunds -----------------------------------------------------------

    @property
    def refundable_amount(self) -> Decimal:
        return self.amount_paid - self.refunded_amount

    def find_item(self, item_id: str) -> Optional[OrderItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def apply_refund(self, amount: Decimal) -> None:
        if amount <= 0:
            raise ValidationError("Refund amount must be positive", field="amount")
        if amount > self.refundable_amount:
            raise RefundExceedsRefundableError(amount, self.refundable_amount)
        self.refunded_amount += amount
        if self.amount_paid > 0 and self.refunded_amount == self.amount_paid:
            self.payment_status = PaymentStatus.REFUNDED
        self._touch()

    # -- seller actions ----------------------------------------------------

    def change_status(self, new_status: OrderStatus) -> OrderStatus:
        """Direct status write; returns the previous status."""
        previous = self.status
        self.status = OrderStatus(new_status)
        self._touch()
        return previous

    def attach_tracking_number(self, tracking_number: str) -> None:
        self.tracking_number = tracking_number
        self._touch()
