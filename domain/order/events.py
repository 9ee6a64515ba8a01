"""
Order domain events.

Dataclass events record order lifecycle facts for downstream handling
(notifications, projections). They are published only after the
transaction that produced them commits.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class OrderEvent:
    order_id: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    name: str = field(default="order.event", init=False)


@dataclass
class OrderCreated(OrderEvent):
    total: str = ""
    currency: str = ""
    name: str = field(default="order.created", init=False)


@dataclass
class OrderStatusChanged(OrderEvent):
    previous_status: str = ""
    new_status: str = ""
    name: str = field(default="order.status_changed", init=False)


@dataclass
class OrderDepositPaid(OrderEvent):
    amount: str = ""
    remaining_balance: str = ""
    name: str = field(default="order.deposit_paid", init=False)


@dataclass
class OrderBalanceDue(OrderEvent):
    remaining_balance: str = ""
    payment_link: Optional[str] = None
    name: str = field(default="order.balance_due", init=False)


@dataclass
class OrderPaid(OrderEvent):
    amount_paid: str = ""
    name: str = field(default="order.paid", init=False)


@dataclass
class OrderFulfilled(OrderEvent):
    name: str = field(default="order.fulfilled", init=False)


@dataclass
class OrderCancelled(OrderEvent):
    name: str = field(default="order.cancelled", init=False)


@dataclass
class OrderRefunded(OrderEvent):
    amount: str = ""
    refunded_amount: str = ""
    fully_refunded: bool = False
    name: str = field(default="order.refunded", init=False)
