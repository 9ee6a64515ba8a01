"""
Shipping label domain events.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid


@dataclass
class LabelEvent:
    label_id: str
    order_id: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    name: str = field(default="label.event", init=False)


@dataclass
class LabelPurchased(LabelEvent):
    tracking_number: str = ""
    total_charged: str = ""
    name: str = field(default="label.purchased", init=False)


@dataclass
class LabelVoided(LabelEvent):
    credited: str = ""
    name: str = field(default="label.voided", init=False)
