"""Shipping domain exports."""
from .entity import (
    LabelRefund,
    LabelRefundStatus,
    LabelStatus,
    LedgerKind,
    ShippingLabel,
    WalletLedgerEntry,
    label_total_charged,
)

__all__ = [
    "LabelRefund",
    "LabelRefundStatus",
    "LabelStatus",
    "LedgerKind",
    "ShippingLabel",
    "WalletLedgerEntry",
    "label_total_charged",
]
