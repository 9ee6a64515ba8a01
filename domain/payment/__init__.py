"""Payment domain exports."""
from .entity import IntentStatus, PaymentIntentRecord, ProcessedWebhookEvent, Refund, RefundStatus

__all__ = [
    "IntentStatus",
    "PaymentIntentRecord",
    "ProcessedWebhookEvent",
    "Refund",
    "RefundStatus",
]
