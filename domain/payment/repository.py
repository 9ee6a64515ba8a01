"""
Payment repository interfaces.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from .entity import PaymentIntentRecord, ProcessedWebhookEvent, Refund


class PaymentIntentRepository(ABC):

    @abstractmethod
    async def add(self, intent: PaymentIntentRecord) -> PaymentIntentRecord:
        pass

    @abstractmethod
    async def get_by_provider_intent_id(self, provider: str, provider_intent_id: str) -> Optional[PaymentIntentRecord]:
        pass

    @abstractmethod
    async def list_by_order(self, order_id: str) -> List[PaymentIntentRecord]:
        """Oldest first."""
        pass

    @abstractmethod
    async def list_pending_before(self, cutoff: datetime, limit: int = 100) -> List[PaymentIntentRecord]:
        """Pending intents created before `cutoff`, for the reconciliation sweep."""
        pass

    @abstractmethod
    async def update(self, intent: PaymentIntentRecord) -> PaymentIntentRecord:
        pass


class RefundRepository(ABC):

    @abstractmethod
    async def add(self, refund: Refund) -> Refund:
        pass

    @abstractmethod
    async def list_by_order(self, order_id: str) -> List[Refund]:
        pass


class WebhookEventRepository(ABC):

    @abstractmethod
    async def exists(self, provider: str, event_id: str) -> bool:
        pass

    @abstractmethod
    async def add(self, event: ProcessedWebhookEvent) -> ProcessedWebhookEvent:
        """Insert; a concurrent duplicate violates the unique key on flush."""
        pass
