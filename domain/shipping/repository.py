"""
Shipping label and wallet ledger repository interfaces.
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, List

from .entity import LabelRefund, LedgerKind, ShippingLabel, WalletLedgerEntry


class ShippingLabelRepository(ABC):

    @abstractmethod
    async def add(self, label: ShippingLabel) -> ShippingLabel:
        pass

    @abstractmethod
    async def get_by_id(self, label_id: str) -> Optional[ShippingLabel]:
        pass

    @abstractmethod
    async def get_active_for_order(self, order_id: str) -> Optional[ShippingLabel]:
        """Label not yet voided, if any."""
        pass

    @abstractmethod
    async def update(self, label: ShippingLabel) -> ShippingLabel:
        pass


class LabelRefundRepository(ABC):

    @abstractmethod
    async def add(self, refund: LabelRefund) -> LabelRefund:
        pass

    @abstractmethod
    async def list_by_label(self, label_id: str) -> List[LabelRefund]:
        pass

    @abstractmethod
    async def list_open(self, limit: int = 100) -> List[LabelRefund]:
        """Refunds still queued or pending at the carrier."""
        pass

    @abstractmethod
    async def update(self, refund: LabelRefund) -> LabelRefund:
        pass


class WalletLedgerRepository(ABC):

    @abstractmethod
    async def balance(self, seller_id: str) -> Decimal:
        pass

    @abstractmethod
    async def exists(self, kind: LedgerKind, reference: str) -> bool:
        pass

    @abstractmethod
    async def add(self, entry: WalletLedgerEntry) -> WalletLedgerEntry:
        pass

    @abstractmethod
    async def list_by_seller(self, seller_id: str, limit: int = 50) -> List[WalletLedgerEntry]:
        """Newest first."""
        pass
