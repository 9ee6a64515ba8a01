"""
运单、运单退款与钱包流水仓储实现
"""
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.money import ZERO
from domain.shipping.entity import (
    LabelRefund,
    LabelRefundStatus,
    LabelStatus,
    LedgerKind,
    ShippingLabel,
    WalletLedgerEntry,
)
from domain.shipping.repository import (
    LabelRefundRepository,
    ShippingLabelRepository,
    WalletLedgerRepository,
)
from infrastructure.models.shipping import (
    LabelRefundModel,
    ShippingLabelModel,
    WalletLedgerEntryModel,
)


class SQLAlchemyShippingLabelRepository(ShippingLabelRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: ShippingLabelModel) -> ShippingLabel:
        return ShippingLabel(
            id=model.id,
            order_id=model.order_id,
            seller_id=model.seller_id,
            carrier=model.carrier,
            service_level=model.service_level,
            tracking_number=model.tracking_number,
            label_url=model.label_url,
            carrier_transaction_id=model.carrier_transaction_id,
            base_cost=Decimal(str(model.base_cost)),
            markup_percent=Decimal(str(model.markup_percent)),
            total_charged=Decimal(str(model.total_charged)),
            currency=model.currency,
            status=LabelStatus(model.status),
            warehouse_address_id=model.warehouse_address_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def add(self, label: ShippingLabel) -> ShippingLabel:
        model = ShippingLabelModel(
            id=label.id,
            order_id=label.order_id,
            seller_id=label.seller_id,
            warehouse_address_id=label.warehouse_address_id,
            carrier=label.carrier,
            service_level=label.service_level,
            tracking_number=label.tracking_number,
            label_url=label.label_url,
            carrier_transaction_id=label.carrier_transaction_id,
            base_cost=label.base_cost,
            markup_percent=label.markup_percent,
            total_charged=label.total_charged,
            currency=label.currency,
            status=label.status.value,
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_entity(model)

    async def get_by_id(self, label_id: str) -> Optional[ShippingLabel]:
        result = await self.session.execute(select(ShippingLabelModel).where(ShippingLabelModel.id == label_id))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_active_for_order(self, order_id: str) -> Optional[ShippingLabel]:
        result = await self.session.execute(
            select(ShippingLabelModel)
            .where(
                ShippingLabelModel.order_id == order_id,
                ShippingLabelModel.status != LabelStatus.VOIDED.value,
            )
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def update(self, label: ShippingLabel) -> ShippingLabel:
        result = await self.session.execute(select(ShippingLabelModel).where(ShippingLabelModel.id == label.id))
        model = result.scalar_one_or_none()
        if not model:
            raise ValueError(f"Shipping label with id {label.id} not found")
        model.status = label.status.value
        await self.session.flush()
        return self._to_entity(model)


class SQLAlchemyLabelRefundRepository(LabelRefundRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: LabelRefundModel) -> LabelRefund:
        return LabelRefund(
            id=model.id,
            label_id=model.label_id,
            status=LabelRefundStatus(model.status),
            carrier_refund_id=model.carrier_refund_id,
            rejection_reason=model.rejection_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def add(self, refund: LabelRefund) -> LabelRefund:
        model = LabelRefundModel(
            id=refund.id,
            label_id=refund.label_id,
            carrier_refund_id=refund.carrier_refund_id,
            status=refund.status.value,
            rejection_reason=refund.rejection_reason,
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_entity(model)

    async def list_by_label(self, label_id: str) -> List[LabelRefund]:
        result = await self.session.execute(
            select(LabelRefundModel)
            .where(LabelRefundModel.label_id == label_id)
            .order_by(LabelRefundModel.created_at)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_open(self, limit: int = 100) -> List[LabelRefund]:
        open_statuses = [LabelRefundStatus.QUEUED.value, LabelRefundStatus.PENDING.value]
        result = await self.session.execute(
            select(LabelRefundModel)
            .where(LabelRefundModel.status.in_(open_statuses))
            .order_by(LabelRefundModel.created_at)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, refund: LabelRefund) -> LabelRefund:
        result = await self.session.execute(select(LabelRefundModel).where(LabelRefundModel.id == refund.id))
        model = result.scalar_one_or_none()
        if not model:
            raise ValueError(f"Label refund with id {refund.id} not found")
        model.status = refund.status.value
        model.rejection_reason = refund.rejection_reason
        await self.session.flush()
        return self._to_entity(model)


class SQLAlchemyWalletLedgerRepository(WalletLedgerRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: WalletLedgerEntryModel) -> WalletLedgerEntry:
        return WalletLedgerEntry(
            id=model.id,
            seller_id=model.seller_id,
            kind=LedgerKind(model.kind),
            amount=Decimal(str(model.amount)),
            reference=model.reference,
            currency=model.currency,
            description=model.description,
            created_at=model.created_at,
        )

    async def balance(self, seller_id: str) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(WalletLedgerEntryModel.amount), 0))
            .where(WalletLedgerEntryModel.seller_id == seller_id)
        )
        value = result.scalar_one()
        return Decimal(str(value)) if value is not None else ZERO

    async def exists(self, kind: LedgerKind, reference: str) -> bool:
        result = await self.session.execute(
            select(WalletLedgerEntryModel.id).where(
                WalletLedgerEntryModel.kind == kind.value,
                WalletLedgerEntryModel.reference == reference,
            )
        )
        return result.first() is not None

    async def add(self, entry: WalletLedgerEntry) -> WalletLedgerEntry:
        model = WalletLedgerEntryModel(
            id=entry.id,
            seller_id=entry.seller_id,
            kind=entry.kind.value,
            amount=entry.amount,
            currency=entry.currency,
            reference=entry.reference,
            description=entry.description,
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_entity(model)

    async def list_by_seller(self, seller_id: str, limit: int = 50) -> List[WalletLedgerEntry]:
        result = await self.session.execute(
            select(WalletLedgerEntryModel)
            .where(WalletLedgerEntryModel.seller_id == seller_id)
            .order_by(WalletLedgerEntryModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]
