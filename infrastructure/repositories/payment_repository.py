"""
支付仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.order.entity import PaymentStage
from domain.payment.entity import (
    IntentStatus,
    PaymentIntentRecord,
    ProcessedWebhookEvent,
    Refund,
    RefundStatus,
)
from domain.payment.repository import (
    PaymentIntentRepository,
    RefundRepository,
    WebhookEventRepository,
)
from infrastructure.models.payment import (
    PaymentIntentModel,
    ProcessedWebhookEventModel,
    RefundModel,
)
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyPaymentIntentRepository(PaymentIntentRepository):
    """支付意图仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentIntentModel) -> PaymentIntentRecord:
        """将数据库模型转换为领域实体"""
        return PaymentIntentRecord(
            id=model.id,
            order_id=model.order_id,
            stage=PaymentStage(model.stage),
            provider=model.provider,
            provider_intent_id=model.provider_intent_id,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            status=IntentStatus(model.status),
            idempotency_key=model.idempotency_key,
            client_secret=model.client_secret,
            provider_charge_id=model.provider_charge_id,
            refunded_amount=Decimal(str(model.refunded_amount)),
            failure_reason=model.failure_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
            succeeded_at=model.succeeded_at,
        )

    def _to_model(self, entity: PaymentIntentRecord) -> PaymentIntentModel:
        """将领域实体转换为数据库模型"""
        return PaymentIntentModel(
            id=entity.id,
            order_id=entity.order_id,
            stage=entity.stage.value,
            provider=entity.provider,
            provider_intent_id=entity.provider_intent_id,
            provider_charge_id=entity.provider_charge_id,
            amount=entity.amount,
            currency=entity.currency,
            refunded_amount=entity.refunded_amount,
            status=entity.status.value,
            idempotency_key=entity.idempotency_key,
            client_secret=entity.client_secret,
            failure_reason=entity.failure_reason,
            succeeded_at=entity.succeeded_at,
        )

    async def add(self, intent: PaymentIntentRecord) -> PaymentIntentRecord:
        model = self._to_model(intent)
        self.session.add(model)
        await self.session.flush()
        logger.info(
            "payment_intent_recorded",
            intent_id=model.id,
            order_id=model.order_id,
            stage=model.stage,
            provider=model.provider,
        )
        return self._to_entity(model)

    async def get_by_provider_intent_id(self, provider: str, provider_intent_id: str) -> Optional[PaymentIntentRecord]:
        """根据渠道支付意图ID获取"""
        result = await self.session.execute(
            select(PaymentIntentModel).where(
                PaymentIntentModel.provider == provider,
                PaymentIntentModel.provider_intent_id == provider_intent_id,
            )
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list_by_order(self, order_id: str) -> List[PaymentIntentRecord]:
        result = await self.session.execute(
            select(PaymentIntentModel)
            .where(PaymentIntentModel.order_id == order_id)
            .order_by(PaymentIntentModel.created_at, PaymentIntentModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_pending_before(self, cutoff: datetime, limit: int = 100) -> List[PaymentIntentRecord]:
        result = await self.session.execute(
            select(PaymentIntentModel)
            .where(
                PaymentIntentModel.status == IntentStatus.PENDING.value,
                PaymentIntentModel.created_at < cutoff,
            )
            .order_by(PaymentIntentModel.created_at)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def update(self, intent: PaymentIntentRecord) -> PaymentIntentRecord:
        """更新状态与已退款金额"""
        result = await self.session.execute(
            select(PaymentIntentModel).where(PaymentIntentModel.id == intent.id)
        )
        model = result.scalar_one_or_none()
        if not model:
            raise ValueError(f"Payment intent with id {intent.id} not found")

        model.status = intent.status.value
        model.provider_charge_id = intent.provider_charge_id
        model.refunded_amount = intent.refunded_amount
        model.failure_reason = intent.failure_reason
        model.succeeded_at = intent.succeeded_at

        await self.session.flush()
        logger.info(
            "payment_intent_updated",
            intent_id=model.id,
            order_id=model.order_id,
            status=model.status,
        )
        return self._to_entity(model)


class SQLAlchemyRefundRepository(RefundRepository):
    """退款仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: RefundModel) -> Refund:
        return Refund(
            id=model.id,
            order_id=model.order_id,
            payment_intent_id=model.payment_intent_id,
            provider=model.provider,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            status=RefundStatus(model.status),
            provider_refund_id=model.provider_refund_id,
            reason=model.reason,
            idempotency_key=model.idempotency_key,
            items=dict(model.items or {}),
            failure_reason=model.failure_reason,
            created_at=model.created_at,
        )

    async def add(self, refund: Refund) -> Refund:
        model = RefundModel(
            id=refund.id,
            order_id=refund.order_id,
            payment_intent_id=refund.payment_intent_id,
            provider=refund.provider,
            provider_refund_id=refund.provider_refund_id,
            amount=refund.amount,
            currency=refund.currency,
            status=refund.status.value,
            reason=refund.reason,
            idempotency_key=refund.idempotency_key,
            failure_reason=refund.failure_reason,
            items=refund.items or None,
        )
        self.session.add(model)
        await self.session.flush()
        logger.info(
            "refund_recorded",
            refund_id=model.id,
            order_id=model.order_id,
            amount=str(model.amount),
            status=model.status,
        )
        return self._to_entity(model)

    async def list_by_order(self, order_id: str) -> List[Refund]:
        result = await self.session.execute(
            select(RefundModel)
            .where(RefundModel.order_id == order_id)
            .order_by(RefundModel.created_at, RefundModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]


class SQLAlchemyWebhookEventRepository(WebhookEventRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def exists(self, provider: str, event_id: str) -> bool:
        result = await self.session.execute(
            select(ProcessedWebhookEventModel.id).where(
                ProcessedWebhookEventModel.provider == provider,
                ProcessedWebhookEventModel.event_id == event_id,
            )
        )
        return result.first() is not None

    async def add(self, event: ProcessedWebhookEvent) -> ProcessedWebhookEvent:
        model = ProcessedWebhookEventModel(
            provider=event.provider,
            event_id=event.event_id,
            event_type=event.event_type,
            order_id=event.order_id,
        )
        self.session.add(model)
        await self.session.flush()
        return ProcessedWebhookEvent(
            event_id=model.event_id,
            provider=model.provider,
            event_type=model.event_type,
            order_id=model.order_id,
            processed_at=model.processed_at,
        )
