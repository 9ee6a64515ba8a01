"""
支付数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, String, DateTime, Text, JSON,
    Index, ForeignKey, UniqueConstraint,
)
from datetime import datetime, timezone
import uuid

from .base import Base, Money


class PaymentIntentModel(Base):
    """
    处理方支付意图的本地镜像，每次扣款尝试一行（追加写）
    """
    __tablename__ = "payment_intents"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    order_id = Column(String(64), ForeignKey("orders.id"), nullable=False, index=True)
    stage = Column(String(20), nullable=False, comment="deposit/balance/full")

    provider = Column(String(50), nullable=False, comment="支付提供商")
    provider_intent_id = Column(String(200), nullable=False, comment="渠道支付意图ID")
    provider_charge_id = Column(String(200), nullable=True)

    amount = Column(Money, nullable=False, comment="支付金额")
    currency = Column(String(3), nullable=False, default="USD", comment="货币代码 ISO-4217")
    refunded_amount = Column(Money, nullable=False, default=0, comment="已退款金额")

    status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="pending/succeeded/failed/canceled",
    )
    idempotency_key = Column(String(128), nullable=True)
    client_secret = Column(String(500), nullable=True, comment="客户端密钥（用于前端调用）")
    failure_reason = Column(Text, nullable=True, comment="失败原因")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间",
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间",
    )
    succeeded_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")

    __table_args__ = (
        UniqueConstraint("provider", "provider_intent_id", name="uq_payment_intents_provider_ref"),
        Index("ix_payment_intents_status_created", "status", "created_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentIntentModel(id='{self.id}', order_id='{self.order_id}', "
            f"stage='{self.stage}', amount={self.amount}, status='{self.status}')>"
        )


class RefundModel(Base):
    """
    退款记录：每次处理方退款调用一行，创建后只变更状态
    """
    __tablename__ = "refunds"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    order_id = Column(String(64), ForeignKey("orders.id"), index=True, nullable=False, comment="订单ID")
    payment_intent_id = Column(String(64), ForeignKey("payment_intents.id"), nullable=False, index=True)

    provider = Column(String(50), nullable=False, comment="支付提供商")
    provider_refund_id = Column(String(200), nullable=True, index=True, comment="渠道退款ID")

    amount = Column(Money, nullable=False, comment="退款金额")
    currency = Column(String(3), nullable=False, default="USD", comment="货币代码")
    status = Column(String(20), nullable=False, default="pending", comment="pending/succeeded/failed")
    reason = Column(Text, nullable=True, comment="退款原因")
    idempotency_key = Column(String(128), nullable=True)
    failure_reason = Column(Text, nullable=True, comment="失败原因")

    # {order_item_id: quantity}
    items = Column(JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间",
    )

    def __repr__(self):
        return f"<RefundModel(id='{self.id}', order_id='{self.order_id}', amount={self.amount}, status='{self.status}')>"


class ProcessedWebhookEventModel(Base):
    """已处理的 webhook 事件，用于去重"""
    __tablename__ = "processed_webhook_events"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    provider = Column(String(50), nullable=False)
    event_id = Column(String(200), nullable=False)
    event_type = Column(String(100), nullable=False)
    order_id = Column(String(64), nullable=True, index=True)
    processed_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("provider", "event_id", name="uq_processed_webhook_events_provider_event"),
    )
