"""
运单与卖家钱包流水数据库模型
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    Column, DateTime, ForeignKey, Index, Numeric, String, Text, UniqueConstraint,
)

from .base import Base, Money


class ShippingLabelModel(Base):
    __tablename__ = "shipping_labels"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    order_id = Column(String(64), ForeignKey("orders.id"), nullable=False, index=True)
    seller_id = Column(String(64), nullable=False, index=True)
    warehouse_address_id = Column(String(64), nullable=True)

    carrier = Column(String(100), nullable=False)
    service_level = Column(String(100), nullable=True)
    tracking_number = Column(String(100), nullable=False)
    label_url = Column(String(1000), nullable=True)
    carrier_transaction_id = Column(String(200), nullable=False)

    # total_charged 在购买时固定，不回溯重算
    base_cost = Column(Money, nullable=False)
    markup_percent = Column(Numeric(precision=5, scale=2), nullable=False)
    total_charged = Column(Money, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    status = Column(String(20), nullable=False, default="purchased", comment="purchased/voided/refund_requested")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class LabelRefundModel(Base):
    __tablename__ = "label_refunds"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    label_id = Column(String(64), ForeignKey("shipping_labels.id"), nullable=False, index=True)
    carrier_refund_id = Column(String(200), nullable=True)
    status = Column(String(20), nullable=False, comment="queued/pending/success/rejected")
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_label_refunds_status", "status"),
    )


class WalletLedgerEntryModel(Base):
    """
    卖家钱包流水（追加写），余额 = SUM(amount)
    """
    __tablename__ = "wallet_ledger_entries"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    seller_id = Column(String(64), ForeignKey("sellers.id"), nullable=False, index=True)
    kind = Column(String(20), nullable=False, comment="label_purchase/label_refund/topup")
    amount = Column(Money, nullable=False, comment="正数入账，负数扣款")
    currency = Column(String(3), nullable=False, default="USD")
    reference = Column(String(200), nullable=False)
    description = Column(String(500), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("kind", "reference", name="uq_wallet_ledger_kind_reference"),
    )
