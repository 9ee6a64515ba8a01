"""
订单数据库模型
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    Column, DateTime, ForeignKey, Index, Integer, JSON, String,
)
from sqlalchemy.orm import relationship

from .base import Base, Money


class OrderModel(Base):
    """
    订单表

    amount_paid + remaining_balance == total 由领域实体维护
    """
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    seller_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    customer_email = Column(String(320), nullable=True)

    status = Column(String(20), nullable=False, default="pending", index=True,
                    comment="pending/processing/shipped/delivered/cancelled")
    payment_status = Column(String(20), nullable=False, default="pending", index=True,
                            comment="pending/deposit_paid/fully_paid/refunded")
    payment_type = Column(String(20), nullable=False, comment="deposit/full")
    payment_method = Column(String(50), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")

    subtotal = Column(Money, nullable=False, comment="税前小计")
    discount_total = Column(Money, nullable=False, default=0)
    shipping_cost = Column(Money, nullable=False, default=0)
    tax_amount = Column(Money, nullable=False, default=0)
    total = Column(Money, nullable=False)
    deposit_amount = Column(Money, nullable=False, default=0)
    amount_paid = Column(Money, nullable=False, default=0)
    remaining_balance = Column(Money, nullable=False)
    refunded_amount = Column(Money, nullable=False, default=0)

    # Tagged line items: [{kind: simple|variant, ...}]
    line_items = Column(JSON, nullable=False)
    shipping_address = Column(JSON, nullable=True)
    billing_address = Column(JSON, nullable=True)

    tracking_number = Column(String(100), nullable=True)
    idempotency_key = Column(String(128), nullable=True, unique=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.position",
    )

    def __repr__(self):
        return (
            f"<OrderModel(id='{self.id}', status='{self.status}', "
            f"payment_status='{self.payment_status}', total={self.total})>"
        )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    order_id = Column(String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(String(64), nullable=False)
    variant_id = Column(String(64), nullable=True)
    name = Column(String(300), nullable=False)
    unit_price = Column(Money, nullable=False)
    quantity = Column(Integer, nullable=False)
    refunded_quantity = Column(Integer, nullable=False, default=0)
    refunded_amount = Column(Money, nullable=False, default=0)
    item_status = Column(String(20), nullable=False, default="active", comment="active/refunded/returned")

    order = relationship("OrderModel", back_populates="items")

    __table_args__ = (
        Index("ix_order_items_order_product", "order_id", "product_id"),
    )
