"""
Catalog database models: sellers, products, warehouses and shipping zones.
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, Numeric, String,
)

from .base import Base, Money


def _uuid() -> str:
    return uuid.uuid4().hex


class SellerModel(Base):
    __tablename__ = "sellers"

    id = Column(String(64), primary_key=True, default=_uuid)
    name = Column(String(200), nullable=False)
    shipping_type = Column(String(20), nullable=False, default="flat", comment="free/flat/matrix/carrier")
    flat_shipping_rate = Column(Money, nullable=False, default=0)
    tax_enabled = Column(Boolean, nullable=False, default=True)
    currency = Column(String(3), nullable=False, default="USD")
    wholesale_min_order_value = Column(Money, nullable=True, comment="批发最低订单金额")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return f"<SellerModel(id='{self.id}', shipping_type='{self.shipping_type}')>"


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(String(64), primary_key=True, default=_uuid)
    seller_id = Column(String(64), ForeignKey("sellers.id"), nullable=False, index=True)
    name = Column(String(300), nullable=False)
    price = Column(Money, nullable=False, comment="单价")
    currency = Column(String(3), nullable=False, default="USD")
    product_type = Column(
        String(20),
        nullable=False,
        default="in-stock",
        comment="in-stock/pre-order/made-to-order/wholesale",
    )

    discount_percentage = Column(Numeric(precision=5, scale=2), nullable=True)
    promotion_active = Column(Boolean, nullable=False, default=False)
    promotion_ends_at = Column(DateTime(timezone=True), nullable=True)

    requires_deposit = Column(Boolean, nullable=False, default=False)
    deposit_amount = Column(Money, nullable=True, comment="每件定金")
    deposit_percentage = Column(Numeric(precision=5, scale=2), nullable=True, comment="定金比例")

    stock = Column(Integer, nullable=True, comment="NULL 表示不跟踪库存")
    min_order_quantity = Column(Integer, nullable=True)

    weight = Column(Numeric(precision=10, scale=3), nullable=False, default=0, comment="kg")
    length = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="cm")
    width = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="cm")
    height = Column(Numeric(precision=10, scale=2), nullable=False, default=0, comment="cm")

    # [{id, size, color}]
    variants = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<ProductModel(id='{self.id}', seller_id='{self.seller_id}', price={self.price})>"


class WarehouseAddressModel(Base):
    __tablename__ = "warehouse_addresses"

    id = Column(String(64), primary_key=True, default=_uuid)
    seller_id = Column(String(64), ForeignKey("sellers.id"), nullable=False, index=True)
    address = Column(JSON, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)


class ShippingZoneModel(Base):
    __tablename__ = "shipping_zones"

    id = Column(String(64), primary_key=True, default=_uuid)
    seller_id = Column(String(64), ForeignKey("sellers.id"), nullable=False)
    zone_type = Column(String(20), nullable=False, comment="city/country/continent")
    code = Column(String(100), nullable=False)
    name = Column(String(200), nullable=False)
    rate = Column(Money, nullable=False)
    estimated_days = Column(String(50), nullable=True)

    __table_args__ = (
        Index("ix_shipping_zones_seller_type", "seller_id", "zone_type"),
    )
