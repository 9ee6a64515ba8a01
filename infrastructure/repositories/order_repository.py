"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.catalog.entity import Address
from domain.order.entity import (
    ItemStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    PaymentType,
    line_item_from_dict,
)
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderItemModel, OrderModel


logger = get_logger(__name__)


def _dec(value) -> Decimal:
    return Decimal(str(value))


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _item_to_entity(self, model: OrderItemModel) -> OrderItem:
        return OrderItem(
            id=model.id,
            order_id=model.order_id,
            product_id=model.product_id,
            name=model.name,
            unit_price=_dec(model.unit_price),
            quantity=model.quantity,
            variant_id=model.variant_id,
            refunded_quantity=model.refunded_quantity,
            refunded_amount=_dec(model.refunded_amount),
            item_status=ItemStatus(model.item_status),
        )

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            seller_id=model.seller_id,
            currency=model.currency,
            subtotal=_dec(model.subtotal),
            shipping_cost=_dec(model.shipping_cost),
            tax_amount=_dec(model.tax_amount),
            total=_dec(model.total),
            deposit_amount=_dec(model.deposit_amount),
            payment_type=PaymentType(model.payment_type),
            customer_email=model.customer_email,
            user_id=model.user_id,
            status=OrderStatus(model.status),
            payment_status=PaymentStatus(model.payment_status),
            discount_total=_dec(model.discount_total),
            amount_paid=_dec(model.amount_paid),
            remaining_balance=_dec(model.remaining_balance),
            refunded_amount=_dec(model.refunded_amount),
            line_items=[line_item_from_dict(li) for li in (model.line_items or [])],
            items=[self._item_to_entity(i) for i in model.items],
            shipping_address=Address.from_dict(model.shipping_address),
            billing_address=Address.from_dict(model.billing_address),
            payment_method=model.payment_method,
            tracking_number=model.tracking_number,
            idempotency_key=model.idempotency_key,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        """将领域实体转换为数据库模型"""
        return OrderModel(
            id=entity.id,
            seller_id=entity.seller_id,
            user_id=entity.user_id,
            customer_email=entity.customer_email,
            status=entity.status.value,
            payment_status=entity.payment_status.value,
            payment_type=entity.payment_type.value,
            payment_method=entity.payment_method,
            currency=entity.currency,
            subtotal=entity.subtotal,
            discount_total=entity.discount_total,
            shipping_cost=entity.shipping_cost,
            tax_amount=entity.tax_amount,
            total=entity.total,
            deposit_amount=entity.deposit_amount,
            amount_paid=entity.amount_paid,
            remaining_balance=entity.remaining_balance,
            refunded_amount=entity.refunded_amount,
            line_items=[li.to_dict() for li in entity.line_items],
            shipping_address=entity.shipping_address.to_dict() if entity.shipping_address else None,
            billing_address=entity.billing_address.to_dict() if entity.billing_address else None,
            tracking_number=entity.tracking_number,
            idempotency_key=entity.idempotency_key,
            items=[
                OrderItemModel(
                    id=item.id,
                    position=position,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    refunded_quantity=item.refunded_quantity,
                    refunded_amount=item.refunded_amount,
                    item_status=item.item_status.value,
                )
                for position, item in enumerate(entity.items)
            ],
        )

    async def add(self, order: Order) -> Order:
        model = self._to_model(order)
        self.session.add(model)
        await self.session.flush()
        logger.info("order_persisted", order_id=model.id, total=str(model.total))
        return self._to_entity(model)

    async def _load(self, order_id: str, *, for_update: bool = False) -> Optional[OrderModel]:
        stmt = select(OrderModel).where(OrderModel.id == order_id)
        if for_update:
            # 行级锁，串行化同一订单的资金变更
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, order_id: str, *, for_update: bool = False) -> Optional[Order]:
        model = await self._load(order_id, for_update=for_update)
        return self._to_entity(model) if model else None

    async def update(self, order: Order) -> Order:
        model = await self._load(order.id)
        if not model:
            raise ValueError(f"Order with id {order.id} not found")

        model.status = order.status.value
        model.payment_status = order.payment_status.value
        model.amount_paid = order.amount_paid
        model.remaining_balance = order.remaining_balance
        model.refunded_amount = order.refunded_amount
        model.tracking_number = order.tracking_number
        model.updated_at = order.updated_at or model.updated_at

        by_id = {item.id: item for item in order.items}
        for item_model in model.items:
            item = by_id.get(item_model.id)
            if item is None:
                continue
            item_model.refunded_quantity = item.refunded_quantity
            item_model.refunded_amount = item.refunded_amount
            item_model.item_status = item.item_status.value

        await self.session.flush()
        return self._to_entity(model)
