"""Order domain exports."""
from .entity import (
    ItemStatus,
    LineItem,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStage,
    PaymentStatus,
    PaymentType,
    SimpleLineItem,
    VariantLineItem,
    line_item_from_dict,
)
from .repository import OrderRepository

__all__ = [
    "ItemStatus",
    "LineItem",
    "Order",
    "OrderItem",
    "OrderRepository",
    "OrderStatus",
    "PaymentStage",
    "PaymentStatus",
    "PaymentType",
    "SimpleLineItem",
    "VariantLineItem",
    "line_item_from_dict",
]
