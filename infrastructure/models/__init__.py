"""Infrastructure models package exports."""
from .base import Base, metadata
from .catalog import ProductModel, SellerModel, ShippingZoneModel, WarehouseAddressModel
from .order import OrderItemModel, OrderModel
from .payment import PaymentIntentModel, ProcessedWebhookEventModel, RefundModel
from .shipping import LabelRefundModel, ShippingLabelModel, WalletLedgerEntryModel

__all__ = [
    "Base",
    "metadata",
    "ProductModel",
    "SellerModel",
    "ShippingZoneModel",
    "WarehouseAddressModel",
    "OrderModel",
    "OrderItemModel",
    "PaymentIntentModel",
    "RefundModel",
    "ProcessedWebhookEventModel",
    "ShippingLabelModel",
    "LabelRefundModel",
    "WalletLedgerEntryModel",
]
