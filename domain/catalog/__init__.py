"""Catalog domain exports."""
from .entity import (
    Address,
    Product,
    ProductType,
    ProductVariant,
    Seller,
    ShippingType,
    ShippingZone,
    WarehouseAddress,
    ZoneType,
)

__all__ = [
    "Address",
    "Product",
    "ProductType",
    "ProductVariant",
    "Seller",
    "ShippingType",
    "ShippingZone",
    "WarehouseAddress",
    "ZoneType",
]
