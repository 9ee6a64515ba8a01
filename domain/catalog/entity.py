"""
Catalog entities: products, sellers, warehouses and shipping zones.

These are read-mostly inputs to pricing; the order domain never trusts any
price that did not come from here.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.money import ZERO


class ProductType(str, Enum):
    """Fulfillment type; one order may only contain a single type."""
    IN_STOCK = "in-stock"
    PRE_ORDER = "pre-order"
    MADE_TO_ORDER = "made-to-order"
    WHOLESALE = "wholesale"


class ShippingType(str, Enum):
    FREE = "free"
    FLAT = "flat"
    MATRIX = "matrix"
    CARRIER = "carrier"


class ZoneType(str, Enum):
    CITY = "city"
    COUNTRY = "country"
    CONTINENT = "continent"


@dataclass
class ProductVariant:
    id: str
    size: Optional[str] = None
    color: Optional[str] = None


@dataclass
class Product:
    """
    Authoritative product record.

    Deposit policy: a fixed `deposit_amount` per unit wins over
    `deposit_percentage`; either only applies when `requires_deposit`.
    """

    id: str
    seller_id: str
    name: str
    price: Decimal
    product_type: ProductType = ProductType.IN_STOCK
    currency: str = "USD"

    discount_percentage: Optional[Decimal] = None
    promotion_active: bool = False
    promotion_ends_at: Optional[datetime] = None

    requires_deposit: bool = False
    deposit_amount: Optional[Decimal] = None
    deposit_percentage: Optional[Decimal] = None

    # None means stock is not tracked
    stock: Optional[int] = None
    min_order_quantity: Optional[int] = None

    # Parcel data, kg / cm
    weight: Decimal = ZERO
    length: Decimal = ZERO
    width: Decimal = ZERO
    height: Decimal = ZERO

    variants: list[ProductVariant] = field(default_factory=list)

    def find_variant(self, variant_id: str) -> Optional[ProductVariant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    def has_active_promotion(self, now: Optional[datetime] = None) -> bool:
        if not self.promotion_active or not self.discount_percentage:
            return False
        if self.promotion_ends_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        ends_at = self.promotion_ends_at
        if ends_at.tzinfo is None:
            ends_at = ends_at.replace(tzinfo=timezone.utc)
        return ends_at > now


@dataclass
class Seller:
    id: str
    name: str
    shipping_type: ShippingType = ShippingType.FLAT
    flat_shipping_rate: Decimal = ZERO
    tax_enabled: bool = True
    currency: str = "USD"
    # Wholesale carts below this subtotal are rejected; None disables the rule
    wholesale_min_order_value: Optional[Decimal] = None


@dataclass
class Address:
    """Postal address; `country` is ISO-3166 alpha-2."""
    country: str
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    def __post_init__(self):
        self.country = (self.country or "").upper()

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["Address"]:
        if not data:
            return None
        known = {k: data.get(k) for k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class WarehouseAddress:
    id: str
    seller_id: str
    address: Address
    is_default: bool = False


@dataclass
class ShippingZone:
    """One row of a seller's zone matrix."""
    id: str
    seller_id: str
    zone_type: ZoneType
    code: str
    name: str
    rate: Decimal
    estimated_days: Optional[str] = None
