"""
Cart validation: resolve authoritative products and prices for a cart.

Client-submitted prices are never read. Read-only; nothing is written.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional

from domain.catalog.entity import Product, ProductType
from domain.catalog.repository import ProductRepository, SellerRepository
from domain.common.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    MinimumOrderQuantityError,
    MinimumOrderValueError,
    MixedFulfillmentTypeError,
    MixedSellerError,
    NotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from domain.common.money import ZERO, quantize_money
from domain.order.entity import LineItem, SimpleLineItem, VariantLineItem


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: object
    variant_id: Optional[str] = None


@dataclass(frozen=True)
class ValidatedCart:
    seller_id: str
    product_type: ProductType
    currency: str
    items: tuple[LineItem, ...]
    products: dict[str, Product]

    @property
    def subtotal(self) -> Decimal:
        return quantize_money(sum((i.line_total for i in self.items), ZERO), self.currency)


def _is_positive_int(value) -> bool:
    # bool is an int subclass; True is not a quantity
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def resolve_unit_price(product: Product, now: Optional[datetime] = None) -> Decimal:
    if product.has_active_promotion(now):
        discounted = product.price * (1 - product.discount_percentage / Decimal(100))
        return quantize_money(discounted, product.currency)
    return product.price


def resolve_deposit_per_unit(product: Product, unit_price: Decimal) -> Optional[Decimal]:
    if not product.requires_deposit:
        return None
    if product.deposit_amount is not None:
        return product.deposit_amount
    if product.deposit_percentage is not None:
        return unit_price * product.deposit_percentage / Decimal(100)
    return None


class CartValidator:
    """Validate a cart against the catalog and build tagged line items."""

    def __init__(
        self,
        products: ProductRepository,
        sellers: Optional[SellerRepository] = None,
        *,
        clock=None,
    ) -> None:
        self._products = products
        self._sellers = sellers
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def validate(self, lines: Iterable[CartLine]) -> ValidatedCart:
        lines = list(lines)
        if not lines:
            raise ValidationError("Cart is empty", field="items")

        for line in lines:
            if not _is_positive_int(line.quantity):
                raise InvalidQuantityError(line.product_id, line.quantity)

        found = await self._products.get_many(sorted({line.product_id for line in lines}))
        products = {p.id: p for p in found}
        for line in lines:
            if line.product_id not in products:
                raise ProductNotFoundError(line.product_id)

        seller_ids = [products[line.product_id].seller_id for line in lines]
        if len(set(seller_ids)) > 1:
            raise MixedSellerError(seller_ids)
        product_types = [products[line.product_id].product_type for line in lines]
        if len(set(product_types)) > 1:
            raise MixedFulfillmentTypeError([t.value for t in product_types])

        now = self._clock()
        items: list[LineItem] = []
        requested: dict[str, int] = {}
        for line in lines:
            product = products[line.product_id]
            requested[product.id] = requested.get(product.id, 0) + line.quantity
            items.append(self._build_item(product, line, now))

        for product_id, quantity in requested.items():
            self._check_quantity_rules(products[product_id], quantity)

        first = products[lines[0].product_id]
        cart = ValidatedCart(
            seller_id=first.seller_id,
            product_type=first.product_type,
            currency=first.currency,
            items=tuple(items),
            products=products,
        )
        if cart.product_type == ProductType.WHOLESALE:
            await self._check_minimum_order_value(cart)
        return cart

    @staticmethod
    def _build_item(product: Product, line: CartLine, now: datetime) -> LineItem:
        unit_price = resolve_unit_price(product, now)
        promoted = unit_price != product.price
        common = dict(
            product_id=product.id,
            name=product.name,
            price=unit_price,
            quantity=line.quantity,
            original_price=product.price if promoted else None,
            discount_percentage=product.discount_percentage if promoted else None,
            requires_deposit=product.requires_deposit,
            deposit_per_unit=resolve_deposit_per_unit(product, unit_price),
        )
        if line.variant_id:
            variant = product.find_variant(line.variant_id)
            if variant is None:
                raise NotFoundError("Product variant", line.variant_id)
            return VariantLineItem(
                variant_id=variant.id,
                size=variant.size,
                color=variant.color,
                **common,
            )
        return SimpleLineItem(**common)

    @staticmethod
    def _check_quantity_rules(product: Product, quantity: int) -> None:
        if product.product_type == ProductType.IN_STOCK and product.stock is not None:
            if quantity > product.stock:
                raise InsufficientStockError(product.id, quantity, product.stock)
        if product.product_type == ProductType.WHOLESALE and product.min_order_quantity:
            if quantity < product.min_order_quantity:
                raise MinimumOrderQuantityError(product.id, quantity, product.min_order_quantity)

    async def _check_minimum_order_value(self, cart: ValidatedCart) -> None:
        if self._sellers is None:
            return
        seller = await self._sellers.get_by_id(cart.seller_id)
        minimum = seller.wholesale_min_order_value if seller is not None else None
        if minimum is not None and cart.subtotal < minimum:
            raise MinimumOrderValueError(cart.seller_id, cart.subtotal, minimum)
