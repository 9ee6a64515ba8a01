"""
Shipping rate resolution for a validated single-seller cart.

Order of precedence: free, flat, zone matrix (city > country > continent),
then live carrier rates. No silent fallback to an arbitrary zone.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from application.dtos.shipping import CarrierRate, Parcel, ShippingQuoteDTO
from application.ports.carrier import CarrierGateway
from core.logging_config import get_logger
from domain.catalog.entity import Address, Product, Seller, ShippingType
from domain.common.exceptions import ExternalServiceError, NoShippingRouteError, SellerNotFoundError
from domain.common.money import ZERO, quantize_money
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.cart import ValidatedCart
from domain.shipping.zones import match_zone


logger = get_logger(__name__)

_MIN_DIMENSION = Decimal("1")
_MIN_WEIGHT = Decimal("0.1")


def build_parcel(lines: Iterable[tuple[Product, int]]) -> Parcel:
    """One box: largest dimensions across products, weights summed."""
    length = width = height = weight = ZERO
    for product, quantity in lines:
        length = max(length, product.length or ZERO)
        width = max(width, product.width or ZERO)
        height = max(height, product.height or ZERO)
        weight += (product.weight or ZERO) * quantity
    return Parcel(
        length=max(length, _MIN_DIMENSION),
        width=max(width, _MIN_DIMENSION),
        height=max(height, _MIN_DIMENSION),
        weight=max(weight, _MIN_WEIGHT),
    )


def cheapest_rate(rates: Iterable[CarrierRate]) -> Optional[CarrierRate]:
    rates = list(rates)
    if not rates:
        return None
    return min(rates, key=lambda r: r.amount)


class ShippingRateResolver:
    def __init__(self, carrier: Optional[CarrierGateway] = None) -> None:
        self.carrier = carrier

    async def resolve(
        self,
        uow: AbstractUnitOfWork,
        cart: ValidatedCart,
        destination: Address,
    ) -> ShippingQuoteDTO:
        seller = await uow.sellers.get_by_id(cart.seller_id)
        if seller is None:
            raise SellerNotFoundError(cart.seller_id)
        currency = cart.currency

        if seller.shipping_type == ShippingType.FREE:
            return ShippingQuoteDTO(cost=quantize_money(ZERO, currency), method="free")

        if seller.shipping_type == ShippingType.FLAT:
            return ShippingQuoteDTO(
                cost=quantize_money(seller.flat_shipping_rate, currency),
                method="flat",
            )

        if seller.shipping_type == ShippingType.MATRIX:
            zones = await uow.zones.list_by_seller(seller.id)
            zone = match_zone(zones, destination)
            if zone is not None:
                logger.info(
                    "shipping_zone_matched",
                    seller_id=seller.id,
                    zone_type=zone.zone_type.value,
                    zone_code=zone.code,
                )
                return ShippingQuoteDTO(
                    cost=quantize_money(zone.rate, currency),
                    method="zone",
                    zone=zone.name,
                    estimated_days=zone.estimated_days,
                )
            logger.info("shipping_zone_unmatched", seller_id=seller.id, country=destination.country)

        return await self._carrier_quote(uow, seller, cart, destination)

    async def _carrier_quote(
        self,
        uow: AbstractUnitOfWork,
        seller: Seller,
        cart: ValidatedCart,
        destination: Address,
    ) -> ShippingQuoteDTO:
        if self.carrier is None:
            raise NoShippingRouteError(destination.country, reason="no_carrier_configured")
        warehouse = await uow.warehouses.get_default_for_seller(seller.id)
        if warehouse is None:
            raise NoShippingRouteError(destination.country, reason="no_origin_address")

        parcel = build_parcel(
            (cart.products[item.product_id], item.quantity) for item in cart.items
        )
        try:
            rates = await self.carrier.get_rates(warehouse.address, destination, parcel)
        except ExternalServiceError as exc:
            logger.warning(
                "shipping_carrier_rates_failed",
                seller_id=seller.id,
                country=destination.country,
                provider=exc.provider,
                provider_code=exc.provider_code,
                error=exc.message,
            )
            raise NoShippingRouteError(destination.country, reason="carrier_unavailable") from exc

        rate = cheapest_rate(rates)
        if rate is None:
            raise NoShippingRouteError(destination.country, reason="no_carrier_rates")
        return ShippingQuoteDTO(
            cost=quantize_money(rate.amount, cart.currency),
            method="carrier",
            carrier=rate.carrier,
            service_level=rate.service_level,
            estimated_days=str(rate.estimated_days) if rate.estimated_days is not None else None,
        )
