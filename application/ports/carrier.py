"""
Carrier port: live rates, label purchase and label refunds.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.shipping import CarrierRate, CarrierRefund, Parcel, PurchasedLabel
from domain.catalog.entity import Address


@runtime_checkable
class CarrierGateway(Protocol):
    """Implementations raise `ExternalServiceError` on carrier failure or timeout."""

    provider: str

    async def get_rates(self, origin: Address, destination: Address, parcel: Parcel) -> list[CarrierRate]: ...

    async def purchase_label(self, rate_id: str) -> PurchasedLabel: ...

    async def request_refund(self, transaction_id: str) -> CarrierRefund: ...

    async def get_refund(self, refund_id: str) -> CarrierRefund: ...
