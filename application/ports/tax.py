"""
Tax calculation port.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from domain.catalog.entity import Address


@runtime_checkable
class TaxCalculator(Protocol):
    provider: str

    async def calculate(self, amount: Decimal, currency: str, destination: Address) -> Decimal:
        """Exclusive tax on `amount`; raises `ExternalServiceError` on failure."""
        ...
