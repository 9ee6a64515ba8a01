"""
Tax estimation on subtotal + shipping.

Uses the external calculator when configured and falls back to the static
jurisdiction table. A client-supplied tax figure is never an input.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Optional

from application.ports.tax import TaxCalculator
from core.logging_config import get_logger
from domain.catalog.entity import Address, Seller
from domain.common.exceptions import ExternalServiceError
from domain.common.money import ZERO, quantize_money, to_decimal


logger = get_logger(__name__)


class TaxEstimator:
    def __init__(
        self,
        rates: Optional[Mapping[str, Decimal]] = None,
        calculator: Optional[TaxCalculator] = None,
    ) -> None:
        self.rates = {k.upper(): to_decimal(v) for k, v in (rates or {}).items()}
        self.calculator = calculator

    def table_rate(self, destination: Address) -> Decimal:
        country = (destination.country or "").upper()
        state = (destination.state or "").upper()
        if state and f"{country}-{state}" in self.rates:
            return self.rates[f"{country}-{state}"]
        return self.rates.get(country, ZERO)

    async def estimate(
        self,
        amount,
        destination: Address,
        *,
        currency: str = "USD",
        seller: Optional[Seller] = None,
    ) -> Decimal:
        amount = to_decimal(amount)
        if amount <= 0:
            return quantize_money(ZERO, currency)
        if seller is not None and not seller.tax_enabled:
            return quantize_money(ZERO, currency)

        if self.calculator is not None:
            try:
                tax = await self.calculator.calculate(amount, currency, destination)
                return quantize_money(tax, currency)
            except ExternalServiceError as exc:
                logger.warning(
                    "tax_calculator_failed_using_table",
                    provider=exc.provider,
                    provider_code=exc.provider_code,
                    country=destination.country,
                    error=exc.message,
                )

        return quantize_money(amount * self.table_rate(destination), currency)
