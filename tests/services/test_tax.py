from decimal import Decimal

import pytest

from application.services.tax_service import TaxEstimator
from domain.catalog.entity import Address, Seller
from domain.common.exceptions import ExternalServiceError


class _Calculator:
    provider = "stub_tax"

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def calculate(self, amount, currency, destination):
        self.calls.append((amount, currency, destination.country))
        if self.error is not None:
            raise self.error
        return self.result


RATES = {"US": Decimal("0.10"), "US-CA": Decimal("0.0725")}


@pytest.mark.asyncio
async def test_subdivision_rate_beats_country_rate():
    estimator = TaxEstimator(rates=RATES)

    assert await estimator.estimate(Decimal("110.00"), Address(country="US", state="CA")) == Decimal("7.98")
    assert await estimator.estimate(Decimal("110.00"), Address(country="US", state="OR")) == Decimal("11.00")


@pytest.mark.asyncio
async def test_unknown_jurisdiction_is_untaxed():
    estimator = TaxEstimator(rates=RATES)

    assert await estimator.estimate(Decimal("50.00"), Address(country="JP")) == Decimal("0.00")


@pytest.mark.asyncio
async def test_seller_with_tax_disabled():
    estimator = TaxEstimator(rates=RATES)
    seller = Seller(id="s", name="S", tax_enabled=False)

    assert await estimator.estimate(Decimal("50.00"), Address(country="US"), seller=seller) == Decimal("0.00")


@pytest.mark.asyncio
async def test_external_calculator_is_preferred():
    calculator = _Calculator(result=Decimal("4.444"))
    estimator = TaxEstimator(rates=RATES, calculator=calculator)

    tax = await estimator.estimate(Decimal("50.00"), Address(country="US"))

    assert tax == Decimal("4.44")
    assert calculator.calls == [(Decimal("50.00"), "USD", "US")]


@pytest.mark.asyncio
async def test_calculator_failure_falls_back_to_table():
    calculator = _Calculator(error=ExternalServiceError("Tax service timed out", provider="stub_tax", provider_code="timeout"))
    estimator = TaxEstimator(rates=RATES, calculator=calculator)

    assert await estimator.estimate(Decimal("50.00"), Address(country="US")) == Decimal("5.00")


@pytest.mark.asyncio
async def test_nothing_taxable():
    calculator = _Calculator(result=Decimal("1.00"))
    estimator = TaxEstimator(rates=RATES, calculator=calculator)

    assert await estimator.estimate(Decimal("0"), Address(country="US")) == Decimal("0.00")
    assert calculator.calls == []
