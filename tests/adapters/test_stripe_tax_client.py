from decimal import Decimal

import pytest

from domain.catalog.entity import Address
from domain.common.exceptions import ExternalServiceError
from infrastructure.external.tax.stripe_tax_client import StripeTaxClient


stripe = pytest.importorskip("stripe")

DEST = Address(country="US", state="CA", city="San Francisco", postal_code="94103", line1="1 Market St")


@pytest.mark.asyncio
async def test_exclusive_tax_from_minor_units(monkeypatch):
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        return {"tax_amount_exclusive": 798}

    monkeypatch.setattr(stripe.tax.Calculation, "create", create)

    tax = await StripeTaxClient(secret_key="sk_test_123").calculate(Decimal("110.00"), "USD", DEST)

    assert tax == Decimal("7.98")
    assert calls[0]["currency"] == "usd"
    assert calls[0]["line_items"][0]["amount"] == 11000
    assert calls[0]["line_items"][0]["tax_behavior"] == "exclusive"
    assert calls[0]["customer_details"]["address"]["state"] == "CA"


@pytest.mark.asyncio
async def test_processor_error_becomes_external_error(monkeypatch):
    def create(**kwargs):
        raise stripe.APIConnectionError("connection reset")

    monkeypatch.setattr(stripe.tax.Calculation, "create", create)

    with pytest.raises(ExternalServiceError) as exc:
        await StripeTaxClient(secret_key="sk_test_123").calculate(Decimal("10.00"), "USD", DEST)
    assert exc.value.provider == "stripe_tax"
