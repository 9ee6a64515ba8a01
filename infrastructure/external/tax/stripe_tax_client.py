"""
Stripe Tax adapter computing exclusive tax for one taxable amount.
"""
from __future__ import annotations

import functools
from decimal import Decimal
from typing import Optional

import anyio
import stripe

from core.logging_config import get_logger
from core.settings import payment_settings
from domain.catalog.entity import Address
from domain.common.exceptions import ExternalServiceError
from domain.common.money import from_minor_units, to_minor_units
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)


class StripeTaxClient:
    provider = "stripe_tax"

    def __init__(self, *, secret_key: Optional[str] = None, timeout: Optional[float] = None):
        self.secret_key = secret_key or payment_settings.stripe.secret_key
        if not self.secret_key:
            raise RuntimeError("PAYMENT__STRIPE__SECRET_KEY not configured")
        self.timeout = timeout or payment_settings.timeouts.total

    def _error(self, message: str, provider_code: str) -> ExternalServiceError:
        return ExternalServiceError(
            message,
            provider=self.provider,
            provider_code=provider_code,
            code=PaymentCode.TAX_PROVIDER_ERROR,
            error_type="TaxProviderError",
        )

    async def calculate(self, amount: Decimal, currency: str, destination: Address) -> Decimal:
        create = functools.partial(
            stripe.tax.Calculation.create,
            api_key=self.secret_key,
            currency=currency.lower(),
            line_items=[
                {
                    "amount": to_minor_units(amount, currency),
                    "reference": "order",
                    "tax_behavior": "exclusive",
                }
            ],
            customer_details={
                "address": {
                    "country": destination.country,
                    "state": destination.state or None,
                    "postal_code": destination.postal_code or None,
                    "city": destination.city or None,
                    "line1": destination.line1 or None,
                },
                "address_source": "shipping",
            },
        )
        try:
            with anyio.fail_after(self.timeout):
                calculation = await anyio.to_thread.run_sync(create)
        except TimeoutError as exc:
            raise self._error("Tax service timed out", "timeout") from exc
        except stripe.StripeError as exc:
            raise self._error("Tax service error", str(getattr(exc, "code", None) or type(exc).__name__)) from exc

        tax = from_minor_units(int(calculation["tax_amount_exclusive"]), currency)
        logger.info("tax_calculated", provider=self.provider, country=destination.country, tax=str(tax))
        return tax
