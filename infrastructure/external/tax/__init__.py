"""
Factory for the external tax calculator.
"""
from __future__ import annotations

from typing import Optional

from application.ports.tax import TaxCalculator
from core.config import settings
from core.settings import payment_settings


def get_tax_calculator() -> Optional[TaxCalculator]:
    """Stripe Tax when selected and keyed; None means the static rate table is used."""
    if settings.tax.provider != "stripe" or not payment_settings.stripe.secret_key:
        return None
    from .stripe_tax_client import StripeTaxClient
    return StripeTaxClient()
