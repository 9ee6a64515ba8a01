"""
Factory for the payment processor client.
"""
from __future__ import annotations

from typing import Optional

from application.ports.payment_gateway import PaymentGateway
from core.settings import payment_settings


def get_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    """Stripe is the only processor; anything else is a configuration error."""
    name = (provider or payment_settings.default_provider).lower()
    if name != "stripe":
        raise ValueError(f"Unsupported payment provider: {name}")
    from .stripe_client import StripeClient
    return StripeClient()
