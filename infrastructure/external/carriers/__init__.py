"""
Factory for carrier gateway clients.
"""
from __future__ import annotations

from typing import Optional

from application.ports.carrier import CarrierGateway
from core.settings import carrier_settings


def get_carrier_gateway() -> Optional[CarrierGateway]:
    """Shippo client when an API key is configured, else None (carrier rates disabled)."""
    if not carrier_settings.shippo.api_key:
        return None
    from .shippo_client import ShippoClient
    return ShippoClient()
