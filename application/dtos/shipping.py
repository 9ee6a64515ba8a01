"""
Shipping DTOs: carrier port payloads and label/wallet responses.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from application.dto import DTOBase


class Parcel(BaseModel):
    """Package dimensions in cm / kg."""
    length: Decimal
    width: Decimal
    height: Decimal
    weight: Decimal
    distance_unit: str = "cm"
    mass_unit: str = "kg"


class CarrierRate(BaseModel):
    rate_id: str
    carrier: str
    service_level: Optional[str] = None
    amount: Decimal
    currency: str = "USD"
    estimated_days: Optional[int] = None


class PurchasedLabel(BaseModel):
    transaction_id: str
    tracking_number: str
    label_url: Optional[str] = None
    carrier: Optional[str] = None


class CarrierRefund(BaseModel):
    refund_id: Optional[str] = None
    # queued | pending | success | rejected
    status: str
    reason: Optional[str] = None


class ShippingQuoteDTO(DTOBase):
    cost: Decimal
    method: str
    zone: Optional[str] = None
    carrier: Optional[str] = None
    service_level: Optional[str] = None
    estimated_days: Optional[str] = None


class ShippingLabelDTO(DTOBase):
    id: str
    order_id: str
    seller_id: str
    carrier: str
    service_level: Optional[str] = None
    tracking_number: str
    label_url: Optional[str] = None
    base_cost: Decimal
    markup_percent: Decimal
    total_charged: Decimal
    currency: str
    status: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LabelCancelResultDTO(DTOBase):
    """Outcome of a cancel request; a carrier rejection is not an error."""
    label: ShippingLabelDTO
    refund_status: str
    rejection_reason: Optional[str] = None
    credited_amount: Optional[Decimal] = None


class PurchaseLabelRequestDTO(DTOBase):
    warehouse_address_id: str = Field(..., min_length=1)


class WalletEntryDTO(DTOBase):
    kind: str
    amount: Decimal
    reference: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WalletDTO(DTOBase):
    seller_id: str
    balance: Decimal
    currency: str
    entries: list[WalletEntryDTO] = Field(default_factory=list)
