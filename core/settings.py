"""
Provider settings (payment processor, carrier) using pydantic-settings v2
with nested env keys.

Kept apart from core.config.Settings so adapters can be configured
independently, e.g. PAYMENT__STRIPE__SECRET_KEY or CARRIER__SHIPPO__API_KEY.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class ProviderTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class ReadRetry(BaseModel):
    # Applies to read-only calls only; financial calls are never retried
    max: int = 2
    base_backoff: float = 0.2


class WebhookSettings(BaseModel):
    tolerance_seconds: int = 300


class StripeSettings(BaseModel):
    secret_key: Optional[str] = None
    webhook_secret: Optional[str] = None


class PaymentSettings(BaseSettings):
    default_provider: str = "stripe"
    timeouts: ProviderTimeouts = Field(default_factory=ProviderTimeouts)
    retry: ReadRetry = Field(default_factory=ReadRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)

    stripe: StripeSettings = Field(default_factory=StripeSettings)

    model_config = SettingsConfigDict(
        env_prefix="PAYMENT__",
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


class ShippoSettings(BaseModel):
    api_key: Optional[str] = None
    base_url: str = "https://api.goshippo.com"


class CarrierSettings(BaseSettings):
    timeouts: ProviderTimeouts = Field(
        default_factory=lambda: ProviderTimeouts(connect=2.0, read=10.0, write=10.0, total=15.0)
    )
    retry: ReadRetry = Field(default_factory=ReadRetry)
    shippo: ShippoSettings = Field(default_factory=ShippoSettings)

    model_config = SettingsConfigDict(
        env_prefix="CARRIER__",
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
carrier_settings = CarrierSettings()
