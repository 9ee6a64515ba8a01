"""
Composition root shared by the HTTP API and Celery tasks.

Builds application services with their infrastructure adapters so the
application layer never imports infrastructure.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.ports.carrier import CarrierGateway
from application.ports.events import EventPublisher
from application.ports.payment_gateway import PaymentGateway
from application.services.order_service import OrderLifecycleService
from application.services.payment_service import PaymentCaptureService
from application.services.refund_service import RefundService
from application.services.shipping_label_service import ShippingLabelService
from application.services.shipping_rate_service import ShippingRateResolver
from application.services.tax_service import TaxEstimator
from core.config import settings
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.events.logging_publisher import LoggingEventPublisher
from infrastructure.external.carriers import get_carrier_gateway
from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.tax import get_tax_calculator
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


UowFactory = Callable[[], AbstractUnitOfWork]


class ServiceContainer:
    """Lazily builds adapters once and hands out services wired to them."""

    def __init__(
        self,
        uow_factory: UowFactory = SQLAlchemyUnitOfWork,
        *,
        gateway: Optional[PaymentGateway] = None,
        carrier: Optional[CarrierGateway] = None,
        publisher: Optional[EventPublisher] = None,
        tax: Optional[TaxEstimator] = None,
    ) -> None:
        self.uow_factory = uow_factory
        self._gateway = gateway
        self._carrier = carrier
        self._carrier_resolved = carrier is not None
        self.publisher = publisher or LoggingEventPublisher()
        self._tax = tax

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = get_payment_gateway()
        return self._gateway

    @property
    def carrier(self) -> Optional[CarrierGateway]:
        if not self._carrier_resolved:
            self._carrier = get_carrier_gateway()
            self._carrier_resolved = True
        return self._carrier

    @property
    def tax(self) -> TaxEstimator:
        if self._tax is None:
            self._tax = TaxEstimator(rates=settings.tax.rates, calculator=get_tax_calculator())
        return self._tax

    def payment_service(self) -> PaymentCaptureService:
        return PaymentCaptureService(
            self.gateway,
            self.uow_factory,
            self.publisher,
            reconcile_after_minutes=settings.commerce.reconcile_after_minutes,
        )

    def order_service(self) -> OrderLifecycleService:
        return OrderLifecycleService(
            self.uow_factory,
            self.payment_service(),
            ShippingRateResolver(self.carrier),
            self.tax,
            self.publisher,
            storefront_url=settings.commerce.storefront_url,
            balance_link_secret=settings.commerce.balance_link_secret,
        )

    def refund_service(self) -> RefundService:
        return RefundService(self.gateway, self.uow_factory, self.publisher)

    def label_service(self) -> ShippingLabelService:
        return ShippingLabelService(
            self.carrier,
            self.uow_factory,
            self.publisher,
            markup_percent=settings.commerce.label_markup_percent,
            min_wallet_balance=settings.commerce.label_min_wallet_balance,
        )

    async def aclose(self) -> None:
        for client in (self._gateway, self._carrier, getattr(self._tax, "calculator", None)):
            close = getattr(client, "aclose", None)
            if callable(close):
                await close()
