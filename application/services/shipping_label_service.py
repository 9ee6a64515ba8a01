"""
Shipping label purchase and cancellation against the seller's prepaid
wallet.

Label purchase and the wallet debit share one transaction; the seller row
lock serializes concurrent purchases so the balance check cannot be raced.
"""
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Callable, Optional

from application.dtos.shipping import (
    LabelCancelResultDTO,
    ShippingLabelDTO,
    WalletDTO,
    WalletEntryDTO,
)
from application.ports.carrier import CarrierGateway
from application.ports.events import EventPublisher
from application.services.shipping_rate_service import build_parcel, cheapest_rate
from core.logging_config import get_logger
from domain.common.exceptions import (
    ConflictError,
    ExternalServiceError,
    InsufficientFundsError,
    NoShippingRouteError,
    NotFoundError,
    OrderNotFoundError,
    SellerNotFoundError,
    ShippingLabelNotFoundError,
    ValidationError,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.shipping.entity import (
    LabelRefund,
    LabelRefundStatus,
    LedgerKind,
    ShippingLabel,
    WalletLedgerEntry,
    label_total_charged,
)
from domain.shipping.events import LabelPurchased, LabelVoided


logger = get_logger(__name__)


def label_to_dto(label: ShippingLabel) -> ShippingLabelDTO:
    return ShippingLabelDTO(
        id=label.id,
        order_id=label.order_id,
        seller_id=label.seller_id,
        carrier=label.carrier,
        service_level=label.service_level,
        tracking_number=label.tracking_number,
        label_url=label.label_url,
        base_cost=label.base_cost,
        markup_percent=label.markup_percent,
        total_charged=label.total_charged,
        currency=label.currency,
        status=label.status.value,
        created_at=label.created_at,
    )


def _refund_status(value: str) -> LabelRefundStatus:
    try:
        return LabelRefundStatus(value)
    except ValueError:
        return LabelRefundStatus.PENDING


class ShippingLabelService:
    def __init__(
        self,
        carrier: Optional[CarrierGateway],
        uow_factory: Callable[[], AbstractUnitOfWork],
        publisher: Optional[EventPublisher] = None,
        *,
        markup_percent: Decimal = Decimal("20"),
        min_wallet_balance: Decimal = Decimal("0"),
    ) -> None:
        self.carrier = carrier
        self._uow_factory = uow_factory
        self._publisher = publisher
        self.markup_percent = Decimal(markup_percent)
        self.min_wallet_balance = Decimal(min_wallet_balance)

    def _require_carrier(self) -> CarrierGateway:
        if self.carrier is None:
            raise ExternalServiceError(
                "Carrier integration is not configured",
                provider="carrier",
                provider_code="not_configured",
            )
        return self.carrier

    async def _publish(self, events: list) -> None:
        if events and self._publisher is not None:
            await self._publisher.publish(events)

    async def _credit(self, uow: AbstractUnitOfWork, label: ShippingLabel) -> bool:
        """Credit the label's charge back exactly once."""
        if await uow.wallet.exists(LedgerKind.LABEL_REFUND, label.id):
            return False
        await uow.wallet.add(
            WalletLedgerEntry(
                id=uuid.uuid4().hex,
                seller_id=label.seller_id,
                kind=LedgerKind.LABEL_REFUND,
                amount=label.total_charged,
                reference=label.id,
                currency=label.currency,
                description=f"Label refund {label.tracking_number}",
            )
        )
        return True

    # ------------------------------------------------------------------
    # Purchase
    # ------------------------------------------------------------------

    async def purchase(self, order_id: str, warehouse_address_id: str) -> ShippingLabelDTO:
        carrier = self._require_carrier()
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id, for_update=True)
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.shipping_address is None:
                raise ValidationError("Order has no shipping address", field="shipping_address")
            active = await uow.labels.get_active_for_order(order.id)
            if active is not None:
                raise ConflictError(
                    "Order already has an active shipping label",
                    details={"order_id": order.id, "label_id": active.id, "status": active.status.value},
                )

            warehouse = await uow.warehouses.get_by_id(warehouse_address_id)
            if warehouse is None or warehouse.seller_id != order.seller_id:
                raise NotFoundError("Warehouse address", warehouse_address_id)

            products = {p.id: p for p in await uow.products.get_many([i.product_id for i in order.items])}
            parcel = build_parcel(
                (products[i.product_id], i.quantity) for i in order.items if i.product_id in products
            )
            rates = await carrier.get_rates(warehouse.address, order.shipping_address, parcel)
            rate = cheapest_rate(rates)
            if rate is None:
                raise NoShippingRouteError(order.shipping_address.country, reason="no_carrier_rates")

            seller = await uow.sellers.get_by_id(order.seller_id, for_update=True)
            if seller is None:
                raise SellerNotFoundError(order.seller_id)
            # Labels are billed in the carrier currency, which must match the wallet
            currency = rate.currency.upper()
            if currency != seller.currency.upper():
                raise ValidationError(
                    "Carrier rate currency does not match the seller wallet currency",
                    field="currency",
                    details={"rate_currency": currency, "wallet_currency": seller.currency},
                )
            total = label_total_charged(rate.amount, self.markup_percent, currency)
            balance = await uow.wallet.balance(seller.id)
            required = max(total, self.min_wallet_balance)
            if balance < required:
                logger.info(
                    "label_purchase_insufficient_funds",
                    order_id=order.id,
                    seller_id=seller.id,
                    balance=str(balance),
                    required=str(required),
                )
                raise InsufficientFundsError(balance, required)

            try:
                purchased = await carrier.purchase_label(rate.rate_id)
            except ExternalServiceError as exc:
                logger.error(
                    "label_purchase_failed",
                    order_id=order.id,
                    seller_id=seller.id,
                    provider_code=exc.provider_code,
                    error=exc.message,
                )
                raise

            label = await uow.labels.add(
                ShippingLabel(
                    id=uuid.uuid4().hex,
                    order_id=order.id,
                    seller_id=seller.id,
                    carrier=purchased.carrier or rate.carrier,
                    service_level=rate.service_level,
                    tracking_number=purchased.tracking_number,
                    label_url=purchased.label_url,
                    carrier_transaction_id=purchased.transaction_id,
                    base_cost=rate.amount,
                    markup_percent=self.markup_percent,
                    total_charged=total,
                    currency=currency,
                    warehouse_address_id=warehouse.id,
                )
            )
            await uow.wallet.add(
                WalletLedgerEntry(
                    id=uuid.uuid4().hex,
                    seller_id=seller.id,
                    kind=LedgerKind.LABEL_PURCHASE,
                    amount=-total,
                    reference=label.id,
                    currency=currency,
                    description=f"Label {purchased.tracking_number}",
                )
            )
            order.attach_tracking_number(purchased.tracking_number)
            await uow.orders.update(order)

        logger.info(
            "label_purchased",
            order_id=order.id,
            label_id=label.id,
            base_cost=str(rate.amount),
            total_charged=str(total),
            tracking_number=label.tracking_number,
        )
        await self._publish(
            [
                LabelPurchased(
                    label_id=label.id,
                    order_id=order.id,
                    tracking_number=label.tracking_number,
                    total_charged=str(total),
                )
            ]
        )
        return label_to_dto(label)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel(self, label_id: str) -> LabelCancelResultDTO:
        carrier = self._require_carrier()
        credited: Optional[Decimal] = None
        async with self._uow_factory() as uow:
            label = await uow.labels.get_by_id(label_id)
            if label is None:
                raise ShippingLabelNotFoundError(label_id)
            # Seller lock serializes wallet writes for this label's owner
            await uow.sellers.get_by_id(label.seller_id, for_update=True)
            label = await uow.labels.get_by_id(label_id)
            label.ensure_cancellable()

            try:
                outcome = await carrier.request_refund(label.carrier_transaction_id)
            except ExternalServiceError as exc:
                logger.error(
                    "label_cancel_failed",
                    label_id=label.id,
                    order_id=label.order_id,
                    seller_id=label.seller_id,
                    provider_code=exc.provider_code,
                    total_charged=str(label.total_charged),
                    error=exc.message,
                )
                raise
            status = _refund_status(outcome.status)
            refund = await uow.label_refunds.add(
                LabelRefund(
                    id=uuid.uuid4().hex,
                    label_id=label.id,
                    status=status,
                    carrier_refund_id=outcome.refund_id,
                    rejection_reason=outcome.reason if status == LabelRefundStatus.REJECTED else None,
                )
            )

            if status == LabelRefundStatus.SUCCESS:
                label.mark_voided()
                if await self._credit(uow, label):
                    credited = label.total_charged
            elif status.is_open:
                label.mark_refund_requested()
            await uow.labels.update(label)

        logger.info(
            "label_cancel_result",
            label_id=label.id,
            order_id=label.order_id,
            refund_status=status.value,
            credited=str(credited) if credited is not None else None,
            reason=refund.rejection_reason,
        )
        if credited is not None:
            await self._publish([LabelVoided(label_id=label.id, order_id=label.order_id, credited=str(credited))])
        return LabelCancelResultDTO(
            label=label_to_dto(label),
            refund_status=status.value,
            rejection_reason=refund.rejection_reason,
            credited_amount=credited,
        )

    async def poll_pending_refunds(self, limit: int = 100) -> int:
        """Resolve carrier refunds still queued or pending. Returns how many resolved."""
        carrier = self._require_carrier()
        async with self._uow_factory() as uow:
            open_refunds = await uow.label_refunds.list_open(limit=limit)

        resolved = 0
        for pending in open_refunds:
            if not pending.carrier_refund_id:
                continue
            try:
                outcome = await carrier.get_refund(pending.carrier_refund_id)
            except ExternalServiceError as exc:
                logger.warning("label_refund_poll_failed", label_id=pending.label_id, error=exc.message)
                continue
            status = _refund_status(outcome.status)
            if status.is_open:
                continue

            published: list = []
            async with self._uow_factory() as uow:
                label = await uow.labels.get_by_id(pending.label_id)
                if label is None:
                    continue
                await uow.sellers.get_by_id(label.seller_id, for_update=True)
                refund = next(
                    (r for r in await uow.label_refunds.list_by_label(label.id) if r.id == pending.id),
                    None,
                )
                if refund is None or not refund.status.is_open:
                    continue
                refund.resolve(status, outcome.reason)
                await uow.label_refunds.update(refund)
                if status == LabelRefundStatus.SUCCESS:
                    label.mark_voided()
                    if await self._credit(uow, label):
                        published.append(
                            LabelVoided(label_id=label.id, order_id=label.order_id, credited=str(label.total_charged))
                        )
                else:
                    label.revert_to_purchased()
                await uow.labels.update(label)
                resolved += 1
            logger.info("label_refund_resolved", label_id=pending.label_id, status=status.value)
            await self._publish(published)
        return resolved

    # ------------------------------------------------------------------
    # Wallet
    # ------------------------------------------------------------------

    async def get_wallet_balance(self, seller_id: str, limit: int = 50) -> WalletDTO:
        async with self._uow_factory() as uow:
            seller = await uow.sellers.get_by_id(seller_id)
            if seller is None:
                raise SellerNotFoundError(seller_id)
            balance = await uow.wallet.balance(seller.id)
            entries = await uow.wallet.list_by_seller(seller.id, limit=limit)
        return WalletDTO(
            seller_id=seller.id,
            balance=balance,
            currency=seller.currency,
            entries=[
                WalletEntryDTO(
                    kind=e.kind.value,
                    amount=e.amount,
                    reference=e.reference,
                    description=e.description,
                    created_at=e.created_at,
                )
                for e in entries
            ],
        )
