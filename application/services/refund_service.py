"""
Refunds against captured payments.

The order row lock is held across the processor calls so two refund
requests for the same order cannot both pass the refundable check.
"""
from __future__ import annotations

import hashlib
import uuid
from decimal import Decimal
from typing import Callable, Optional

from application.dtos.orders import OrderDTO, RefundDTO, RefundOutcomeDTO, RefundRequestDTO
from application.dtos.payments import RefundRequest
from application.ports.events import EventPublisher
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.common.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    OrderNotFoundError,
    RefundExceedsRefundableError,
    ValidationError,
)
from domain.common.money import ZERO, quantize_money
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, PaymentStatus
from domain.order.events import OrderRefunded
from domain.payment.entity import IntentStatus, PaymentIntentRecord, Refund, RefundStatus


logger = get_logger(__name__)


def _refund_key(order: Order, intent: PaymentIntentRecord, amount: Decimal, slot: int) -> str:
    # Includes the already-refunded total so a second, distinct refund gets a new key
    base = f"refund|{order.id}|{intent.provider_intent_id}|{amount}|{order.refunded_amount}|{slot}"
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


class RefundService:
    def __init__(
        self,
        gateway: PaymentGateway,
        uow_factory: Callable[[], AbstractUnitOfWork],
        publisher: Optional[EventPublisher] = None,
    ) -> None:
        self.gateway = gateway
        self._uow_factory = uow_factory
        self._publisher = publisher

    def _selected_quantities(self, order: Order, payload: RefundRequestDTO) -> dict[str, int]:
        if payload.full:
            return {i.id: i.refundable_quantity for i in order.items if i.refundable_quantity > 0}
        wanted: dict[str, int] = {}
        for sel in payload.items or []:
            wanted[sel.item_id] = wanted.get(sel.item_id, 0) + sel.quantity
        for item_id, quantity in wanted.items():
            item = order.find_item(item_id)
            if item is None:
                raise NotFoundError("Order item", item_id)
            if quantity > item.refundable_quantity:
                raise RefundExceedsRefundableError(quantity, item.refundable_quantity, item_id=item_id)
        return wanted

    @staticmethod
    def _allocate(intents: list[PaymentIntentRecord], amount: Decimal) -> list[tuple[PaymentIntentRecord, Decimal]]:
        """Split the refund over succeeded intents, newest first."""
        plan = []
        remaining = amount
        for intent in reversed(intents):
            if remaining <= 0:
                break
            take = min(remaining, intent.refundable_amount)
            if take > 0:
                plan.append((intent, take))
                remaining -= take
        if remaining > 0:
            raise ConflictError(
                "Captured payments do not cover the refund amount",
                details={"requested": str(amount), "uncovered": str(remaining)},
            )
        return plan

    @staticmethod
    def _item_shares(order, quantities: dict[str, int], refunded: Decimal) -> dict[str, tuple[int, Decimal]]:
        """
        Spread the money actually refunded over the selected lines.

        Each line is weighted by the value of its refunded units and never
        receives more than that; the last line takes the rounding remainder.
        The shares never sum past `refunded`.
        """
        weights: dict[str, Decimal] = {}
        for item_id, qty in quantities.items():
            item = order.find_item(item_id)
            weights[item_id] = min(item.unit_price * qty, item.line_total - item.refunded_amount)
        total_weight = sum(weights.values(), ZERO)
        if total_weight <= refunded:
            return {item_id: (quantities[item_id], weight) for item_id, weight in weights.items()}

        shares: dict[str, tuple[int, Decimal]] = {}
        allocated = ZERO
        ids = list(weights)
        for index, item_id in enumerate(ids):
            if index == len(ids) - 1:
                share = max(min(refunded - allocated, weights[item_id]), ZERO)
            else:
                share = quantize_money(refunded * weights[item_id] / total_weight, order.currency)
            shares[item_id] = (quantities[item_id], share)
            allocated += share
        return shares

    async def process_refund(self, order_id: str, payload: RefundRequestDTO) -> RefundOutcomeDTO:
        refunds: list[Refund] = []
        deferred_error: Optional[ExternalServiceError] = None

        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id, for_update=True)
            if order is None:
                raise OrderNotFoundError(order_id)

            quantities = self._selected_quantities(order, payload)
            if payload.full:
                amount = order.refundable_amount
            else:
                amount = sum(
                    (order.find_item(item_id).unit_price * qty for item_id, qty in quantities.items()),
                    ZERO,
                )
            amount = quantize_money(amount, order.currency)
            if amount <= 0:
                raise ValidationError("Nothing to refund", field="amount")
            if amount > order.refundable_amount:
                raise RefundExceedsRefundableError(amount, order.refundable_amount)

            intents = [
                i for i in await uow.payment_intents.list_by_order(order.id)
                if i.status == IntentStatus.SUCCEEDED
            ]
            plan = self._allocate(intents, amount)

            for slot, (intent, portion) in enumerate(plan):
                req = RefundRequest(
                    order_id=order.id,
                    intent_id=intent.provider_intent_id,
                    amount=portion,
                    currency=order.currency,
                    reason=payload.reason,
                    provider=intent.provider,
                    idempotency_key=_refund_key(order, intent, portion, slot),
                )
                logger.info(
                    "refund_request",
                    order_id=order.id,
                    intent_id=intent.provider_intent_id,
                    amount=str(portion),
                    idempotency_key=req.idempotency_key,
                )
                try:
                    result = await self.gateway.refund(req)
                    if result.status == RefundStatus.FAILED.value:
                        raise ExternalServiceError(
                            result.failure_reason or "Refund rejected by payment processor",
                            provider=result.provider,
                            provider_code=result.failure_reason,
                        )
                except ExternalServiceError as exc:
                    logger.error(
                        "refund_failed",
                        order_id=order.id,
                        intent_id=intent.provider_intent_id,
                        amount=str(portion),
                        provider_code=exc.provider_code,
                        error=exc.message,
                        slices_completed=len(refunds),
                    )
                    if not refunds:
                        raise
                    deferred_error = exc
                    break

                intent.add_refund(portion)
                await uow.payment_intents.update(intent)
                refund = await uow.refunds.add(
                    Refund(
                        id=uuid.uuid4().hex,
                        order_id=order.id,
                        payment_intent_id=intent.id,
                        provider=result.provider,
                        amount=portion,
                        currency=order.currency,
                        status=RefundStatus(result.status) if result.status in RefundStatus._value2member_map_ else RefundStatus.PENDING,
                        provider_refund_id=result.refund_id,
                        reason=payload.reason,
                        idempotency_key=req.idempotency_key,
                        items=quantities if slot == 0 else {},
                    )
                )
                refunds.append(refund)

            refunded = sum((r.amount for r in refunds), ZERO)
            if deferred_error is None:
                for item_id, (qty, share) in self._item_shares(order, quantities, refunded).items():
                    order.find_item(item_id).apply_refund(qty, share)
            order.apply_refund(refunded)
            await uow.orders.update(order)

        fully_refunded = order.payment_status == PaymentStatus.REFUNDED
        logger.info(
            "order_refunded",
            order_id=order.id,
            amount=str(refunded),
            refunded_amount=str(order.refunded_amount),
            fully_refunded=fully_refunded,
        )
        if self._publisher is not None:
            await self._publisher.publish(
                [
                    OrderRefunded(
                        order_id=order.id,
                        amount=str(refunded),
                        refunded_amount=str(order.refunded_amount),
                        fully_refunded=fully_refunded,
                    )
                ]
            )
        if deferred_error is not None:
            # Slices already refunded at the processor are committed above
            raise deferred_error
        return RefundOutcomeDTO(
            order=OrderDTO.from_entity(order),
            refunds=[RefundDTO.from_entity(r) for r in refunds],
            amount=refunded,
        )

    async def list_refunds(self, order_id: str) -> list[RefundDTO]:
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            refunds = await uow.refunds.list_by_order(order_id)
        return [RefundDTO.from_entity(r) for r in refunds]
