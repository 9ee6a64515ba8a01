"""
Order lifecycle: cart validation, server-side summary, checkout and
seller status changes.

The summary endpoint and order creation share `_price_cart`, so the total a
shopper sees is the total that gets persisted.
"""
from __future__ import annotations

import hashlib
import hmac
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, Optional
from urllib.parse import urlencode

from application.dtos.orders import (
    BalancePaymentDTO,
    CheckoutDTO,
    CreateOrderRequestDTO,
    LineItemDTO,
    OrderDTO,
    OrderSummaryDTO,
    ValidatedCartDTO,
)
from application.dtos.shipping import ShippingQuoteDTO
from application.ports.events import EventPublisher
from application.services.payment_service import PaymentCaptureService
from application.services.shipping_rate_service import ShippingRateResolver
from application.services.tax_service import TaxEstimator
from core.logging_config import get_logger
from domain.catalog.entity import Address
from domain.common.exceptions import ConflictError, ExternalServiceError, OrderNotFoundError
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.cart import CartLine, CartValidator, ValidatedCart
from domain.order.entity import Order, OrderItem, OrderStatus
from domain.order.events import (
    OrderBalanceDue,
    OrderCancelled,
    OrderCreated,
    OrderFulfilled,
    OrderStatusChanged,
)
from domain.order.pricing import PricingBreakdown, calculate_pricing, taxable_amount


logger = get_logger(__name__)


def sign_balance_link(secret: str, order_id: str, intent_id: str) -> str:
    message = f"{order_id}:{intent_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_balance_link(secret: str, order_id: str, intent_id: str, token: str) -> bool:
    return hmac.compare_digest(sign_balance_link(secret, order_id, intent_id), token or "")


@dataclass(frozen=True)
class PricedCart:
    cart: ValidatedCart
    shipping: ShippingQuoteDTO
    pricing: PricingBreakdown


def _to_cart_lines(items: Iterable) -> list[CartLine]:
    return [CartLine(product_id=i.product_id, quantity=i.quantity, variant_id=i.variant_id) for i in items]


class OrderLifecycleService:
    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        payments: PaymentCaptureService,
        shipping: ShippingRateResolver,
        tax: TaxEstimator,
        publisher: Optional[EventPublisher] = None,
        *,
        storefront_url: str = "http://localhost:3000",
        balance_link_secret: str = "change-me",
        clock=None,
    ) -> None:
        self._uow_factory = uow_factory
        self.payments = payments
        self.shipping = shipping
        self.tax = tax
        self._publisher = publisher
        self._storefront_url = storefront_url.rstrip("/")
        self._balance_link_secret = balance_link_secret
        self._clock = clock

    async def _publish(self, events: list) -> None:
        if events and self._publisher is not None:
            await self._publisher.publish(events)

    # ------------------------------------------------------------------
    # Read-only pricing
    # ------------------------------------------------------------------

    async def validate_cart(self, items: Iterable) -> ValidatedCartDTO:
        async with self._uow_factory() as uow:
            cart = await CartValidator(uow.products, uow.sellers, clock=self._clock).validate(_to_cart_lines(items))
        return ValidatedCartDTO(
            seller_id=cart.seller_id,
            product_type=cart.product_type.value,
            currency=cart.currency,
            subtotal=cart.subtotal,
            items=[LineItemDTO.from_line(i) for i in cart.items],
        )

    async def _price_cart(self, uow: AbstractUnitOfWork, items: Iterable, destination: Address) -> PricedCart:
        cart = await CartValidator(uow.products, uow.sellers, clock=self._clock).validate(_to_cart_lines(items))
        quote = await self.shipping.resolve(uow, cart, destination)
        seller = await uow.sellers.get_by_id(cart.seller_id)
        tax = await self.tax.estimate(
            taxable_amount(cart.subtotal, quote.cost),
            destination,
            currency=cart.currency,
            seller=seller,
        )
        pricing = calculate_pricing(cart.items, quote.cost, tax, cart.currency)
        return PricedCart(cart=cart, shipping=quote, pricing=pricing)

    async def calculate_order_summary(self, items: Iterable, destination: Address) -> OrderSummaryDTO:
        async with self._uow_factory() as uow:
            priced = await self._price_cart(uow, items, destination)
        logger.info(
            "order_summary_calculated",
            seller_id=priced.cart.seller_id,
            full_total=str(priced.pricing.full_total),
            payment_type=priced.pricing.payment_type.value,
        )
        return OrderSummaryDTO.build(priced.pricing, priced.shipping, priced.cart.items)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def create_order(self, payload: CreateOrderRequestDTO) -> CheckoutDTO:
        destination = payload.shipping_address.to_domain()
        order_id = uuid.uuid4().hex
        async with self._uow_factory() as uow:
            priced = await self._price_cart(uow, payload.items, destination)
            pricing = priced.pricing
            order = Order(
                id=order_id,
                seller_id=priced.cart.seller_id,
                currency=pricing.currency,
                subtotal=pricing.subtotal,
                shipping_cost=pricing.shipping_cost,
                tax_amount=pricing.tax_amount,
                total=pricing.full_total,
                deposit_amount=pricing.deposit_amount,
                payment_type=pricing.payment_type,
                discount_total=pricing.discount_total,
                customer_email=payload.customer.email,
                user_id=payload.customer.user_id,
                line_items=list(priced.cart.items),
                items=[
                    OrderItem(
                        id=uuid.uuid4().hex,
                        order_id=order_id,
                        product_id=line.product_id,
                        variant_id=getattr(line, "variant_id", None),
                        name=line.name,
                        unit_price=line.price,
                        quantity=line.quantity,
                    )
                    for line in priced.cart.items
                ],
                shipping_address=destination,
                billing_address=payload.billing_address.to_domain() if payload.billing_address else None,
                payment_method=payload.payment_method,
                idempotency_key=hashlib.sha256(f"order|{order_id}".encode("utf-8")).hexdigest(),
            )
            order = await uow.orders.add(order)

        logger.info(
            "order_created",
            order_id=order.id,
            seller_id=order.seller_id,
            total=str(order.total),
            deposit_amount=str(order.deposit_amount),
            payment_type=order.payment_type.value,
        )
        await self._publish([OrderCreated(order_id=order.id, total=str(order.total), currency=order.currency)])

        # The order stays pending/pending if the processor call fails
        try:
            session = await self.payments.initiate_payment(order.id)
        except ExternalServiceError as exc:
            logger.warning("order_payment_initiation_failed", order_id=order.id, error=exc.message)
            return CheckoutDTO(order=OrderDTO.from_entity(order), payment=None, payment_error=exc.message)
        return CheckoutDTO(order=OrderDTO.from_entity(order), payment=session)

    async def retry_payment(self, order_id: str) -> CheckoutDTO:
        session = await self.payments.initiate_payment(order_id)
        return CheckoutDTO(order=await self.get_order(order_id), payment=session)

    # ------------------------------------------------------------------
    # Queries and seller actions
    # ------------------------------------------------------------------

    async def get_order(self, order_id: str) -> OrderDTO:
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
        return OrderDTO.from_entity(order)

    async def update_order_status(self, order_id: str, status: OrderStatus) -> OrderDTO:
        status = OrderStatus(status)
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id, for_update=True)
            if order is None:
                raise OrderNotFoundError(order_id)
            previous = order.change_status(status)
            await uow.orders.update(order)

        logger.info("order_status_changed", order_id=order.id, previous=previous.value, new=status.value)
        events: list = [
            OrderStatusChanged(order_id=order.id, previous_status=previous.value, new_status=status.value)
        ]
        if status == OrderStatus.DELIVERED:
            events.append(OrderFulfilled(order_id=order.id))
        elif status == OrderStatus.CANCELLED:
            events.append(OrderCancelled(order_id=order.id))
        await self._publish(events)
        return OrderDTO.from_entity(order)

    async def request_balance_payment(self, order_id: str) -> BalancePaymentDTO:
        async with self._uow_factory() as uow:
            order = await uow.orders.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
        if not order.can_request_balance():
            raise ConflictError(
                "Balance can only be requested after the deposit is paid",
                details={
                    "order_id": order.id,
                    "payment_status": order.payment_status.value,
                    "remaining_balance": str(order.remaining_balance),
                },
            )

        session = await self.payments.initiate_payment(order.id)
        token = sign_balance_link(self._balance_link_secret, order.id, session.intent_id)
        query = urlencode({"intent": session.intent_id, "token": token})
        link = f"{self._storefront_url}/pay/balance/{order.id}?{query}"

        logger.info("order_balance_requested", order_id=order.id, amount=str(session.amount))
        await self._publish(
            [OrderBalanceDue(order_id=order.id, remaining_balance=str(order.remaining_balance), payment_link=link)]
        )
        return BalancePaymentDTO(
            order_id=order.id,
            amount=session.amount,
            currency=session.currency,
            payment_link=link,
            payment=session,
        )
