from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest

from application.dtos.orders import AddressDTO, CartItemDTO, CreateOrderRequestDTO
from application.services.order_service import verify_balance_link
from domain.common.exceptions import ConflictError, OrderNotFoundError
from domain.order.entity import OrderStatus
from infrastructure.external.payments.exceptions import PaymentProviderError


US = AddressDTO(country="US", line1="5 Elm St", postal_code="10001")


@pytest.mark.asyncio
async def test_validate_cart(order_service, catalog):
    cart = await order_service.validate_cart([CartItemDTO(product_id="p-mug", quantity=2)])

    assert cart.subtotal == Decimal("100.00")
    assert cart.items[0].price == Decimal("50.00")


@pytest.mark.asyncio
async def test_summary_matches_created_order(order_service, place_order, gateway, publisher):
    summary = await order_service.calculate_order_summary(
        [CartItemDTO(product_id="p-mug", quantity=2)], US.to_domain()
    )
    checkout = await place_order([("p-mug", 2)])

    assert summary.subtotal == Decimal("100.00")
    assert summary.shipping_cost == Decimal("10.00")
    assert summary.tax_amount == Decimal("11.00")
    assert summary.full_total == Decimal("121.00")
    assert checkout.order.total == summary.full_total
    assert checkout.order.payment_type == "full"
    assert checkout.payment.stage == "full"
    assert checkout.payment.amount == Decimal("121.00")
    assert checkout.payment.client_secret == "pi_1_secret"

    req = gateway.created[0]
    assert req.metadata["order_id"] == checkout.order.id
    assert len(req.idempotency_key) == 64
    assert publisher.names == ["order.created"]


@pytest.mark.asyncio
async def test_client_supplied_prices_are_ignored(order_service, catalog):
    payload = CreateOrderRequestDTO.model_validate(
        {
            "customer": {"email": "buyer@example.com"},
            "items": [{"product_id": "p-mug", "quantity": 2, "price": "0.01"}],
            "shipping_address": {"country": "US"},
            "total": "1.00",
        }
    )

    checkout = await order_service.create_order(payload)

    assert checkout.order.total == Decimal("121.00")


@pytest.mark.asyncio
async def test_deposit_order_charges_deposit_first(place_order):
    checkout = await place_order([("p-vase", 1)])

    order = checkout.order
    assert order.payment_type == "deposit"
    assert order.total == Decimal("231.00")
    assert order.deposit_amount == Decimal("60.00")
    assert checkout.payment.stage == "deposit"
    assert checkout.payment.amount == Decimal("60.00")


@pytest.mark.asyncio
async def test_processor_failure_keeps_order(order_service, place_order, gateway):
    gateway.fail_create = PaymentProviderError("Payment processor error", provider="stripe", provider_code="api_error")

    checkout = await place_order([("p-mug", 1)])

    assert checkout.payment is None
    assert checkout.payment_error == "Payment processor error"
    stored = await order_service.get_order(checkout.order.id)
    assert stored.status == "pending"
    assert stored.payment_status == "pending"

    gateway.fail_create = None
    retried = await order_service.retry_payment(checkout.order.id)
    assert retried.payment.amount == Decimal("66.00")


@pytest.mark.asyncio
async def test_pending_intent_is_reused(order_service, place_order, gateway):
    checkout = await place_order([("p-mug", 1)])

    again = await order_service.retry_payment(checkout.order.id)

    assert again.payment.intent_id == checkout.payment.intent_id
    assert len(gateway.created) == 1


@pytest.mark.asyncio
async def test_unknown_order(order_service, catalog):
    with pytest.raises(OrderNotFoundError):
        await order_service.get_order("missing")


@pytest.mark.asyncio
async def test_status_changes_publish_events(order_service, place_order, publisher):
    checkout = await place_order([("p-mug", 1)])

    shipped = await order_service.update_order_status(checkout.order.id, OrderStatus.SHIPPED)
    await order_service.update_order_status(checkout.order.id, OrderStatus.DELIVERED)

    assert shipped.status == "shipped"
    assert shipped.payment_status == "pending"
    assert publisher.names[-3:] == ["order.status_changed", "order.status_changed", "order.fulfilled"]

    await order_service.update_order_status(checkout.order.id, OrderStatus.CANCELLED)
    assert publisher.names[-1] == "order.cancelled"


@pytest.mark.asyncio
async def test_balance_request_requires_deposit(order_service, place_order):
    checkout = await place_order([("p-vase", 1)])

    with pytest.raises(ConflictError):
        await order_service.request_balance_payment(checkout.order.id)


@pytest.mark.asyncio
async def test_balance_request_after_deposit(order_service, place_order, pay, publisher):
    checkout = await place_order([("p-vase", 1)])
    await pay(checkout.order.id, checkout.payment)

    balance = await order_service.request_balance_payment(checkout.order.id)

    assert balance.amount == Decimal("171.00")
    assert balance.payment.stage == "balance"
    link = urlparse(balance.payment_link)
    assert link.path == f"/pay/balance/{checkout.order.id}"
    query = parse_qs(link.query)
    assert query["intent"] == [balance.payment.intent_id]
    assert verify_balance_link("link-secret", checkout.order.id, balance.payment.intent_id, query["token"][0])
    assert not verify_balance_link("link-secret", checkout.order.id, "pi_other", query["token"][0])

    due = publisher.of("order.balance_due")[-1]
    assert due.payment_link == balance.payment_link


@pytest.mark.asyncio
async def test_paid_order_has_nothing_to_initiate(order_service, place_order, pay):
    checkout = await place_order([("p-mug", 1)])
    await pay(checkout.order.id, checkout.payment)

    with pytest.raises(ConflictError):
        await order_service.retry_payment(checkout.order.id)
