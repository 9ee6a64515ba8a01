from decimal import Decimal

import pytest

from application.dtos.orders import RefundRequestDTO
from application.dtos.payments import RefundResult
from domain.catalog.entity import Product
from domain.common.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    RefundExceedsRefundableError,
    ValidationError,
)
from infrastructure.external.payments.exceptions import PaymentProviderError


def _items(**quantities):
    return RefundRequestDTO(items=[{"item_id": k, "quantity": v} for k, v in quantities.items()])


async def _paid_order(place_order, pay, order_service):
    checkout = await place_order([("p-mug", 2), ("p-cup", 1)])
    await pay(checkout.order.id, checkout.payment)
    order = await order_service.get_order(checkout.order.id)
    by_product = {i.product_id: i.id for i in order.items}
    return order, by_product


async def _deposit_and_balance_paid(place_order, pay, order_service):
    checkout = await place_order([("p-vase", 1)])
    await pay(checkout.order.id, checkout.payment)
    balance = await order_service.request_balance_payment(checkout.order.id)
    await pay(checkout.order.id, balance.payment)
    return await order_service.get_order(checkout.order.id)


@pytest.mark.asyncio
async def test_itemized_refund(place_order, pay, order_service, refund_service, gateway, publisher):
    order, items = await _paid_order(place_order, pay, order_service)
    assert order.total == Decimal("148.50")

    outcome = await refund_service.process_refund(order.id, _items(**{items["p-mug"]: 1}))

    assert outcome.amount == Decimal("50.00")
    assert gateway.refunds[0].amount == Decimal("50.00")
    assert gateway.refunds[0].intent_id == "pi_1"
    assert outcome.order.refunded_amount == Decimal("50.00")
    assert outcome.order.payment_status == "fully_paid"
    mug = next(i for i in outcome.order.items if i.id == items["p-mug"])
    assert (mug.refunded_quantity, mug.refunded_amount, mug.item_status) == (1, Decimal("50.00"), "active")
    assert outcome.refunds[0].items == {items["p-mug"]: 1}

    event = publisher.of("order.refunded")[-1]
    assert event.amount == "50.00"
    assert not event.fully_refunded


@pytest.mark.asyncio
async def test_distinct_refunds_use_distinct_keys(place_order, pay, order_service, refund_service, gateway):
    order, items = await _paid_order(place_order, pay, order_service)

    await refund_service.process_refund(order.id, _items(**{items["p-mug"]: 1}))
    await refund_service.process_refund(order.id, _items(**{items["p-mug"]: 1}))

    keys = [r.idempotency_key for r in gateway.refunds]
    assert len(set(keys)) == 2
    refunds = await refund_service.list_refunds(order.id)
    assert [r.amount for r in refunds] == [Decimal("50.00"), Decimal("50.00")]


@pytest.mark.asyncio
async def test_refund_quantity_cannot_exceed_purchased(place_order, pay, order_service, refund_service, gateway):
    order, items = await _paid_order(place_order, pay, order_service)

    with pytest.raises(RefundExceedsRefundableError):
        await refund_service.process_refund(order.id, _items(**{items["p-mug"]: 3}))
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_refunded_units_count_against_later_requests(place_order, pay, order_service, refund_service, gateway, uow_factory):
    async with uow_factory() as uow:
        await uow.products.create(Product(id="p-card", seller_id="seller-1", name="Card", price=Decimal("15.00")))
    checkout = await place_order([("p-card", 3)])
    await pay(checkout.order.id, checkout.payment)
    item_id = checkout.order.items[0].id

    first = await refund_service.process_refund(checkout.order.id, _items(**{item_id: 1}))
    assert first.amount == Decimal("15.00")

    with pytest.raises(ConflictError):
        await refund_service.process_refund(checkout.order.id, _items(**{item_id: 3}))
    assert len(gateway.refunds) == 1

    order = await order_service.get_order(checkout.order.id)
    assert order.refunded_amount == Decimal("15.00")
    assert order.items[0].refunded_quantity == 1


@pytest.mark.asyncio
async def test_refund_unknown_item(place_order, pay, order_service, refund_service):
    order, _ = await _paid_order(place_order, pay, order_service)

    with pytest.raises(NotFoundError):
        await refund_service.process_refund(order.id, _items(nope=1))


@pytest.mark.asyncio
async def test_unpaid_order_has_nothing_refundable(place_order, order_service, refund_service):
    checkout = await place_order([("p-mug", 1)])
    item_id = checkout.order.items[0].id

    with pytest.raises(RefundExceedsRefundableError):
        await refund_service.process_refund(checkout.order.id, _items(**{item_id: 1}))


@pytest.mark.asyncio
async def test_full_refund(place_order, pay, order_service, refund_service, publisher):
    order, _ = await _paid_order(place_order, pay, order_service)

    outcome = await refund_service.process_refund(order.id, RefundRequestDTO(full=True, reason="requested_by_customer"))

    assert outcome.amount == Decimal("148.50")
    assert outcome.order.payment_status == "refunded"
    assert all(i.item_status == "refunded" for i in outcome.order.items)
    assert publisher.of("order.refunded")[-1].fully_refunded

    with pytest.raises(ValidationError):
        await refund_service.process_refund(order.id, RefundRequestDTO(full=True))


@pytest.mark.asyncio
async def test_processor_rejection_writes_nothing(place_order, pay, order_service, refund_service, gateway):
    order, items = await _paid_order(place_order, pay, order_service)
    gateway.refund_outcomes = [
        RefundResult(refund_id="", status="failed", provider="stripe", failure_reason="charge_already_refunded")
    ]

    with pytest.raises(ExternalServiceError):
        await refund_service.process_refund(order.id, _items(**{items["p-cup"]: 1}))

    stored = await order_service.get_order(order.id)
    assert stored.refunded_amount == Decimal("0.00")
    assert await refund_service.list_refunds(order.id) == []


@pytest.mark.asyncio
async def test_full_refund_spans_intents_newest_first(place_order, pay, order_service, refund_service, gateway):
    order = await _deposit_and_balance_paid(place_order, pay, order_service)

    outcome = await refund_service.process_refund(order.id, RefundRequestDTO(full=True))

    assert [(r.intent_id, r.amount) for r in gateway.refunds] == [
        ("pi_2", Decimal("171.00")),
        ("pi_1", Decimal("60.00")),
    ]
    assert outcome.amount == Decimal("231.00")
    assert outcome.order.payment_status == "refunded"


@pytest.mark.asyncio
async def test_partial_processor_failure_keeps_completed_slices(place_order, pay, order_service, refund_service, gateway):
    order = await _deposit_and_balance_paid(place_order, pay, order_service)
    gateway.refund_outcomes = [
        RefundResult(refund_id="re_ok", status="succeeded", provider="stripe"),
        PaymentProviderError("Payment processor error", provider="stripe", provider_code="api_error"),
    ]

    with pytest.raises(ExternalServiceError):
        await refund_service.process_refund(order.id, RefundRequestDTO(full=True))

    stored = await order_service.get_order(order.id)
    assert stored.refunded_amount == Decimal("171.00")
    assert stored.payment_status == "fully_paid"
    assert stored.items[0].refunded_quantity == 0
    refunds = await refund_service.list_refunds(order.id)
    assert [(r.amount, r.provider_refund_id) for r in refunds] == [(Decimal("171.00"), "re_ok")]


@pytest.mark.asyncio
async def test_full_refund_of_deposit_caps_item_amounts(place_order, pay, order_service, refund_service):
    checkout = await place_order([("p-vase", 1)])
    await pay(checkout.order.id, checkout.payment)

    outcome = await refund_service.process_refund(checkout.order.id, RefundRequestDTO(full=True))

    assert outcome.amount == Decimal("60.00")
    assert outcome.order.refunded_amount == Decimal("60.00")
    vase = outcome.order.items[0]
    assert vase.refunded_quantity == 1
    assert vase.refunded_amount == Decimal("60.00")
    assert sum(i.refunded_amount for i in outcome.order.items) <= outcome.order.refunded_amount


@pytest.mark.asyncio
async def test_full_refund_item_amounts_stay_within_refunded_money(place_order, pay, order_service, refund_service):
    order, items = await _paid_order(place_order, pay, order_service)

    outcome = await refund_service.process_refund(order.id, RefundRequestDTO(full=True))

    assert outcome.amount == Decimal("148.50")
    by_id = {i.id: i.refunded_amount for i in outcome.order.items}
    assert by_id[items["p-mug"]] == Decimal("100.00")
    assert by_id[items["p-cup"]] == Decimal("25.00")
    assert sum(by_id.values()) <= outcome.order.refunded_amount
