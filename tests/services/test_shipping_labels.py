from decimal import Decimal

import pytest

from application.dtos.shipping import CarrierRate
from application.services import shipping_label_service
from application.services.shipping_label_service import ShippingLabelService
from domain.catalog.entity import Product
from domain.common.exceptions import (
    ConflictError,
    ExternalServiceError,
    InsufficientFundsError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)


async def _order(place_order):
    checkout = await place_order([("p-mug", 1)])
    return checkout.order.id


@pytest.mark.asyncio
async def test_purchase_rejected_without_funds(place_order, label_service, carrier):
    order_id = await _order(place_order)

    with pytest.raises(InsufficientFundsError):
        await label_service.purchase(order_id, "wh-1")
    assert carrier.purchased == []
    wallet = await label_service.get_wallet_balance("seller-1")
    assert wallet.balance == Decimal("0")


@pytest.mark.asyncio
async def test_purchase_debits_marked_up_cheapest_rate(place_order, label_service, order_service, carrier, publisher, top_up):
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")

    label = await label_service.purchase(order_id, "wh-1")

    assert carrier.purchased == ["rate_cheap"]
    assert (label.base_cost, label.total_charged) == (Decimal("8.00"), Decimal("9.60"))
    assert label.status == "purchased"
    assert label.tracking_number == "TRACK1"

    wallet = await label_service.get_wallet_balance("seller-1")
    assert wallet.balance == Decimal("90.40")
    assert sorted(e.kind for e in wallet.entries) == ["label_purchase", "topup"]

    order = await order_service.get_order(order_id)
    assert order.tracking_number == "TRACK1"
    assert publisher.of("label.purchased")[0].total_charged == "9.60"


@pytest.mark.asyncio
async def test_wallet_below_quote_is_left_untouched(place_order, label_service, carrier, top_up):
    carrier.rates = [CarrierRate(rate_id="rate_ten", carrier="usps", amount=Decimal("10.00"))]
    order_id = await _order(place_order)
    await top_up("seller-1", "5.00")

    with pytest.raises(InsufficientFundsError) as exc_info:
        await label_service.purchase(order_id, "wh-1")

    assert Decimal(exc_info.value.details["balance"]) == Decimal("5.00")
    assert exc_info.value.details["required"] == "12.00"
    assert carrier.purchased == []
    assert (await label_service.get_wallet_balance("seller-1")).balance == Decimal("5.00")


@pytest.mark.asyncio
async def test_label_priced_in_carrier_currency_for_yen_order(place_order, label_service, uow_factory, top_up):
    async with uow_factory() as uow:
        await uow.products.create(
            Product(id="p-bowl", seller_id="seller-1", name="Bowl", price=Decimal("5000"), currency="JPY", weight=Decimal("0.4"))
        )
    checkout = await place_order([("p-bowl", 1)])
    assert checkout.order.currency == "JPY"
    await top_up("seller-1", "100.00")

    label = await label_service.purchase(checkout.order.id, "wh-1")

    assert (label.base_cost, label.total_charged, label.currency) == (Decimal("8.00"), Decimal("9.60"), "USD")
    wallet = await label_service.get_wallet_balance("seller-1")
    assert wallet.balance == Decimal("90.40")


@pytest.mark.asyncio
async def test_rate_currency_must_match_wallet(place_order, label_service, carrier, top_up):
    carrier.rates = [CarrierRate(rate_id="rate_eur", carrier="dhl", amount=Decimal("8.00"), currency="EUR")]
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")

    with pytest.raises(ValidationError):
        await label_service.purchase(order_id, "wh-1")
    assert carrier.purchased == []
    assert (await label_service.get_wallet_balance("seller-1")).balance == Decimal("100.00")


@pytest.mark.asyncio
async def test_one_active_label_per_order(place_order, label_service, top_up):
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")
    await label_service.purchase(order_id, "wh-1")

    with pytest.raises(ConflictError):
        await label_service.purchase(order_id, "wh-1")


@pytest.mark.asyncio
async def test_warehouse_must_belong_to_seller(place_order, label_service, top_up):
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")

    with pytest.raises(NotFoundError):
        await label_service.purchase(order_id, "wh-2")


@pytest.mark.asyncio
async def test_minimum_wallet_balance(place_order, carrier, uow_factory, publisher, top_up):
    service = ShippingLabelService(
        carrier, uow_factory, publisher, markup_percent=Decimal("20"), min_wallet_balance=Decimal("25")
    )
    order_id = await _order(place_order)
    await top_up("seller-1", "20.00")

    with pytest.raises(InsufficientFundsError):
        await service.purchase(order_id, "wh-1")

    await top_up("seller-1", "5.00", reference="second-topup")
    label = await service.purchase(order_id, "wh-1")
    assert label.total_charged == Decimal("9.60")


@pytest.mark.asyncio
async def test_cancel_credits_wallet_once(place_order, label_service, publisher, top_up):
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")
    label = await label_service.purchase(order_id, "wh-1")

    result = await label_service.cancel(label.id)

    assert result.refund_status == "success"
    assert result.label.status == "voided"
    assert result.credited_amount == Decimal("9.60")
    assert (await label_service.get_wallet_balance("seller-1")).balance == Decimal("100.00")
    assert publisher.of("label.voided")[0].credited == "9.60"

    with pytest.raises(InvalidStateTransitionError):
        await label_service.cancel(label.id)
    assert (await label_service.get_wallet_balance("seller-1")).balance == Decimal("100.00")


@pytest.mark.asyncio
async def test_voided_label_allows_a_new_purchase(place_order, label_service, top_up):
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")
    first = await label_service.purchase(order_id, "wh-1")
    await label_service.cancel(first.id)

    second = await label_service.purchase(order_id, "wh-1")

    assert second.id != first.id
    assert second.tracking_number == "TRACK2"


@pytest.mark.asyncio
async def test_rejected_cancel_keeps_label(place_order, label_service, carrier, top_up):
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")
    label = await label_service.purchase(order_id, "wh-1")
    carrier.refund_status = "rejected"

    result = await label_service.cancel(label.id)

    assert result.refund_status == "rejected"
    assert result.rejection_reason == "Label has already been scanned"
    assert result.label.status == "purchased"
    assert result.credited_amount is None
    assert (await label_service.get_wallet_balance("seller-1")).balance == Decimal("90.40")


@pytest.mark.asyncio
async def test_queued_refund_resolves_on_poll(place_order, label_service, carrier, top_up):
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")
    label = await label_service.purchase(order_id, "wh-1")
    carrier.refund_status = "queued"

    result = await label_service.cancel(label.id)
    assert result.label.status == "refund_requested"
    assert (await label_service.get_wallet_balance("seller-1")).balance == Decimal("90.40")

    carrier.poll_status = "pending"
    assert await label_service.poll_pending_refunds() == 0

    carrier.poll_status = "success"
    assert await label_service.poll_pending_refunds() == 1
    assert (await label_service.get_wallet_balance("seller-1")).balance == Decimal("100.00")
    assert await label_service.poll_pending_refunds() == 0


@pytest.mark.asyncio
async def test_queued_refund_rejected_on_poll(place_order, label_service, carrier, top_up):
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")
    label = await label_service.purchase(order_id, "wh-1")
    carrier.refund_status = "queued"
    await label_service.cancel(label.id)

    carrier.poll_status = "rejected"
    assert await label_service.poll_pending_refunds() == 1

    assert (await label_service.get_wallet_balance("seller-1")).balance == Decimal("90.40")
    with pytest.raises(ConflictError):
        await label_service.purchase(order_id, "wh-1")


@pytest.mark.asyncio
async def test_missing_carrier(place_order, uow_factory, top_up):
    service = ShippingLabelService(None, uow_factory)
    order_id = await _order(place_order)
    await top_up("seller-1", "30.00")

    with pytest.raises(ExternalServiceError):
        await service.purchase(order_id, "wh-1")

    wallet = await service.get_wallet_balance("seller-1")
    assert wallet.balance == Decimal("30.00")


@pytest.mark.asyncio
async def test_unknown_seller_wallet(label_service, catalog):
    with pytest.raises(NotFoundError):
        await label_service.get_wallet_balance("nobody")


@pytest.mark.asyncio
async def test_carrier_refund_failure_is_logged_and_wallet_unchanged(place_order, label_service, carrier, top_up, monkeypatch):
    order_id = await _order(place_order)
    await top_up("seller-1", "100.00")
    label = await label_service.purchase(order_id, "wh-1")

    async def _down(transaction_id):
        raise ExternalServiceError("Carrier unavailable", provider="shippo", provider_code="503")

    errors = []

    class _Logger:
        def info(self, *args, **kwargs):
            pass

        def error(self, event_name, **kwargs):
            errors.append((event_name, kwargs))

    monkeypatch.setattr(carrier, "request_refund", _down)
    monkeypatch.setattr(shipping_label_service, "logger", _Logger())

    with pytest.raises(ExternalServiceError):
        await label_service.cancel(label.id)

    event_name, fields = errors[0]
    assert event_name == "label_cancel_failed"
    assert fields["label_id"] == label.id
    assert fields["order_id"] == order_id
    assert fields["provider_code"] == "503"
    assert fields["total_charged"] == "9.60"
    assert (await label_service.get_wallet_balance("seller-1")).balance == Decimal("90.40")
