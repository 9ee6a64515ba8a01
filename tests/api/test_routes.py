import json
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.dependencies import get_container
from infrastructure.container import ServiceContainer
from main import app
from shared.codes import BusinessCode


@pytest_asyncio.fixture
async def client(uow_factory, catalog, gateway, carrier, publisher, tax):
    container = ServiceContainer(uow_factory, gateway=gateway, carrier=carrier, publisher=publisher, tax=tax)
    app.dependency_overrides[get_container] = lambda: container
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


DEST = {"country": "US", "city": "New York", "postal_code": "10001", "line1": "5 Elm St"}


def _event_body(event_id, obj):
    return json.dumps({"id": event_id, "type": "payment_intent.succeeded", "data": {"object": obj}}).encode("utf-8")


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy"}


@pytest.mark.asyncio
async def test_order_summary(client):
    resp = await client.post(
        "/api/v1/orders/summary",
        json={"items": [{"product_id": "p-mug", "quantity": 2, "price": "0.01"}], "destination": DEST},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == BusinessCode.SUCCESS
    assert body["data"]["full_total"] == "121.00"
    assert body["data"]["amount_due_now"] == "121.00"


@pytest.mark.asyncio
async def test_mixed_sellers_conflict(client):
    resp = await client.post(
        "/api/v1/cart/validate",
        json={"items": [{"product_id": "p-mug", "quantity": 1}, {"product_id": "p-lamp", "quantity": 1}]},
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == BusinessCode.MIXED_SELLERS


@pytest.mark.asyncio
async def test_missing_quantity_is_422(client):
    resp = await client.post("/api/v1/cart/validate", json={"items": [{"product_id": "p-mug"}]})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_unknown_order_404(client):
    resp = await client.get("/api/v1/orders/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["code"] == BusinessCode.ORDER_NOT_FOUND


@pytest.mark.asyncio
async def test_create_then_pay_via_webhook(client):
    created = await client.post(
        "/api/v1/orders",
        json={
            "customer": {"email": "buyer@example.com"},
            "items": [{"product_id": "p-mug", "quantity": 1}],
            "shipping_address": DEST,
        },
    )
    assert created.status_code == 201
    checkout = created.json()["data"]
    order_id = checkout["order"]["id"]
    assert checkout["payment"]["amount"] == "66.00"

    event = {
        "id": checkout["payment"]["intent_id"],
        "object": "payment_intent",
        "amount": 6600,
        "amount_received": 6600,
        "currency": "usd",
        "status": "succeeded",
        "metadata": {"order_id": order_id, "stage": checkout["payment"]["stage"]},
    }
    forged = await client.post(
        "/api/v1/payments/webhooks/stripe",
        content=_event_body("evt_api_1", event),
        headers={"Stripe-Signature": "forged"},
    )
    assert forged.status_code == 400
    assert forged.json()["code"] == BusinessCode.SIGNATURE_INVALID

    ok = await client.post(
        "/api/v1/payments/webhooks/stripe",
        content=_event_body("evt_api_1", event),
        headers={"Stripe-Signature": "valid"},
    )
    assert ok.status_code == 200
    assert ok.json()["data"]["status"] == "processed"

    order = (await client.get(f"/api/v1/orders/{order_id}")).json()["data"]
    assert order["payment_status"] == "fully_paid"
    assert order["amount_paid"] == "66.00"


@pytest.mark.asyncio
async def test_label_without_funds_is_400(client, place_order):
    checkout = await place_order([("p-mug", 1)])
    resp = await client.post(
        f"/api/v1/orders/{checkout.order.id}/shipping-labels",
        json={"warehouse_address_id": "wh-1"},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == BusinessCode.INSUFFICIENT_FUNDS


@pytest.mark.asyncio
async def test_wallet_route(client, top_up):
    await top_up("seller-1", "15.00")
    resp = await client.get("/api/v1/sellers/seller-1/wallet")
    assert resp.status_code == 200
    assert Decimal(resp.json()["data"]["balance"]) == Decimal("15.00")
