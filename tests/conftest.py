"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PAYMENT__STRIPE__SECRET_KEY", "sk_test_123")
os.environ.setdefault("PAYMENT__STRIPE__WEBHOOK_SECRET", "whsec_test")

import json
import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from application.dtos.orders import AddressDTO, CartItemDTO, CreateOrderRequestDTO, CustomerDTO
from application.dtos.payments import PaymentIntent, RefundResult, WebhookEvent
from application.dtos.shipping import CarrierRate, CarrierRefund, PurchasedLabel
from application.services.order_service import OrderLifecycleService
from application.services.payment_service import PaymentCaptureService
from application.services.refund_service import RefundService
from application.services.shipping_label_service import ShippingLabelService
from application.services.shipping_rate_service import ShippingRateResolver
from application.services.tax_service import TaxEstimator
from domain.catalog.entity import (
    Address,
    Product,
    ProductType,
    ProductVariant,
    Seller,
    ShippingType,
    ShippingZone,
    WarehouseAddress,
    ZoneType,
)
from domain.common.exceptions import PaymentSignatureError
from domain.common.money import to_minor_units
from domain.shipping.entity import LedgerKind, WalletLedgerEntry
from infrastructure.models import Base
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


SIGNED = {"Stripe-Signature": "valid"}


# ---------------------------------------------------------------------------
# Stub adapters
# ---------------------------------------------------------------------------


class StubGateway:
    """In-memory payment processor."""

    provider = "stripe"

    def __init__(self):
        self.created = []
        self.refunds = []
        self.queries = []
        self.remote_status = {}
        self.refund_outcomes = []
        self.fail_create = None

    async def create_payment(self, req):
        if self.fail_create is not None:
            raise self.fail_create
        self.created.append(req)
        intent_id = f"pi_{len(self.created)}"
        return PaymentIntent(
            intent_id=intent_id,
            status="pending",
            client_secret=f"{intent_id}_secret",
            provider=self.provider,
            amount=req.amount,
            currency=req.currency,
            order_id=req.order_id,
            metadata=dict(req.metadata or {}),
        )

    async def query_payment(self, query):
        self.queries.append(query)
        status = self.remote_status.get(query.intent_id, "pending")
        if isinstance(status, Exception):
            raise status
        return PaymentIntent(
            intent_id=query.intent_id,
            status=status,
            provider=self.provider,
            provider_ref="ch_reconciled",
            order_id=query.order_id,
        )

    async def refund(self, req):
        self.refunds.append(req)
        if self.refund_outcomes:
            outcome = self.refund_outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return RefundResult(refund_id=f"re_{len(self.refunds)}", status="succeeded", provider=self.provider)

    def parse_webhook(self, headers, body):
        if {k.lower(): v for k, v in headers.items()}.get("stripe-signature") != "valid":
            raise PaymentSignatureError("No signatures found matching the expected signature", provider=self.provider)
        event = json.loads(body)
        return WebhookEvent(id=event["id"], type=event["type"], provider=self.provider, data=event["data"])


class StubCarrier:
    provider = "shippo"

    def __init__(self):
        self.rates = [
            CarrierRate(rate_id="rate_fast", carrier="ups", service_level="Express", amount=Decimal("20.00"), estimated_days=1),
            CarrierRate(rate_id="rate_cheap", carrier="usps", service_level="Ground", amount=Decimal("8.00"), estimated_days=4),
        ]
        self.rates_error = None
        self.refund_status = "success"
        self.poll_status = "success"
        self.purchased = []
        self.refund_requests = []

    async def get_rates(self, origin, destination, parcel):
        if self.rates_error is not None:
            raise self.rates_error
        return list(self.rates)

    async def purchase_label(self, rate_id):
        self.purchased.append(rate_id)
        n = len(self.purchased)
        return PurchasedLabel(
            transaction_id=f"txn_{n}",
            tracking_number=f"TRACK{n}",
            label_url=f"https://labels.test/{n}.pdf",
            carrier="usps",
        )

    async def request_refund(self, transaction_id):
        self.refund_requests.append(transaction_id)
        reason = "Label has already been scanned" if self.refund_status == "rejected" else None
        return CarrierRefund(refund_id=f"rf_{len(self.refund_requests)}", status=self.refund_status, reason=reason)

    async def get_refund(self, refund_id):
        reason = "Label has already been scanned" if self.poll_status == "rejected" else None
        return CarrierRefund(refund_id=refund_id, status=self.poll_status, reason=reason)


class RecordingPublisher:
    def __init__(self):
        self.events = []

    async def publish(self, events):
        self.events.extend(events)

    @property
    def names(self):
        return [e.name for e in self.events]

    def of(self, name):
        return [e for e in self.events if e.name == name]


def stripe_event(event_id, event_type, obj):
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}}).encode("utf-8")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def uow_factory(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return lambda: SQLAlchemyUnitOfWork(session_factory=session_factory)


@pytest_asyncio.fixture
async def catalog(uow_factory):
    """Two sellers: seller-1 ships flat 10.00, seller-2 uses a zone matrix."""
    async with uow_factory() as uow:
        await uow.sellers.create(
            Seller(id="seller-1", name="Studio One", shipping_type=ShippingType.FLAT, flat_shipping_rate=Decimal("10.00"))
        )
        await uow.sellers.create(Seller(id="seller-2", name="Atelier Two", shipping_type=ShippingType.MATRIX))
        for product in (
            Product(id="p-mug", seller_id="seller-1", name="Mug", price=Decimal("50.00"), stock=10, weight=Decimal("0.5")),
            Product(id="p-cup", seller_id="seller-1", name="Cup", price=Decimal("25.00"), stock=10, weight=Decimal("0.3")),
            Product(
                id="p-shirt",
                seller_id="seller-1",
                name="Shirt",
                price=Decimal("30.00"),
                variants=[ProductVariant(id="v-m-red", size="M", color="red")],
            ),
            Product(
                id="p-vase",
                seller_id="seller-1",
                name="Vase",
                price=Decimal("200.00"),
                product_type=ProductType.PRE_ORDER,
                requires_deposit=True,
                deposit_percentage=Decimal("30"),
            ),
            Product(id="p-lamp", seller_id="seller-2", name="Lamp", price=Decimal("40.00")),
        ):
            await uow.products.create(product)
        await uow.warehouses.create(
            WarehouseAddress(
                id="wh-1",
                seller_id="seller-1",
                address=Address(country="US", city="Portland", state="OR", postal_code="97201", line1="1 Main St"),
                is_default=True,
            )
        )
        await uow.warehouses.create(
            WarehouseAddress(id="wh-2", seller_id="seller-2", address=Address(country="FR", city="Paris"), is_default=True)
        )
        for zone in (
            ShippingZone(id="z-city", seller_id="seller-2", zone_type=ZoneType.CITY, code="US:new york", name="NYC", rate=Decimal("7.00")),
            ShippingZone(id="z-us", seller_id="seller-2", zone_type=ZoneType.COUNTRY, code="US", name="United States", rate=Decimal("12.00")),
            ShippingZone(id="z-eu", seller_id="seller-2", zone_type=ZoneType.CONTINENT, code="europe", name="Europe", rate=Decimal("25.00")),
        ):
            await uow.zones.create(zone)


@pytest.fixture
def top_up(uow_factory):
    async def _top_up(seller_id, amount, reference="seed-topup"):
        async with uow_factory() as uow:
            await uow.wallet.add(
                WalletLedgerEntry(
                    id=uuid.uuid4().hex,
                    seller_id=seller_id,
                    kind=LedgerKind.TOPUP,
                    amount=Decimal(amount),
                    reference=reference,
                )
            )
    return _top_up


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def carrier():
    return StubCarrier()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def tax():
    return TaxEstimator(rates={"US": Decimal("0.10"), "US-CA": Decimal("0.0725")})


@pytest.fixture
def payment_service(gateway, uow_factory, publisher):
    return PaymentCaptureService(gateway, uow_factory, publisher)


@pytest.fixture
def order_service(uow_factory, payment_service, carrier, tax, publisher):
    return OrderLifecycleService(
        uow_factory,
        payment_service,
        ShippingRateResolver(carrier),
        tax,
        publisher,
        storefront_url="https://shop.test",
        balance_link_secret="link-secret",
    )


@pytest.fixture
def refund_service(gateway, uow_factory, publisher):
    return RefundService(gateway, uow_factory, publisher)


@pytest.fixture
def label_service(carrier, uow_factory, publisher):
    return ShippingLabelService(carrier, uow_factory, publisher, markup_percent=Decimal("20"))


@pytest.fixture
def place_order(order_service, catalog):
    async def _place(items, *, country="US", state=None, city=None, email="buyer@example.com"):
        payload = CreateOrderRequestDTO(
            customer=CustomerDTO(email=email),
            items=[CartItemDTO(product_id=pid, quantity=qty) for pid, qty in items],
            shipping_address=AddressDTO(country=country, state=state, city=city, line1="5 Elm St", postal_code="10001"),
        )
        return await order_service.create_order(payload)
    return _place


@pytest.fixture
def pay(payment_service):
    """Deliver a signed payment_intent.succeeded event for a payment session."""
    counter = {"n": 0}

    async def _pay(order_id, session, *, event_id=None):
        counter["n"] += 1
        amount = session.amount
        body = stripe_event(
            event_id or f"evt_{counter['n']}",
            "payment_intent.succeeded",
            {
                "id": session.intent_id,
                "object": "payment_intent",
                "amount": to_minor_units(amount, session.currency),
                "amount_received": to_minor_units(amount, session.currency),
                "currency": session.currency.lower(),
                "status": "succeeded",
                "latest_charge": f"ch_{counter['n']}",
                "metadata": {"order_id": order_id, "stage": session.stage},
            },
        )
        return await payment_service.handle_webhook(SIGNED, body)
    return _pay


@pytest.fixture
def deliver(payment_service):
    """Deliver an arbitrary processor event; signed unless headers say otherwise."""
    async def _deliver(event_id, event_type, obj, headers=SIGNED):
        return await payment_service.handle_webhook(headers, stripe_event(event_id, event_type, obj))
    return _deliver
