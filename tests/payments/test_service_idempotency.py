from decimal import Decimal

from application.dtos.payments import CreatePayment, RefundRequest
from application.services.payment_service import _ensure_idempotency_key


def _create(**overrides):
    fields = dict(order_id="o1", amount=Decimal("60.00"), currency="USD", stage="deposit", provider="stripe")
    fields.update(overrides)
    return CreatePayment(**fields)


def test_create_key_is_stable():
    first, second = _create(), _create()
    _ensure_idempotency_key(first)
    _ensure_idempotency_key(second)

    assert len(first.idempotency_key) == 64
    assert first.idempotency_key == second.idempotency_key


def test_stage_changes_key():
    deposit, balance = _create(), _create(stage="balance")
    _ensure_idempotency_key(deposit)
    _ensure_idempotency_key(balance)

    assert deposit.idempotency_key != balance.idempotency_key


def test_existing_key_kept():
    req = _create(idempotency_key="caller-key")
    _ensure_idempotency_key(req)
    assert req.idempotency_key == "caller-key"


def test_refund_key_depends_on_intent():
    a = RefundRequest(order_id="o1", intent_id="pi_1", amount=Decimal("5.00"))
    b = RefundRequest(order_id="o1", intent_id="pi_2", amount=Decimal("5.00"))
    _ensure_idempotency_key(a)
    _ensure_idempotency_key(b)

    assert a.idempotency_key != b.idempotency_key
