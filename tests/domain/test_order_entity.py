from decimal import Decimal

import pytest

from domain.common.exceptions import (
    ConflictError,
    InvalidStateTransitionError,
    RefundExceedsRefundableError,
    ValidationError,
)
from domain.order.entity import (
    ItemStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStage,
    PaymentStatus,
    PaymentType,
)


def _order(total="231.00", deposit="60.00", payment_type=PaymentType.DEPOSIT, **kw):
    kw.setdefault("customer_email", "buyer@example.com")
    return Order(
        id="o1",
        seller_id="s1",
        currency="USD",
        subtotal=Decimal("200.00"),
        shipping_cost=Decimal("10.00"),
        tax_amount=Decimal("21.00"),
        total=Decimal(total),
        deposit_amount=Decimal(deposit),
        payment_type=payment_type,
        **kw,
    )


def test_new_order_owes_its_total():
    order = _order()

    assert order.remaining_balance == Decimal("231.00")
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.next_payment_stage() == PaymentStage.DEPOSIT
    assert order.amount_due_for(PaymentStage.DEPOSIT) == Decimal("60.00")


def test_guest_or_user_identity_required():
    with pytest.raises(ValidationError):
        _order(customer_email=None)


def test_deposit_then_balance_capture():
    order = _order()

    assert order.apply_payment(Decimal("60.00")) == PaymentStatus.DEPOSIT_PAID
    assert order.status == OrderStatus.PROCESSING
    assert order.remaining_balance == Decimal("171.00")
    assert order.can_request_balance()
    assert order.next_payment_stage() == PaymentStage.BALANCE
    assert order.amount_due_for(PaymentStage.BALANCE) == Decimal("171.00")

    assert order.apply_payment(Decimal("171.00")) == PaymentStatus.FULLY_PAID
    assert order.amount_paid + order.remaining_balance == order.total
    assert order.remaining_balance == Decimal("0.00")
    assert order.next_payment_stage() is None
    assert not order.can_request_balance()


def test_capture_above_remaining_balance_is_rejected():
    order = _order()

    with pytest.raises(ConflictError):
        order.apply_payment(Decimal("231.01"))
    assert order.amount_paid == Decimal("0")


def test_capture_after_full_refund_is_rejected():
    order = _order(total="121.00", deposit="0.00", payment_type=PaymentType.FULL)
    order.apply_payment(Decimal("121.00"))
    order.apply_refund(Decimal("121.00"))

    assert order.payment_status == PaymentStatus.REFUNDED
    with pytest.raises(InvalidStateTransitionError):
        order.apply_payment(Decimal("1.00"))


def test_refund_limited_to_amount_paid():
    order = _order()
    order.apply_payment(Decimal("60.00"))

    with pytest.raises(RefundExceedsRefundableError):
        order.apply_refund(Decimal("60.01"))

    order.apply_refund(Decimal("20.00"))
    assert order.refundable_amount == Decimal("40.00")
    assert order.payment_status == PaymentStatus.DEPOSIT_PAID


def test_status_change_does_not_touch_payment_axis():
    order = _order()

    previous = order.change_status(OrderStatus.CANCELLED)

    assert previous == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.next_payment_stage() is None


def test_order_item_refund_counters():
    item = OrderItem(id="i1", order_id="o1", product_id="p1", name="Mug", unit_price=Decimal("50.00"), quantity=2)

    item.apply_refund(1, Decimal("50.00"))
    assert item.refundable_quantity == 1
    assert item.item_status == ItemStatus.ACTIVE

    with pytest.raises(RefundExceedsRefundableError):
        item.apply_refund(2, Decimal("100.00"))

    item.apply_refund(1, Decimal("50.00"))
    assert item.refunded_quantity == 2
    assert item.refunded_amount == Decimal("100.00")
    assert item.item_status == ItemStatus.REFUNDED
