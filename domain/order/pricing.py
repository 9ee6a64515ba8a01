"""
Pure pricing: subtotal, deposit split and totals for a validated item set.

Rounding is ROUND_HALF_UP to the currency's minor unit and is applied to
final totals only, never to line totals. Shipping and tax belong to the
balance, never to the deposit.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from domain.common.exceptions import OrderTotalInvalidError
from domain.common.money import ZERO, quantize_money, to_decimal
from domain.order.entity import LineItem, PaymentType


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    discount_total: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    full_total: Decimal
    deposit_amount: Decimal
    # Balance due after the deposit; 0 for full payment
    remaining_balance: Decimal
    payment_type: PaymentType
    currency: str

    @property
    def amount_due_now(self) -> Decimal:
        if self.payment_type == PaymentType.DEPOSIT:
            return self.deposit_amount
        return self.full_total


def calculate_pricing(
    items: Sequence[LineItem],
    shipping_cost,
    tax_amount,
    currency: str = "USD",
) -> PricingBreakdown:
    shipping = quantize_money(shipping_cost, currency)
    tax = quantize_money(tax_amount, currency)

    raw_subtotal = sum((item.line_total for item in items), ZERO)
    raw_discount = sum(
        ((item.original_price - item.price) * item.quantity
         for item in items
         if item.original_price is not None and item.original_price > item.price),
        ZERO,
    )
    subtotal = quantize_money(raw_subtotal, currency)
    full_total = subtotal + shipping + tax
    if full_total <= 0:
        raise OrderTotalInvalidError(full_total)

    if any(item.requires_deposit for item in items):
        deposit = quantize_money(sum((item.deposit_total for item in items), ZERO), currency)
        # The deposit never exceeds the goods it pays for
        deposit = min(deposit, subtotal)
        return PricingBreakdown(
            subtotal=subtotal,
            discount_total=quantize_money(raw_discount, currency),
            shipping_cost=shipping,
            tax_amount=tax,
            full_total=full_total,
            deposit_amount=deposit,
            remaining_balance=full_total - deposit,
            payment_type=PaymentType.DEPOSIT,
            currency=currency,
        )

    return PricingBreakdown(
        subtotal=subtotal,
        discount_total=quantize_money(raw_discount, currency),
        shipping_cost=shipping,
        tax_amount=tax,
        full_total=full_total,
        deposit_amount=quantize_money(ZERO, currency),
        remaining_balance=quantize_money(ZERO, currency),
        payment_type=PaymentType.FULL,
        currency=currency,
    )


def taxable_amount(subtotal, shipping_cost) -> Decimal:
    return to_decimal(subtotal) + to_decimal(shipping_cost)
