from decimal import Decimal

import pytest

from domain.common.exceptions import OrderTotalInvalidError
from domain.common.money import from_minor_units, quantize_money, to_minor_units
from domain.order.entity import PaymentType, SimpleLineItem, VariantLineItem, line_item_from_dict
from domain.order.pricing import calculate_pricing, taxable_amount


def _line(price, quantity, **kw):
    return SimpleLineItem(product_id=kw.pop("product_id", "p1"), name="Item", price=Decimal(price), quantity=quantity, **kw)


def test_full_payment_totals():
    pricing = calculate_pricing([_line("50.00", 2)], Decimal("10.00"), Decimal("11.00"))

    assert pricing.payment_type == PaymentType.FULL
    assert pricing.subtotal == Decimal("100.00")
    assert pricing.full_total == Decimal("121.00")
    assert pricing.deposit_amount == Decimal("0.00")
    assert pricing.remaining_balance == Decimal("0.00")
    assert pricing.amount_due_now == Decimal("121.00")


def test_two_mugs_with_shipping_and_tax():
    pricing = calculate_pricing([_line("50.00", 2, product_id="P1")], Decimal("10.00"), Decimal("4.80"))

    assert pricing.subtotal == Decimal("100.00")
    assert pricing.full_total == Decimal("114.80")
    assert pricing.deposit_amount == 0
    assert pricing.remaining_balance == 0


def test_wholesale_percentage_deposit():
    line = _line("20.00", 100, requires_deposit=True, deposit_per_unit=Decimal("20.00") * Decimal("30") / Decimal(100))

    pricing = calculate_pricing([line], Decimal("0"), Decimal("0"))

    assert pricing.subtotal == Decimal("2000.00")
    assert pricing.deposit_amount == Decimal("600.00")
    assert pricing.remaining_balance == Decimal("1400.00")

    with_extras = calculate_pricing([line], Decimal("50.00"), Decimal("140.00"))
    assert with_extras.deposit_amount == Decimal("600.00")
    assert with_extras.remaining_balance == Decimal("1590.00")


def test_deposit_excludes_shipping_and_tax():
    line = _line("200.00", 1, requires_deposit=True, deposit_per_unit=Decimal("60.00"))

    pricing = calculate_pricing([line], Decimal("10.00"), Decimal("21.00"))

    assert pricing.payment_type == PaymentType.DEPOSIT
    assert pricing.full_total == Decimal("231.00")
    assert pricing.deposit_amount == Decimal("60.00")
    assert pricing.remaining_balance == Decimal("171.00")
    assert pricing.amount_due_now == Decimal("60.00")
    assert pricing.deposit_amount + pricing.remaining_balance == pricing.full_total


def test_deposit_is_capped_at_line_total():
    line = _line("200.00", 1, requires_deposit=True, deposit_per_unit=Decimal("500.00"))

    pricing = calculate_pricing([line], Decimal("10.00"), Decimal("0"))

    assert pricing.deposit_amount == Decimal("200.00")
    assert pricing.remaining_balance == Decimal("10.00")


def test_lines_without_deposit_policy_are_paid_up_front():
    deposit_line = _line("100.00", 1, requires_deposit=True, deposit_per_unit=Decimal("25.00"))
    plain_line = _line("40.00", 2, product_id="p2")

    pricing = calculate_pricing([deposit_line, plain_line], Decimal("0"), Decimal("0"))

    assert pricing.deposit_amount == Decimal("105.00")
    assert pricing.remaining_balance == Decimal("75.00")


def test_percentage_deposit_rounds_on_the_total_only():
    # 3 x 33.33 * 10% = 9.999 -> 10.00 after rounding the sum
    line = _line("33.33", 3, requires_deposit=True, deposit_per_unit=Decimal("3.333"))

    pricing = calculate_pricing([line], Decimal("0"), Decimal("0"))

    assert pricing.deposit_amount == Decimal("10.00")


def test_discount_total_from_promotions():
    line = _line("50.00", 2, original_price=Decimal("60.00"), discount_percentage=Decimal("16.67"))

    pricing = calculate_pricing([line], Decimal("0"), Decimal("0"))

    assert pricing.discount_total == Decimal("20.00")


def test_zero_decimal_currency_rounds_half_up_to_whole_units():
    pricing = calculate_pricing([_line("1000.5", 1)], Decimal("0"), Decimal("80.5"), currency="JPY")

    assert pricing.subtotal == Decimal("1001")
    assert pricing.tax_amount == Decimal("81")
    assert pricing.full_total == Decimal("1082")


@pytest.mark.parametrize("price", ["0", "0.00"])
def test_non_positive_total_is_rejected(price):
    with pytest.raises(OrderTotalInvalidError):
        calculate_pricing([_line(price, 1)], Decimal("0"), Decimal("0"))


def test_taxable_amount_includes_shipping():
    assert taxable_amount(Decimal("100.00"), Decimal("10.00")) == Decimal("110.00")


def test_minor_unit_conversion():
    assert to_minor_units(Decimal("12.345"), "USD") == 1235
    assert to_minor_units(Decimal("1500"), "JPY") == 1500
    assert from_minor_units(1999, "usd") == Decimal("19.99")
    assert quantize_money(Decimal("2.675"), "EUR") == Decimal("2.68")


def test_variant_line_items_keep_their_kind():
    item = VariantLineItem(
        product_id="p1", name="Shirt", price=Decimal("30.00"), quantity=1, variant_id="v1", size="M", color="red"
    )

    restored = line_item_from_dict(item.to_dict())

    assert isinstance(restored, VariantLineItem)
    assert restored.variant_id == "v1"
    assert restored.price == Decimal("30.00")
