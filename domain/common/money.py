"""Currency-aware Decimal helpers.

Amounts never travel as floats. Rounding is ROUND_HALF_UP to the currency's
minor-unit exponent and is applied to final totals only.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")

# ISO-4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "JPY", "KMF", "KRW", "MGA", "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF"}
)


def currency_exponent(currency: str) -> int:
    return 0 if (currency or "").upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    # str() keeps floats from leaking binary noise into Decimal
    return Decimal(str(value))


def quantize_money(value, currency: str = "USD") -> Decimal:
    exp = currency_exponent(currency)
    return to_decimal(value).quantize(Decimal(1).scaleb(-exp), rounding=ROUND_HALF_UP)


def to_minor_units(amount, currency: str) -> int:
    """Convert a major-unit amount to the processor's integer minor units."""
    exp = currency_exponent(currency)
    return int(quantize_money(amount, currency).scaleb(exp))


def from_minor_units(amount: int, currency: str) -> Decimal:
    exp = currency_exponent(currency)
    return quantize_money(Decimal(int(amount)).scaleb(-exp), currency)
