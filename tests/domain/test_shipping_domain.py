from decimal import Decimal

import pytest

from domain.catalog.entity import Address, ShippingZone, ZoneType
from domain.common.exceptions import InvalidStateTransitionError, ValidationError
from domain.shipping.entity import (
    LabelRefund,
    LabelRefundStatus,
    LabelStatus,
    LedgerKind,
    ShippingLabel,
    WalletLedgerEntry,
    label_total_charged,
)
from domain.shipping.zones import continent_for, match_zone


ZONES = [
    ShippingZone(id="z1", seller_id="s", zone_type=ZoneType.CONTINENT, code="europe", name="Europe", rate=Decimal("25.00")),
    ShippingZone(id="z2", seller_id="s", zone_type=ZoneType.COUNTRY, code="FR", name="France", rate=Decimal("15.00")),
    ShippingZone(id="z3", seller_id="s", zone_type=ZoneType.CITY, code="FR:paris", name="Paris", rate=Decimal("9.00")),
]


@pytest.mark.parametrize(
    "destination, expected",
    [
        (Address(country="FR", city="Paris"), "z3"),
        (Address(country="fr", city="Lyon"), "z2"),
        (Address(country="DE", city="Berlin"), "z1"),
    ],
)
def test_most_specific_zone_wins(destination, expected):
    assert match_zone(ZONES, destination).id == expected


def test_unmatched_destination_has_no_zone():
    assert match_zone(ZONES, Address(country="JP", city="Tokyo")) is None
    assert continent_for("JP") == "asia"


def test_label_markup_rounds_half_up():
    assert label_total_charged(Decimal("8.00"), Decimal("20")) == Decimal("9.60")
    assert label_total_charged(Decimal("7.33"), Decimal("15")) == Decimal("8.43")


def _label(status=LabelStatus.PURCHASED):
    return ShippingLabel(
        id="l1",
        order_id="o1",
        seller_id="s1",
        carrier="usps",
        service_level="Ground",
        tracking_number="T1",
        label_url=None,
        carrier_transaction_id="txn_1",
        base_cost=Decimal("8.00"),
        markup_percent=Decimal("20"),
        total_charged=Decimal("9.60"),
        status=status,
    )


def test_label_refund_lifecycle():
    label = _label()
    label.mark_refund_requested()
    assert label.status == LabelStatus.REFUND_REQUESTED
    with pytest.raises(InvalidStateTransitionError):
        label.ensure_cancellable()

    label.revert_to_purchased()
    label.mark_voided()
    assert not label.is_active
    with pytest.raises(InvalidStateTransitionError):
        label.ensure_cancellable()


def test_resolved_label_refund_is_final():
    refund = LabelRefund(id="r1", label_id="l1", status=LabelRefundStatus.QUEUED)
    refund.resolve(LabelRefundStatus.REJECTED, "already scanned")

    assert refund.rejection_reason == "already scanned"
    with pytest.raises(InvalidStateTransitionError):
        refund.resolve(LabelRefundStatus.SUCCESS)


@pytest.mark.parametrize(
    "kind, amount",
    [
        (LedgerKind.LABEL_PURCHASE, Decimal("9.60")),
        (LedgerKind.LABEL_REFUND, Decimal("-9.60")),
        (LedgerKind.TOPUP, Decimal("-5")),
        (LedgerKind.TOPUP, Decimal("0")),
    ],
)
def test_ledger_entry_sign_rules(kind, amount):
    with pytest.raises(ValidationError):
        WalletLedgerEntry(id="w1", seller_id="s1", kind=kind, amount=amount, reference="ref")
