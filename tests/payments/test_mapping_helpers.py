import pytest

from infrastructure.external.payments.base import BasePaymentClient


class _MapClient(BasePaymentClient):
    provider = "stripe"


@pytest.mark.parametrize(
    "remote, internal",
    [
        ("succeeded", "succeeded"),
        ("processing", "pending"),
        ("requires_action", "pending"),
        ("requires_payment_method", "pending"),
        ("canceled", "canceled"),
        ("failed", "failed"),
    ],
)
def test_provider_status_mapping(remote, internal):
    assert _MapClient()._map_status(remote) == internal


def test_unknown_status_passes_through():
    assert _MapClient()._map_status("something_new") == "something_new"
