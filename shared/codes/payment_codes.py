"""
Payment and carrier specific codes plus provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    RATE_LIMITED = 60004
    CARRIER_ERROR = 60100
    TAX_PROVIDER_ERROR = 60200


# Provider→internal status mapping
PROVIDER_STATUS_TO_INTERNAL = {
    "stripe": {
        "requires_payment_method": "pending",
        "requires_confirmation": "pending",
        "requires_action": "pending",
        "processing": "pending",
        "requires_capture": "pending",
        "succeeded": "succeeded",
        "canceled": "canceled",
        # refund statuses
        "pending": "pending",
        "failed": "failed",
    },
    "shippo": {
        # label refund statuses
        "QUEUED": "queued",
        "PENDING": "pending",
        "SUCCESS": "success",
        "ERROR": "rejected",
    },
}
