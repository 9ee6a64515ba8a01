"""
Shared business codes used across layers (Domain/Core/API).

This package exposes BusinessCode at `shared.codes` and keeps
payment-specific codes under `shared.codes.payment_codes`.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    # Success
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_MISSING = 10001
    PARAM_TYPE_ERROR = 10002
    PARAM_VALIDATION_ERROR = 10003
    INVALID_QUANTITY = 10004
    ORDER_TOTAL_INVALID = 10005
    NO_SHIPPING_ROUTE = 10006
    BELOW_MINIMUM_ORDER_QUANTITY = 10007
    BELOW_MINIMUM_ORDER_VALUE = 10008

    # Business errors (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006  # Generic resource not found
    PRODUCT_NOT_FOUND = 20010
    ORDER_NOT_FOUND = 20011
    LABEL_NOT_FOUND = 20012
    SELLER_NOT_FOUND = 20013
    CONFLICT = 20100
    MIXED_SELLERS = 20101
    MIXED_FULFILLMENT_TYPES = 20102
    INSUFFICIENT_STOCK = 20103
    REFUND_EXCEEDS_REFUNDABLE = 20104
    INVALID_STATE_TRANSITION = 20105
    INSUFFICIENT_FUNDS = 20200
    SIGNATURE_INVALID = 20300

    # Authorization errors (3xxxx)
    PERMISSION_ERROR = 30000
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    NETWORK_ERROR = 40002
    SERVICE_UNAVAILABLE = 40003
    EXTERNAL_SERVICE_ERROR = 40004

    # Rate limiting (5xxxx)
    RATE_LIMIT_ERROR = 50000
    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
