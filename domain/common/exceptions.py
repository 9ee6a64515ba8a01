"""Business exception taxonomy shared by domain, application and infrastructure.

The core layer only maps these onto HTTP responses; the domain never imports
core. Every exception carries a stable business code from `shared.codes`.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from shared.codes import BusinessCode


class BusinessException(Exception):
    """Base class for all business exceptions."""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Validation (bad input, 4xx, never retried)
# ---------------------------------------------------------------------------


class ValidationError(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        code: int = BusinessCode.PARAM_VALIDATION_ERROR,
        error_type: str = "ValidationError",
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
            field=field,
        )


class InvalidQuantityError(ValidationError):
    def __init__(self, product_id: str, quantity):
        super().__init__(
            f"Invalid quantity {quantity!r} for product {product_id}; must be a positive integer",
            code=BusinessCode.INVALID_QUANTITY,
            error_type="InvalidQuantity",
            field="quantity",
            details={"product_id": product_id, "quantity": str(quantity)},
        )


class MinimumOrderQuantityError(ValidationError):
    def __init__(self, product_id: str, quantity: int, minimum: int):
        super().__init__(
            f"Product {product_id} requires a minimum order quantity of {minimum}",
            code=BusinessCode.BELOW_MINIMUM_ORDER_QUANTITY,
            error_type="BelowMinimumOrderQuantity",
            field="quantity",
            details={"product_id": product_id, "quantity": quantity, "minimum": minimum},
        )


class MinimumOrderValueError(ValidationError):
    def __init__(self, seller_id: str, subtotal: Decimal, minimum: Decimal):
        shortfall = minimum - subtotal
        super().__init__(
            f"Minimum wholesale order value not met: required {minimum}, current {subtotal}, shortfall {shortfall}",
            code=BusinessCode.BELOW_MINIMUM_ORDER_VALUE,
            error_type="BelowMinimumOrderValue",
            field="items",
            details={
                "seller_id": seller_id,
                "minimum": str(minimum),
                "current": str(subtotal),
                "shortfall": str(shortfall),
            },
        )
        self.shortfall = shortfall


class OrderTotalInvalidError(ValidationError):
    def __init__(self, total: Decimal):
        super().__init__(
            f"Order total must be greater than zero: {total}",
            code=BusinessCode.ORDER_TOTAL_INVALID,
            error_type="OrderTotalInvalid",
            details={"total": str(total)},
        )


class NoShippingRouteError(ValidationError):
    def __init__(self, country: str, reason: str | None = None):
        details = {"country": country}
        if reason:
            details["reason"] = reason
        super().__init__(
            f"No shipping route available to {country}",
            code=BusinessCode.NO_SHIPPING_ROUTE,
            error_type="NoShippingRoute",
            field="destination",
            details=details,
        )


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(BusinessException):
    def __init__(
        self,
        resource: str,
        identifier: str | int | None = None,
        *,
        code: int = BusinessCode.NOT_FOUND,
    ):
        details = {"resource": resource}
        if identifier is not None:
            details["id"] = str(identifier)
        super().__init__(
            code=code,
            message=f"{resource} not found" + (f": {identifier}" if identifier is not None else ""),
            error_type="NotFound",
            details=details,
        )


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        super().__init__("Product", product_id, code=BusinessCode.PRODUCT_NOT_FOUND)


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        super().__init__("Order", order_id, code=BusinessCode.ORDER_NOT_FOUND)


class ShippingLabelNotFoundError(NotFoundError):
    def __init__(self, label_id: str):
        super().__init__("Shipping label", label_id, code=BusinessCode.LABEL_NOT_FOUND)


class SellerNotFoundError(NotFoundError):
    def __init__(self, seller_id: str):
        super().__init__("Seller", seller_id, code=BusinessCode.SELLER_NOT_FOUND)


# ---------------------------------------------------------------------------
# Conflict
# ---------------------------------------------------------------------------


class ConflictError(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        code: int = BusinessCode.CONFLICT,
        error_type: str = "Conflict",
        details: dict | None = None,
        field: str | None = None,
    ):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
            field=field,
        )


class MixedSellerError(ConflictError):
    def __init__(self, seller_ids: list[str]):
        super().__init__(
            "Cannot have products from different sellers in the same order",
            code=BusinessCode.MIXED_SELLERS,
            error_type="MixedSellers",
            details={"seller_ids": sorted(set(seller_ids))},
        )


class MixedFulfillmentTypeError(ConflictError):
    def __init__(self, product_types: list[str]):
        super().__init__(
            "Cannot combine different product types in the same order",
            code=BusinessCode.MIXED_FULFILLMENT_TYPES,
            error_type="MixedFulfillmentTypes",
            details={"product_types": sorted(set(product_types))},
        )


class InsufficientStockError(ConflictError):
    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Only {available} units of product {product_id} are in stock",
            code=BusinessCode.INSUFFICIENT_STOCK,
            error_type="InsufficientStock",
            details={"product_id": product_id, "requested": requested, "available": available},
        )


class RefundExceedsRefundableError(ConflictError):
    def __init__(self, requested, refundable, *, item_id: str | None = None):
        details = {"requested": str(requested), "refundable": str(refundable)}
        if item_id is not None:
            details["item_id"] = item_id
        super().__init__(
            f"Refund of {requested} exceeds refundable {refundable}",
            code=BusinessCode.REFUND_EXCEEDS_REFUNDABLE,
            error_type="RefundExceedsRefundable",
            details=details,
        )


class InvalidStateTransitionError(ConflictError):
    def __init__(self, resource: str, current: str, action: str):
        super().__init__(
            f"Cannot {action} {resource} in state {current}",
            code=BusinessCode.INVALID_STATE_TRANSITION,
            error_type="InvalidStateTransition",
            details={"resource": resource, "state": current, "action": action},
        )


# ---------------------------------------------------------------------------
# Funds / external services
# ---------------------------------------------------------------------------


class InsufficientFundsError(BusinessException):
    def __init__(self, balance: Decimal, required: Decimal):
        super().__init__(
            code=BusinessCode.INSUFFICIENT_FUNDS,
            message="Insufficient wallet balance. Please add funds to purchase labels.",
            error_type="InsufficientFunds",
            details={"balance": str(balance), "required": str(required)},
        )


class ExternalServiceError(BusinessException):
    """Processor, carrier or tax service failure (including timeouts).

    `message` is safe to show to users; the raw provider error travels in
    `details` and is logged by the caller.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: str | None = None,
        code: int = BusinessCode.EXTERNAL_SERVICE_ERROR,
        error_type: str = "ExternalServiceError",
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider, "provider_code": provider_code}
        if details:
            full_details.update(details)
        self.provider = provider
        self.provider_code = provider_code
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=full_details,
        )


class PaymentSignatureError(BusinessException):
    """Webhook payload could not be authenticated."""

    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=BusinessCode.SIGNATURE_INVALID,
            message=message,
            error_type="PaymentSignatureError",
            details=full_details,
        )
