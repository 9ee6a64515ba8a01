"""
Exceptions for payment providers mapped onto the domain's external service
error so the API layer renders them uniformly.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import ExternalServiceError, PaymentSignatureError
from shared.codes.payment_codes import PaymentCode


__all__ = ["PaymentProviderError", "PaymentTimeoutError", "PaymentSignatureError"]


class PaymentProviderError(ExternalServiceError):
    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        super().__init__(
            message,
            provider=provider,
            provider_code=provider_code,
            code=PaymentCode.PROVIDER_ERROR,
            error_type="PaymentProviderError",
            details=details,
        )


class PaymentTimeoutError(ExternalServiceError):
    """The processor did not answer in time; the outcome is unknown."""

    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        super().__init__(
            message,
            provider=provider,
            provider_code="timeout",
            code=PaymentCode.TIMEOUT,
            error_type="PaymentTimeoutError",
            details=details,
        )
