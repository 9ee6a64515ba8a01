"""
Shippo carrier adapter: live rates, label purchase and label refunds.

Only rate lookups and refund polling are retried; label purchase and
refund requests are sent once.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from application.dtos.shipping import CarrierRate, CarrierRefund, Parcel, PurchasedLabel
from core.logging_config import get_logger
from core.settings import carrier_settings
from domain.catalog.entity import Address
from domain.common.exceptions import ExternalServiceError
from infrastructure.external.api_clients.base import APIError, BaseAPIClient
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL, PaymentCode


logger = get_logger(__name__)


def _address_payload(address: Address) -> dict[str, Any]:
    return {
        "name": address.name or "",
        "street1": address.line1 or "",
        "street2": address.line2 or "",
        "city": address.city or "",
        "state": address.state or "",
        "zip": address.postal_code or "",
        "country": address.country,
        "phone": address.phone or "",
        "email": address.email or "",
    }


def _parcel_payload(parcel: Parcel) -> dict[str, Any]:
    return {
        "length": str(parcel.length),
        "width": str(parcel.width),
        "height": str(parcel.height),
        "distance_unit": parcel.distance_unit,
        "weight": str(parcel.weight),
        "mass_unit": parcel.mass_unit,
    }


def _first_message(data: dict) -> Optional[str]:
    for msg in data.get("messages") or []:
        text = msg.get("text") if isinstance(msg, dict) else str(msg)
        if text:
            return text
    return None


class ShippoClient(BaseAPIClient):
    provider = "shippo"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        api_key = api_key or carrier_settings.shippo.api_key
        if not api_key:
            raise RuntimeError("CARRIER__SHIPPO__API_KEY not configured")
        t = carrier_settings.timeouts
        super().__init__(
            base_url=base_url or carrier_settings.shippo.base_url,
            timeout=httpx.Timeout(t.total, connect=t.connect, read=t.read, write=t.write),
            max_retries=carrier_settings.retry.max,
            retry_delay=carrier_settings.retry.base_backoff,
            headers={"Authorization": f"ShippoToken {api_key}"},
            transport=transport,
        )

    def _error(self, exc: APIError, action: str) -> ExternalServiceError:
        logger.warning(
            "carrier_request_failed",
            provider=self.provider,
            action=action,
            status_code=exc.status_code,
            timeout=exc.timeout,
            error=exc.message,
        )
        return ExternalServiceError(
            f"Carrier {action} failed",
            provider=self.provider,
            provider_code="timeout" if exc.timeout else str(exc.status_code or "network"),
            code=PaymentCode.CARRIER_ERROR,
            error_type="CarrierError",
            details={"error": exc.message},
        )

    def _map_status(self, status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(str(status).upper(), "pending")

    async def get_rates(self, origin: Address, destination: Address, parcel: Parcel) -> list[CarrierRate]:
        body = {
            "address_from": _address_payload(origin),
            "address_to": _address_payload(destination),
            "parcels": [_parcel_payload(parcel)],
            "async": False,
        }
        try:
            # Creating a shipment only quotes; safe to retry
            response = await self.post("/shipments/", json_data=body, idempotent=True)
        except APIError as exc:
            raise self._error(exc, "rates") from exc

        rates = []
        for raw in response.json().get("rates") or []:
            try:
                amount = Decimal(str(raw.get("amount")))
            except (InvalidOperation, TypeError):
                continue
            servicelevel = raw.get("servicelevel") or {}
            rates.append(
                CarrierRate(
                    rate_id=str(raw.get("object_id")),
                    carrier=str(raw.get("provider") or self.provider),
                    service_level=servicelevel.get("name") or servicelevel.get("token"),
                    amount=amount,
                    currency=str(raw.get("currency") or "USD").upper(),
                    estimated_days=raw.get("estimated_days"),
                )
            )
        logger.info("carrier_rates_fetched", provider=self.provider, count=len(rates), country=destination.country)
        return rates

    async def purchase_label(self, rate_id: str) -> PurchasedLabel:
        try:
            response = await self.post(
                "/transactions/",
                json_data={"rate": rate_id, "label_file_type": "PDF", "async": False},
            )
        except APIError as exc:
            raise self._error(exc, "label purchase") from exc

        data = response.json()
        if str(data.get("status", "")).upper() != "SUCCESS":
            reason = _first_message(data) or "Label purchase was not completed"
            raise ExternalServiceError(
                reason,
                provider=self.provider,
                provider_code=str(data.get("status")),
                code=PaymentCode.CARRIER_ERROR,
                error_type="CarrierError",
            )
        return PurchasedLabel(
            transaction_id=str(data.get("object_id")),
            tracking_number=str(data.get("tracking_number") or ""),
            label_url=data.get("label_url"),
            carrier=(data.get("rate") or {}).get("provider") if isinstance(data.get("rate"), dict) else None,
        )

    def _to_refund(self, data: dict) -> CarrierRefund:
        status = self._map_status(data.get("status", ""))
        return CarrierRefund(
            refund_id=data.get("object_id"),
            status=status,
            reason=_first_message(data) if status == "rejected" else None,
        )

    async def request_refund(self, transaction_id: str) -> CarrierRefund:
        try:
            response = await self.post("/refunds/", json_data={"transaction": transaction_id, "async": False})
        except APIError as exc:
            raise self._error(exc, "refund") from exc
        return self._to_refund(response.json())

    async def get_refund(self, refund_id: str) -> CarrierRefund:
        try:
            response = await self.get(f"/refunds/{refund_id}")
        except APIError as exc:
            raise self._error(exc, "refund lookup") from exc
        return self._to_refund(response.json())
