"""
Payments API routes.

Processor webhooks only; charges are initiated through the order routes.
Keep this thin: no SDK details here.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette import status as http_status

from api.dependencies import get_payment_service
from application.services.payment_service import PaymentCaptureService
from core.logging_config import get_logger
from core.response import error_response, success_response
from shared.codes import BusinessCode


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


@router.post("/webhooks/stripe", summary="Stripe webhook")
async def stripe_webhook(
    request: Request,
    service: PaymentCaptureService = Depends(get_payment_service),
):
    """
    Verify and apply a Stripe event.

    Any verified event is acknowledged with 200, including replays and
    events for unknown orders, so the processor stops redelivering.
    """
    raw_body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    outcome = await service.handle_webhook(headers, raw_body)

    if not outcome.accepted:
        response = error_response(
            code=BusinessCode.SIGNATURE_INVALID,
            message="Webhook signature verification failed",
            error_type="PaymentSignatureError",
            request_id=getattr(request.state, "request_id", None),
        )
        return JSONResponse(status_code=http_status.HTTP_400_BAD_REQUEST, content=response.model_dump(mode="json"))

    return success_response(
        data={
            "id": outcome.event_id,
            "type": outcome.event_type,
            "status": outcome.status,
            "order_id": outcome.order_id,
        },
        message="Webhook received",
    )
