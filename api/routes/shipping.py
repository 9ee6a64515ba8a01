"""
Shipping label and seller wallet routes.
"""
from fastapi import APIRouter, Depends, status

from api.dependencies import get_label_service
from application.dtos.shipping import (
    LabelCancelResultDTO,
    PurchaseLabelRequestDTO,
    ShippingLabelDTO,
    WalletDTO,
)
from application.services.shipping_label_service import ShippingLabelService
from core.response import Response as ApiResponse, success_response

router = APIRouter(tags=["Shipping"])


@router.post(
    "/orders/{order_id}/shipping-labels",
    summary="Purchase shipping label",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[ShippingLabelDTO],
)
async def purchase_label(
    order_id: str,
    payload: PurchaseLabelRequestDTO,
    service: ShippingLabelService = Depends(get_label_service),
):
    """Buys the cheapest carrier rate and debits the seller wallet."""
    label = await service.purchase(order_id, payload.warehouse_address_id)
    return success_response(data=label, message="Label purchased")


@router.post(
    "/shipping-labels/{label_id}/cancel",
    summary="Cancel shipping label",
    response_model=ApiResponse[LabelCancelResultDTO],
)
async def cancel_label(label_id: str, service: ShippingLabelService = Depends(get_label_service)):
    """A carrier rejection is returned as an outcome, not an error."""
    result = await service.cancel(label_id)
    message = "Label refund rejected by carrier" if result.refund_status == "rejected" else "Label cancellation requested"
    return success_response(data=result, message=message)


@router.get("/sellers/{seller_id}/wallet", summary="Seller wallet", response_model=ApiResponse[WalletDTO])
async def get_wallet(seller_id: str, service: ShippingLabelService = Depends(get_label_service)):
    return success_response(data=await service.get_wallet_balance(seller_id))
