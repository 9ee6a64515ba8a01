"""
订单 API 路由 - 购物车校验、金额汇总、下单、状态与退款

No request model carries a monetary amount; every figure is computed
server-side.
"""
from fastapi import APIRouter, Depends, status

from api.dependencies import get_order_service, get_refund_service
from application.dtos.orders import (
    BalancePaymentDTO,
    CartValidateRequestDTO,
    CheckoutDTO,
    CreateOrderRequestDTO,
    OrderDTO,
    OrderSummaryDTO,
    OrderSummaryRequestDTO,
    RefundDTO,
    RefundOutcomeDTO,
    RefundRequestDTO,
    UpdateOrderStatusDTO,
    ValidatedCartDTO,
)
from application.services.order_service import OrderLifecycleService
from application.services.refund_service import RefundService
from core.response import Response as ApiResponse, success_response

router = APIRouter(tags=["Orders"])


@router.post("/cart/validate", summary="Validate cart", response_model=ApiResponse[ValidatedCartDTO])
async def validate_cart(
    payload: CartValidateRequestDTO,
    service: OrderLifecycleService = Depends(get_order_service),
):
    """
    Resolve catalog prices for a cart.

    - single seller and a single fulfillment type
    - stock and minimum order quantities enforced
    """
    cart = await service.validate_cart(payload.items)
    return success_response(data=cart, message="Cart is valid")


@router.post("/orders/summary", summary="Order summary", response_model=ApiResponse[OrderSummaryDTO])
async def order_summary(
    payload: OrderSummaryRequestDTO,
    service: OrderLifecycleService = Depends(get_order_service),
):
    summary = await service.calculate_order_summary(payload.items, payload.destination.to_domain())
    return success_response(data=summary)


@router.post(
    "/orders",
    summary="Create order",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[CheckoutDTO],
)
async def create_order(
    payload: CreateOrderRequestDTO,
    service: OrderLifecycleService = Depends(get_order_service),
):
    """
    Persist the order and open the first payment (deposit or full).

    When the processor is unreachable the order is still created and
    `payment_error` is set; retry with `POST /orders/{order_id}/payments`.
    """
    checkout = await service.create_order(payload)
    return success_response(data=checkout, message="Order created")


@router.get("/orders/{order_id}", summary="Get order", response_model=ApiResponse[OrderDTO])
async def get_order(order_id: str, service: OrderLifecycleService = Depends(get_order_service)):
    return success_response(data=await service.get_order(order_id))


@router.post("/orders/{order_id}/payments", summary="Re-initiate payment", response_model=ApiResponse[CheckoutDTO])
async def retry_payment(order_id: str, service: OrderLifecycleService = Depends(get_order_service)):
    return success_response(data=await service.retry_payment(order_id))


@router.patch("/orders/{order_id}/status", summary="Update order status", response_model=ApiResponse[OrderDTO])
async def update_order_status(
    order_id: str,
    payload: UpdateOrderStatusDTO,
    service: OrderLifecycleService = Depends(get_order_service),
):
    order = await service.update_order_status(order_id, payload.status)
    return success_response(data=order, message="Order status updated")


@router.post(
    "/orders/{order_id}/balance-request",
    summary="Request balance payment",
    response_model=ApiResponse[BalancePaymentDTO],
)
async def request_balance_payment(order_id: str, service: OrderLifecycleService = Depends(get_order_service)):
    return success_response(data=await service.request_balance_payment(order_id), message="Balance payment requested")


@router.post("/orders/{order_id}/refunds", summary="Refund order", response_model=ApiResponse[RefundOutcomeDTO])
async def refund_order(
    order_id: str,
    payload: RefundRequestDTO,
    service: RefundService = Depends(get_refund_service),
):
    """
    Refund selected items (`items`) or everything still refundable (`full=true`).
    """
    outcome = await service.process_refund(order_id, payload)
    return success_response(data=outcome, message="Refund processed")


@router.get("/orders/{order_id}/refunds", summary="List refunds", response_model=ApiResponse[list[RefundDTO]])
async def list_refunds(order_id: str, service: RefundService = Depends(get_refund_service)):
    return success_response(data=await service.list_refunds(order_id))
