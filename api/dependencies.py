"""
API依赖项 - 应用服务装配
"""
from functools import lru_cache

from fastapi import Depends

from application.services.order_service import OrderLifecycleService
from application.services.payment_service import PaymentCaptureService
from application.services.refund_service import RefundService
from application.services.shipping_label_service import ShippingLabelService
from infrastructure.container import ServiceContainer


@lru_cache
def get_container() -> ServiceContainer:
    """进程级单例；测试中通过 dependency_overrides 替换"""
    return ServiceContainer()


async def get_order_service(container: ServiceContainer = Depends(get_container)) -> OrderLifecycleService:
    return container.order_service()


async def get_payment_service(container: ServiceContainer = Depends(get_container)) -> PaymentCaptureService:
    return container.payment_service()


async def get_refund_service(container: ServiceContainer = Depends(get_container)) -> RefundService:
    return container.refund_service()


async def get_label_service(container: ServiceContainer = Depends(get_container)) -> ShippingLabelService:
    return container.label_service()
