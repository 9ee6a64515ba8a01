"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Optional, Callable
import inspect

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.repositories.catalog_repository import (
    SQLAlchemyProductRepository,
    SQLAlchemySellerRepository,
    SQLAlchemyShippingZoneRepository,
    SQLAlchemyWarehouseRepository,
)
from infrastructure.repositories.order_repository import SQLAlchemyOrderRepository
from infrastructure.repositories.payment_repository import (
    SQLAlchemyPaymentIntentRepository,
    SQLAlchemyRefundRepository,
    SQLAlchemyWebhookEventRepository,
)
from infrastructure.repositories.shipping_repository import (
    SQLAlchemyLabelRefundRepository,
    SQLAlchemyShippingLabelRepository,
    SQLAlchemyWalletLedgerRepository,
)

_REPOSITORIES = {
    "products": SQLAlchemyProductRepository,
    "sellers": SQLAlchemySellerRepository,
    "warehouses": SQLAlchemyWarehouseRepository,
    "zones": SQLAlchemyShippingZoneRepository,
    "orders": SQLAlchemyOrderRepository,
    "payment_intents": SQLAlchemyPaymentIntentRepository,
    "refunds": SQLAlchemyRefundRepository,
    "webhook_events": SQLAlchemyWebhookEventRepository,
    "labels": SQLAlchemyShippingLabelRepository,
    "label_refunds": SQLAlchemyLabelRefundRepository,
    "wallet": SQLAlchemyWalletLedgerRepository,
}


def _default_session_factory() -> AsyncSession:
    # 延迟导入，避免仅构造 UoW 时创建全局引擎
    from infrastructure.database import AsyncSessionLocal

    return AsyncSessionLocal()


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """基于SQLAlchemy的Unit of Work"""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = _default_session_factory,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._external_session = session
        self.session: Optional[AsyncSession] = session

    def _bind_repositories(self, session: Optional[AsyncSession]) -> None:
        for name, repo_cls in _REPOSITORIES.items():
            setattr(self, name, repo_cls(session) if session is not None else None)

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        self._committed = False
        self._bind_repositories(self.session)
        # 仅在非只读模式下显式开启事务
        if not self._readonly and not self.session.in_transaction():
            self._transaction = await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            # 事务在 commit/rollback 后通常会结束，这里仅在仍然活动时做安全关闭
            tx = getattr(self, "_transaction", None)
            if tx is not None and getattr(tx, "is_active", False):
                close = getattr(tx, "close", None)
                if callable(close):
                    res = close()
                    if inspect.isawaitable(res):
                        await res
            self._transaction = None
            if self._external_session is None and self.session is not None:
                await self.session.close()
                self.session = None
            self._bind_repositories(None)

    async def commit(self) -> None:
        if self._readonly:
            # 只读情况下不提交
            self._committed = True
            return
        if self.session and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
