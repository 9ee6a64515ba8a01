"""
Order repository interface.
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Order


class OrderRepository(ABC):
    """Persists the Order aggregate together with its OrderItem rows."""

    @abstractmethod
    async def add(self, order: Order) -> Order:
        """Insert order header and items."""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: str, *, for_update: bool = False) -> Optional[Order]:
        """Load the aggregate.

        `for_update` takes the per-order row lock used to serialize every
        read-modify-write of the money columns.
        """
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """Write header fields and item refund counters back."""
        pass
