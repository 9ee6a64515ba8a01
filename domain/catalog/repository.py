"""
Catalog repository interfaces.
"""
from abc import ABC, abstractmethod
from typing import Optional, List

from .entity import Product, Seller, WarehouseAddress, ShippingZone


class ProductRepository(ABC):

    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def get_many(self, product_ids: List[str]) -> List[Product]:
        """Fetch products by id; missing ids are simply absent."""
        pass

    @abstractmethod
    async def create(self, product: Product) -> Product:
        pass


class SellerRepository(ABC):

    @abstractmethod
    async def get_by_id(self, seller_id: str, *, for_update: bool = False) -> Optional[Seller]:
        """`for_update` takes the row lock that serializes wallet mutations."""
        pass

    @abstractmethod
    async def create(self, seller: Seller) -> Seller:
        pass


class WarehouseRepository(ABC):

    @abstractmethod
    async def get_by_id(self, warehouse_id: str) -> Optional[WarehouseAddress]:
        pass

    @abstractmethod
    async def get_default_for_seller(self, seller_id: str) -> Optional[WarehouseAddress]:
        pass

    @abstractmethod
    async def create(self, warehouse: WarehouseAddress) -> WarehouseAddress:
        pass


class ShippingZoneRepository(ABC):

    @abstractmethod
    async def list_by_seller(self, seller_id: str) -> List[ShippingZone]:
        pass

    @abstractmethod
    async def create(self, zone: ShippingZone) -> ShippingZone:
        pass
