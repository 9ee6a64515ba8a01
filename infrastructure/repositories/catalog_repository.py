"""
目录仓储实现 - 商品、卖家、仓库地址、运费区域
"""
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.catalog.entity import (
    Address,
    Product,
    ProductType,
    ProductVariant,
    Seller,
    ShippingType,
    ShippingZone,
    WarehouseAddress,
    ZoneType,
)
from domain.catalog.repository import (
    ProductRepository,
    SellerRepository,
    ShippingZoneRepository,
    WarehouseRepository,
)
from infrastructure.models.catalog import (
    ProductModel,
    SellerModel,
    ShippingZoneModel,
    WarehouseAddressModel,
)


def _dec(value) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


class SQLAlchemyProductRepository(ProductRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: ProductModel) -> Product:
        return Product(
            id=model.id,
            seller_id=model.seller_id,
            name=model.name,
            price=_dec(model.price),
            product_type=ProductType(model.product_type),
            currency=model.currency,
            discount_percentage=_dec(model.discount_percentage),
            promotion_active=bool(model.promotion_active),
            promotion_ends_at=model.promotion_ends_at,
            requires_deposit=bool(model.requires_deposit),
            deposit_amount=_dec(model.deposit_amount),
            deposit_percentage=_dec(model.deposit_percentage),
            stock=model.stock,
            min_order_quantity=model.min_order_quantity,
            weight=_dec(model.weight),
            length=_dec(model.length),
            width=_dec(model.width),
            height=_dec(model.height),
            variants=[ProductVariant(**v) for v in (model.variants or [])],
        )

    def _to_model(self, entity: Product) -> ProductModel:
        return ProductModel(
            id=entity.id,
            seller_id=entity.seller_id,
            name=entity.name,
            price=entity.price,
            product_type=entity.product_type.value,
            currency=entity.currency,
            discount_percentage=entity.discount_percentage,
            promotion_active=entity.promotion_active,
            promotion_ends_at=entity.promotion_ends_at,
            requires_deposit=entity.requires_deposit,
            deposit_amount=entity.deposit_amount,
            deposit_percentage=entity.deposit_percentage,
            stock=entity.stock,
            min_order_quantity=entity.min_order_quantity,
            weight=entity.weight,
            length=entity.length,
            width=entity.width,
            height=entity.height,
            variants=[v.__dict__ for v in entity.variants],
        )

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self.session.execute(select(ProductModel).where(ProductModel.id == product_id))
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_many(self, product_ids: List[str]) -> List[Product]:
        if not product_ids:
            return []
        result = await self.session.execute(select(ProductModel).where(ProductModel.id.in_(product_ids)))
        return [self._to_entity(m) for m in result.scalars().all()]

    async def create(self, product: Product) -> Product:
        model = self._to_model(product)
        self.session.add(model)
        await self.session.flush()
        return self._to_entity(model)


class SQLAlchemySellerRepository(SellerRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: SellerModel) -> Seller:
        return Seller(
            id=model.id,
            name=model.name,
            shipping_type=ShippingType(model.shipping_type),
            flat_shipping_rate=_dec(model.flat_shipping_rate),
            tax_enabled=bool(model.tax_enabled),
            currency=model.currency,
            wholesale_min_order_value=_dec(model.wholesale_min_order_value),
        )

    async def get_by_id(self, seller_id: str, *, for_update: bool = False) -> Optional[Seller]:
        stmt = select(SellerModel).where(SellerModel.id == seller_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def create(self, seller: Seller) -> Seller:
        model = SellerModel(
            id=seller.id,
            name=seller.name,
            shipping_type=seller.shipping_type.value,
            flat_shipping_rate=seller.flat_shipping_rate,
            tax_enabled=seller.tax_enabled,
            currency=seller.currency,
            wholesale_min_order_value=seller.wholesale_min_order_value,
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_entity(model)


class SQLAlchemyWarehouseRepository(WarehouseRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: WarehouseAddressModel) -> WarehouseAddress:
        return WarehouseAddress(
            id=model.id,
            seller_id=model.seller_id,
            address=Address.from_dict(model.address),
            is_default=bool(model.is_default),
        )

    async def get_by_id(self, warehouse_id: str) -> Optional[WarehouseAddress]:
        result = await self.session.execute(
            select(WarehouseAddressModel).where(WarehouseAddressModel.id == warehouse_id)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_default_for_seller(self, seller_id: str) -> Optional[WarehouseAddress]:
        result = await self.session.execute(
            select(WarehouseAddressModel)
            .where(WarehouseAddressModel.seller_id == seller_id)
            .order_by(WarehouseAddressModel.is_default.desc(), WarehouseAddressModel.id)
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def create(self, warehouse: WarehouseAddress) -> WarehouseAddress:
        model = WarehouseAddressModel(
            id=warehouse.id,
            seller_id=warehouse.seller_id,
            address=warehouse.address.to_dict(),
            is_default=warehouse.is_default,
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_entity(model)


class SQLAlchemyShippingZoneRepository(ShippingZoneRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(model: ShippingZoneModel) -> ShippingZone:
        return ShippingZone(
            id=model.id,
            seller_id=model.seller_id,
            zone_type=ZoneType(model.zone_type),
            code=model.code,
            name=model.name,
            rate=_dec(model.rate),
            estimated_days=model.estimated_days,
        )

    async def list_by_seller(self, seller_id: str) -> List[ShippingZone]:
        result = await self.session.execute(
            select(ShippingZoneModel).where(ShippingZoneModel.seller_id == seller_id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def create(self, zone: ShippingZone) -> ShippingZone:
        model = ShippingZoneModel(
            id=zone.id,
            seller_id=zone.seller_id,
            zone_type=zone.zone_type.value,
            code=zone.code,
            name=zone.name,
            rate=zone.rate,
            estimated_days=zone.estimated_days,
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_entity(model)
