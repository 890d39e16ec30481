"""Catalog service — product CRUD.

Reads use populate_existing so stock numbers decremented by a checkout
earlier in the same session are never served stale.
"""

from typing import Any, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.db.models import OrderItem, Product
from ticktee.services.errors import NotFoundError, ValidationError

logger = structlog.get_logger()


class CatalogService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_products(self) -> list[Product]:
        result = await self.db.execute(
            select(Product)
            .order_by(Product.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_product(self, product_id: int) -> Optional[Product]:
        result = await self.db.execute(
            select(Product)
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def create_product(self, **fields: Any) -> Product:
        product = Product(**fields)
        self.db.add(product)
        await self.db.flush()
        await self.db.commit()
        logger.info("catalog.product_created", product_id=product.id, name=product.name)
        return product

    async def update_product(self, product_id: int, changes: dict[str, Any]) -> Product:
        """Apply a partial update. Only keys present in `changes` are touched."""
        product = await self.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        for key, value in changes.items():
            setattr(product, key, value)
        await self.db.commit()
        return product

    async def delete_product(self, product_id: int) -> None:
        product = await self.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        # Order items keep referencing the product forever.
        ordered = await self.db.execute(
            select(OrderItem.id).where(OrderItem.product_id == product_id).limit(1)
        )
        if ordered.first() is not None:
            raise ValidationError("Product has orders and cannot be deleted")

        await self.db.delete(product)
        await self.db.commit()
        logger.info("catalog.product_deleted", product_id=product_id)
