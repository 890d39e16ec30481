"""Product catalog — public read routes.

Admin create/update/delete live in api/admin.py.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.db.engine import get_db
from ticktee.schemas.product import ProductRead
from ticktee.services.catalog_service import CatalogService

router = APIRouter()


def _catalog(db: AsyncSession = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


@router.get("/products", response_model=list[ProductRead])
async def list_products(svc: CatalogService = Depends(_catalog)):
    return await svc.list_products()


@router.get("/products/{product_id}", response_model=ProductRead)
async def get_product(product_id: int, svc: CatalogService = Depends(_catalog)):
    product = await svc.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
