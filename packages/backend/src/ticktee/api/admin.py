"""Admin routes — accounts, orders and the product catalog.

Mounted with require_admin at include level, so every handler here can
assume an admin caller.

- GET /admin/users, POST /admin/users/{id}/add-points, PATCH /admin/users/{id}
- GET /admin/orders, PATCH /admin/orders/{id}
- POST /admin/products, PATCH /admin/products/{id}, DELETE /admin/products/{id}
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.api.errors import to_http
from ticktee.db.engine import get_db
from ticktee.db.models import Account
from ticktee.events.bus import EventBus, get_event_bus
from ticktee.events.types import OutboundEvent
from ticktee.schemas.account import AccountRead, AddPointsRequest, AdminFlagUpdate
from ticktee.schemas.order import OrderRead, OrderStatusUpdate
from ticktee.schemas.product import ProductCreate, ProductRead, ProductUpdate
from ticktee.services.catalog_service import CatalogService
from ticktee.services.errors import ServiceError
from ticktee.services.ledger import LedgerStore
from ticktee.services.order_service import OrderService

router = APIRouter(prefix="/admin")


# ═══════════════════════════════════════════════════════════
# Accounts
# ═══════════════════════════════════════════════════════════


@router.get("/users", response_model=list[AccountRead])
async def list_users(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Account).order_by(Account.id).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


@router.post("/users/{account_id}/add-points", response_model=AccountRead)
async def add_points(
    account_id: int,
    body: AddPointsRequest,
    db: AsyncSession = Depends(get_db),
):
    """Grant points to an account. No transfer record is written."""
    try:
        return await LedgerStore(db).add_points(account_id, body.points)
    except ServiceError as e:
        raise to_http(e)


@router.patch("/users/{account_id}", response_model=AccountRead)
async def update_user(
    account_id: int,
    body: AdminFlagUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await LedgerStore(db).set_admin(account_id, body.is_admin)
    except ServiceError as e:
        raise to_http(e)


# ═══════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════


def _order_svc(db: AsyncSession = Depends(get_db)) -> OrderService:
    return OrderService(db)


@router.get("/orders", response_model=list[OrderRead])
async def list_all_orders(svc: OrderService = Depends(_order_svc)):
    return await svc.list_orders()


@router.patch("/orders/{order_id}", response_model=OrderRead)
async def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    svc: OrderService = Depends(_order_svc),
):
    try:
        return await svc.update_status(order_id, body.status)
    except ServiceError as e:
        raise to_http(e)


# ═══════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════


def _catalog(db: AsyncSession = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


@router.post("/products", response_model=ProductRead, status_code=201)
async def create_product(
    body: ProductCreate,
    svc: CatalogService = Depends(_catalog),
    bus: EventBus = Depends(get_event_bus),
):
    product = await svc.create_product(**body.model_dump())
    result = ProductRead.model_validate(product)
    await bus.publish(OutboundEvent.PRODUCT_CREATED, result.model_dump(mode="json"))
    return result


@router.patch("/products/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: int,
    body: ProductUpdate,
    svc: CatalogService = Depends(_catalog),
):
    """Partial update — only the fields the client sent are applied."""
    try:
        return await svc.update_product(product_id, body.model_dump(exclude_unset=True))
    except ServiceError as e:
        raise to_http(e)


@router.delete("/products/{product_id}", status_code=204)
async def delete_product(product_id: int, svc: CatalogService = Depends(_catalog)):
    try:
        await svc.delete_product(product_id)
    except ServiceError as e:
        raise to_http(e)
