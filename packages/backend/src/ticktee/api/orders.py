"""Order routes for the signed-in account.

POST /orders is the checkout: prices come from the catalog, the total is
debited atomically and every connected client gets an orderCreated frame
once the order is committed.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.api.errors import to_http
from ticktee.auth.dependencies import CurrentIdentity, get_current_user
from ticktee.db.engine import get_db
from ticktee.events.bus import EventBus, get_event_bus
from ticktee.events.types import OutboundEvent
from ticktee.schemas.order import OrderCreate, OrderRead
from ticktee.services.errors import ServiceError
from ticktee.services.order_service import OrderLine, OrderService

router = APIRouter()


def _order_svc(db: AsyncSession = Depends(get_db)) -> OrderService:
    return OrderService(db)


@router.get("/orders", response_model=list[OrderRead])
async def list_my_orders(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: OrderService = Depends(_order_svc),
):
    return await svc.list_orders(identity.account_id)


@router.get("/orders/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: OrderService = Depends(_order_svc),
):
    order = await svc.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.account_id != identity.account_id and not identity.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return order


@router.post("/orders", response_model=OrderRead, status_code=201)
async def create_order(
    body: OrderCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: OrderService = Depends(_order_svc),
    bus: EventBus = Depends(get_event_bus),
):
    """Place an order and pay for it with points."""
    lines = [
        OrderLine(product_id=item.product_id, quantity=item.quantity, size=item.size)
        for item in body.items
    ]
    try:
        order = await svc.create_order(identity.account_id, lines)
    except ServiceError as e:
        raise to_http(e)

    result = OrderRead.model_validate(order)
    await bus.publish(OutboundEvent.ORDER_CREATED, result.model_dump(mode="json"))
    return result
