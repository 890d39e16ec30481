"""Direct message routes.

- GET /messages → everything the caller sent or received
- GET /messages/conversation/{account_id} → the thread with one account
- POST /messages → send (broadcasts messageCreated)
- PATCH /messages/{id}/read → recipient marks a message read
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.api.errors import to_http
from ticktee.auth.dependencies import CurrentIdentity, get_current_user
from ticktee.db.engine import get_db
from ticktee.events.bus import EventBus, get_event_bus
from ticktee.events.types import OutboundEvent
from ticktee.schemas.message import MessageCreate, MessageRead
from ticktee.services.errors import ServiceError
from ticktee.services.message_service import MessageService

router = APIRouter(prefix="/messages")


def _msg_svc(db: AsyncSession = Depends(get_db)) -> MessageService:
    return MessageService(db)


@router.get("", response_model=list[MessageRead])
async def list_messages(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: MessageService = Depends(_msg_svc),
):
    return await svc.list_for_account(identity.account_id)


@router.get("/conversation/{account_id}", response_model=list[MessageRead])
async def get_conversation(
    account_id: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: MessageService = Depends(_msg_svc),
):
    return await svc.conversation(identity.account_id, account_id)


@router.post("", response_model=MessageRead, status_code=201)
async def send_message(
    body: MessageCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: MessageService = Depends(_msg_svc),
    bus: EventBus = Depends(get_event_bus),
):
    if body.from_account_id is not None and body.from_account_id != identity.account_id:
        raise HTTPException(status_code=403, detail="Cannot send messages as another user")

    try:
        message = await svc.send_message(
            identity.account_id, body.to_account_id, body.content
        )
    except ServiceError as e:
        raise to_http(e)

    result = MessageRead.model_validate(message)
    await bus.publish(OutboundEvent.MESSAGE_CREATED, result.model_dump(mode="json"))
    return result


@router.patch("/{message_id}/read", response_model=MessageRead)
async def mark_message_read(
    message_id: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: MessageService = Depends(_msg_svc),
):
    try:
        return await svc.mark_read(message_id, identity.account_id)
    except ServiceError as e:
        raise to_http(e)
