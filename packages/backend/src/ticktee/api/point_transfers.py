"""Point transfer routes.

The sender is always the authenticated caller. A body that names a
different from_account_id is refused with 403 before anything is read.
Amount, self-transfer, existence and balance checks live in
TransferService / LedgerStore and come back as ServiceErrors.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.api.errors import to_http
from ticktee.auth.dependencies import CurrentIdentity, get_current_user
from ticktee.db.engine import get_db
from ticktee.schemas.transfer import TransferCreate, TransferRead
from ticktee.services.errors import ServiceError
from ticktee.services.transfer_service import TransferService

router = APIRouter()


def _transfer_svc(db: AsyncSession = Depends(get_db)) -> TransferService:
    return TransferService(db)


@router.get("/point-transfers", response_model=list[TransferRead])
async def list_point_transfers(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TransferService = Depends(_transfer_svc),
):
    """Transfers the caller sent or received, newest first."""
    return await svc.list_transfers(identity.account_id)


@router.post("/point-transfers", response_model=TransferRead, status_code=201)
async def create_point_transfer(
    body: TransferCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TransferService = Depends(_transfer_svc),
):
    if body.from_account_id is not None and body.from_account_id != identity.account_id:
        raise HTTPException(
            status_code=403, detail="Cannot transfer points from another user"
        )

    try:
        return await svc.transfer_points(
            identity.account_id,
            body.to_account_id,
            body.points,
            reason=body.reason,
        )
    except ServiceError as e:
        raise to_http(e)
