"""Account directory for signed-in users."""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.db.engine import get_db
from ticktee.db.models import Account
from ticktee.schemas.account import AccountSummary

router = APIRouter(prefix="/users")


@router.get("/admins", response_model=list[AccountSummary])
async def list_admins(db: AsyncSession = Depends(get_db)):
    """Admins a user can message for help."""
    result = await db.execute(
        select(Account).where(Account.is_admin.is_(True)).order_by(Account.id)
    )
    return list(result.scalars().all())
