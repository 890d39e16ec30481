"""Transfer service — point transfer policy on top of the ledger store.

Argument checks that need no database (positive amount, no
self-transfer) fail here before a transaction is opened. Balance and
existence checks happen inside LedgerStore.transfer, under row locks.

Authorization ("is the caller really the sender?") is the HTTP layer's
job; this service trusts the from_account_id it is given.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.db.models import PointTransfer
from ticktee.services.errors import InvalidTransferError
from ticktee.services.ledger import LedgerStore


class TransferService:
    """Business rules for sending points between accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerStore(db)

    async def transfer_points(
        self,
        from_account_id: int,
        to_account_id: int,
        points: int,
        reason: Optional[str] = None,
    ) -> PointTransfer:
        """Transfer points and return the new ledger record.

        Raises InvalidTransferError, NotFoundError or
        InsufficientBalanceError; balances are untouched on any of them.
        """
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise InvalidTransferError("Transfer amount must be a positive integer")
        if from_account_id == to_account_id:
            raise InvalidTransferError("Cannot transfer points to yourself")

        return await self.ledger.transfer(
            from_account_id, to_account_id, points, reason=reason
        )

    async def list_transfers(self, account_id: int) -> list[PointTransfer]:
        return await self.ledger.list_transfers(account_id)
