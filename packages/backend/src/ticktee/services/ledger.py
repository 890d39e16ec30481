"""Ledger store — account balances and the append-only transfer log.

Every balance change in the system goes through this class. Two rules
keep concurrent requests from losing updates:

1. Balances are never read into Python, modified and written back.
   Debits are a single conditional UPDATE:
     UPDATE accounts SET points = points - :p WHERE id = :id AND points >= :p
   Zero affected rows means the balance was too low *at commit time*,
   whatever the caller saw earlier.
2. A transfer locks both account rows (SELECT ... FOR UPDATE) in
   ascending id order before touching them, so two transfers between the
   same pair of accounts can't deadlock. SQLite ignores FOR UPDATE and
   serializes writers with its database lock instead.

debit()/credit() join the caller's transaction; transfer(), add_points()
and set_admin() commit (or roll back) their own.
"""

from typing import Optional

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.db.models import Account, PointTransfer
from ticktee.services.errors import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()


class LedgerStore:
    """Atomic balance operations on top of an AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Reads ───────────────────────────────────────────

    async def get_account(self, account_id: int) -> Optional[Account]:
        result = await self.db.execute(
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def balance(self, account_id: int) -> Optional[int]:
        """Current committed balance, straight from the database."""
        result = await self.db.execute(
            select(Account.points).where(Account.id == account_id)
        )
        return result.scalar_one_or_none()

    async def list_transfers(
        self, account_id: int, limit: int = 100
    ) -> list[PointTransfer]:
        """Transfers sent or received by an account, newest first."""
        result = await self.db.execute(
            select(PointTransfer)
            .where(
                or_(
                    PointTransfer.from_account_id == account_id,
                    PointTransfer.to_account_id == account_id,
                )
            )
            .order_by(PointTransfer.created_at.desc(), PointTransfer.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    # ─── Primitives (caller owns the transaction) ────────

    async def lock_accounts(self, *account_ids: int) -> dict[int, Account]:
        """Lock the given account rows in id order. Missing ids are absent."""
        result = await self.db.execute(
            select(Account)
            .where(Account.id.in_(set(account_ids)))
            .order_by(Account.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {account.id: account for account in result.scalars().all()}

    async def debit(self, account_id: int, points: int) -> None:
        """Subtract points, refusing to go below zero."""
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id, Account.points >= points)
            .values(points=Account.points - points)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InsufficientBalanceError()

    async def credit(self, account_id: int, points: int) -> None:
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(points=Account.points + points)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError(f"Account {account_id} not found")

    # ─── Transfers ───────────────────────────────────────

    async def transfer(
        self,
        from_account_id: int,
        to_account_id: int,
        points: int,
        reason: Optional[str] = None,
    ) -> PointTransfer:
        """Move points between accounts and record it, all or nothing.

        Admin senders are not debited: the destination is credited and the
        record written, but the admin balance stays as it is.
        """
        try:
            accounts = await self.lock_accounts(from_account_id, to_account_id)
            source = accounts.get(from_account_id)
            if source is None:
                raise NotFoundError("Sender not found")
            if to_account_id not in accounts:
                raise NotFoundError("Recipient not found")

            if not source.is_admin:
                await self.debit(from_account_id, points)
            await self.credit(to_account_id, points)

            record = PointTransfer(
                from_account_id=from_account_id,
                to_account_id=to_account_id,
                points=points,
                reason=reason,
            )
            self.db.add(record)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "ledger.transfer_committed",
            transfer_id=record.id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            points=points,
            minted=source.is_admin,
        )
        return record

    # ─── Admin operations ────────────────────────────────

    async def add_points(self, account_id: int, points: int) -> Account:
        """Admin grant. Single-row atomic increment."""
        if points < 1:
            raise ValidationError("Points must be at least 1")
        try:
            await self.credit(account_id, points)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("ledger.points_granted", account_id=account_id, points=points)
        return await self.get_account(account_id)

    async def set_admin(self, account_id: int, is_admin: bool) -> Account:
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(is_admin=is_admin)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise NotFoundError("User not found")
        await self.db.commit()

        logger.info("ledger.admin_flag_set", account_id=account_id, is_admin=is_admin)
        return await self.get_account(account_id)
