"""Ledger store and transfer service tests.

Covers the balance rules directly against the services:
- non-admin debits, admin mints
- insufficient balance / self-transfer / bad amounts leave nothing behind
- two concurrent transfers racing for the same balance
"""

import asyncio

import pytest
from sqlalchemy import func, select

from ticktee.db.models import PointTransfer
from ticktee.services.errors import (
    InsufficientBalanceError,
    InvalidTransferError,
    NotFoundError,
    ValidationError,
)
from ticktee.services.ledger import LedgerStore
from ticktee.services.transfer_service import TransferService


async def _balance(session_factory, account_id: int) -> int:
    async with session_factory() as session:
        return await LedgerStore(session).balance(account_id)


async def _transfer_count(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(PointTransfer.id)))
        return result.scalar_one()


# ═══════════════════════════════════════════════════════════
# Transfers
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_transfer_moves_exact_amount(db_session, session_factory, create_account):
    u = await create_account(points=500)
    v = await create_account(points=100)

    record = await TransferService(db_session).transfer_points(u.id, v.id, 200, reason="gift")

    assert record.id is not None
    assert (record.from_account_id, record.to_account_id) == (u.id, v.id)
    assert record.points == 200
    assert record.reason == "gift"
    assert await _balance(session_factory, u.id) == 300
    assert await _balance(session_factory, v.id) == 300
    assert await _transfer_count(session_factory) == 1


@pytest.mark.asyncio
async def test_transfer_whole_balance(db_session, session_factory, create_account):
    u = await create_account(points=75)
    v = await create_account()

    await TransferService(db_session).transfer_points(u.id, v.id, 75)

    assert await _balance(session_factory, u.id) == 0
    assert await _balance(session_factory, v.id) == 75


@pytest.mark.asyncio
async def test_insufficient_balance_changes_nothing(db_session, session_factory, create_account):
    u = await create_account(points=50)
    v = await create_account(points=10)

    with pytest.raises(InsufficientBalanceError):
        await TransferService(db_session).transfer_points(u.id, v.id, 51)

    assert await _balance(session_factory, u.id) == 50
    assert await _balance(session_factory, v.id) == 10
    assert await _transfer_count(session_factory) == 0


@pytest.mark.asyncio
async def test_admin_transfer_does_not_debit_admin(db_session, session_factory, create_account):
    admin = await create_account(points=10, is_admin=True)
    u = await create_account(points=300)

    await TransferService(db_session).transfer_points(admin.id, u.id, 1000)

    assert await _balance(session_factory, admin.id) == 10
    assert await _balance(session_factory, u.id) == 1300
    assert await _transfer_count(session_factory) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("is_admin", [False, True])
async def test_self_transfer_rejected(db_session, session_factory, create_account, is_admin):
    a = await create_account(points=100, is_admin=is_admin)

    with pytest.raises(InvalidTransferError):
        await TransferService(db_session).transfer_points(a.id, a.id, 1)

    assert await _balance(session_factory, a.id) == 100
    assert await _transfer_count(session_factory) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("points", [0, -5, 2.5, True])
async def test_non_positive_or_non_integer_amount_rejected(db_session, create_account, points):
    u = await create_account(points=100)
    v = await create_account()

    with pytest.raises(InvalidTransferError):
        await TransferService(db_session).transfer_points(u.id, v.id, points)


@pytest.mark.asyncio
async def test_unknown_recipient(db_session, session_factory, create_account):
    u = await create_account(points=100)

    with pytest.raises(NotFoundError, match="Recipient"):
        await TransferService(db_session).transfer_points(u.id, 9999, 10)

    assert await _balance(session_factory, u.id) == 100


@pytest.mark.asyncio
async def test_unknown_sender(db_session, create_account):
    v = await create_account()

    with pytest.raises(NotFoundError, match="Sender"):
        await TransferService(db_session).transfer_points(9999, v.id, 10)


@pytest.mark.asyncio
async def test_concurrent_transfers_cannot_overdraw(session_factory, create_account):
    """Two 60-point transfers from a 100-point balance: exactly one wins."""
    a = await create_account(points=100)
    b = await create_account()
    c = await create_account()

    async def send(to_id: int):
        async with session_factory() as session:
            return await TransferService(session).transfer_points(a.id, to_id, 60)

    results = await asyncio.gather(send(b.id), send(c.id), return_exceptions=True)

    succeeded = [r for r in results if isinstance(r, PointTransfer)]
    failed = [r for r in results if isinstance(r, InsufficientBalanceError)]
    assert len(succeeded) == 1
    assert len(failed) == 1
    assert await _balance(session_factory, a.id) == 40
    assert (
        await _balance(session_factory, b.id) + await _balance(session_factory, c.id)
        == 60
    )
    assert await _transfer_count(session_factory) == 1


@pytest.mark.asyncio
async def test_list_transfers_newest_first(db_session, create_account):
    u = await create_account(points=100)
    v = await create_account(points=100)
    svc = TransferService(db_session)

    first = await svc.transfer_points(u.id, v.id, 10)
    second = await svc.transfer_points(v.id, u.id, 5)

    history = await svc.list_transfers(u.id)
    assert [t.id for t in history] == [second.id, first.id]


# ═══════════════════════════════════════════════════════════
# Admin operations
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_points(db_session, create_account):
    u = await create_account(points=5)

    account = await LedgerStore(db_session).add_points(u.id, 20)

    assert account.points == 25


@pytest.mark.asyncio
async def test_add_points_rejects_zero(db_session, create_account):
    u = await create_account()

    with pytest.raises(ValidationError):
        await LedgerStore(db_session).add_points(u.id, 0)


@pytest.mark.asyncio
async def test_add_points_unknown_account(db_session):
    with pytest.raises(NotFoundError):
        await LedgerStore(db_session).add_points(4242, 10)


@pytest.mark.asyncio
async def test_set_admin_flag(db_session, create_account):
    u = await create_account()

    account = await LedgerStore(db_session).set_admin(u.id, True)
    assert account.is_admin is True

    account = await LedgerStore(db_session).set_admin(u.id, False)
    assert account.is_admin is False


@pytest.mark.asyncio
async def test_set_admin_unknown_account(db_session):
    with pytest.raises(NotFoundError):
        await LedgerStore(db_session).set_admin(4242, True)
