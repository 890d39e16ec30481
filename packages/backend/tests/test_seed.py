"""Seed data tests."""

import pytest
from sqlalchemy import select

from ticktee.auth.password import verify_password
from ticktee.db.models import Account, Product
from ticktee.seed import seed_database


@pytest.mark.asyncio
async def test_seed_creates_demo_data(db_session):
    added = await seed_database(db_session)

    assert added == {"accounts": 2, "products": 2}
    accounts = {
        a.username: a
        for a in (await db_session.execute(select(Account))).scalars().all()
    }
    assert accounts["admin"].is_admin is True
    assert accounts["admin"].points == 10000
    assert accounts["user"].points == 5000
    assert verify_password("user123", accounts["user"].password_hash)

    products = (await db_session.execute(select(Product).order_by(Product.id))).scalars().all()
    assert [p.type for p in products] == ["ticket", "tshirt"]
    assert products[1].sizes == "S,M,L,XL"


@pytest.mark.asyncio
async def test_seed_is_idempotent(db_session):
    await seed_database(db_session)
    again = await seed_database(db_session)

    assert again == {"accounts": 0, "products": 0}
