"""Demo data: one admin, one regular user and a starter catalog.

seed_database() is idempotent. Accounts are matched by username and the
catalog is only filled when it is empty, so running it twice changes
nothing.
"""

from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticktee.auth.password import hash_password
from ticktee.db.models import Account, Product

logger = structlog.get_logger()

SEED_ACCOUNTS = [
    {
        "username": "admin",
        "password": "admin123",
        "name": "Administrator",
        "email": "admin@ticktee.com",
        "points": 10000,
        "is_admin": True,
    },
    {
        "username": "user",
        "password": "user123",
        "name": "Regular User",
        "email": "user@example.com",
        "points": 5000,
        "is_admin": False,
    },
]

SEED_PRODUCTS = [
    {
        "name": "TEDx Youth Red Sea STEM Ticket",
        "description": (
            "Join us for an inspiring day of talks, workshops, and networking "
            "at TEDx Youth Red Sea STEM."
        ),
        "image_url": "/images/tedx-ticket.svg",
        "category": "Event",
        "price": 1500,
        "stock": 150,
        "type": "ticket",
        "event_date": datetime(2025, 8, 15, 9, 0, tzinfo=timezone.utc),
        "event_location": "Red Sea STEM School, Cairo",
    },
    {
        "name": "TEDx Youth Red Sea STEM T-Shirt",
        "description": (
            "Official TEDx Youth Red Sea STEM t-shirt, 100% cotton with the "
            "event logo printed on the front."
        ),
        "image_url": "/images/tedx-tshirt.svg",
        "category": "Merchandise",
        "price": 800,
        "stock": 100,
        "type": "tshirt",
        "sizes": "S,M,L,XL",
    },
]


async def seed_database(db: AsyncSession) -> dict[str, int]:
    """Insert whatever demo rows are missing. Returns counts of what was added."""
    added = {"accounts": 0, "products": 0}

    for row in SEED_ACCOUNTS:
        existing = await db.execute(
            select(Account.id).where(Account.username == row["username"])
        )
        if existing.first() is not None:
            continue
        fields = dict(row)
        db.add(Account(password_hash=hash_password(fields.pop("password")), **fields))
        added["accounts"] += 1

    product_count = (await db.execute(select(func.count(Product.id)))).scalar_one()
    if product_count == 0:
        for row in SEED_PRODUCTS:
            db.add(Product(**row))
            added["products"] += 1

    await db.commit()
    logger.info("seed.done", **added)
    return added
