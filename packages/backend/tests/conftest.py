"""Test fixtures — a throwaway SQLite database per test.

Every test gets its own database file under tmp_path, created from the
ORM metadata. A file (not :memory:) is used so that several sessions can
hold separate connections at once, which the ledger concurrency tests
rely on.

The HTTP client overrides get_db with a fresh session per request, the
same way production wiring works, and points the app's realtime gateway
at the test database for the duration of the test.
"""

import json
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ticktee.auth.jwt import create_access_token
from ticktee.db.engine import get_db
from ticktee.db.models import Account, Base, Product
from ticktee.main import app


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ticktee.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def gateway(session_factory):
    """The app's gateway, reading from the test database."""
    gw = app.state.gateway
    original_factory = gw.session_factory
    gw.session_factory = session_factory
    yield gw
    gw.registry.clear()
    gw.session_factory = original_factory


@pytest_asyncio.fixture()
async def client(session_factory, gateway):
    """HTTP client with get_db bound to the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def create_account(session_factory):
    """Insert an account directly. The password hash is unusable on purpose."""
    counter = {"n": 0}

    async def _create(
        points: int = 0,
        is_admin: bool = False,
        username: Optional[str] = None,
    ) -> Account:
        counter["n"] += 1
        async with session_factory() as session:
            account = Account(
                username=username or f"user{counter['n']}",
                password_hash="!",
                name=f"Test User {counter['n']}",
                points=points,
                is_admin=is_admin,
            )
            session.add(account)
            await session.commit()
            return account

    return _create


@pytest.fixture()
def create_product(session_factory):
    async def _create(**overrides) -> Product:
        fields = {
            "name": "TEDx Ticket",
            "category": "Event",
            "price": 150,
            "stock": 10,
            "type": "ticket",
        }
        fields.update(overrides)
        async with session_factory() as session:
            product = Product(**fields)
            session.add(product)
            await session.commit()
            return product

    return _create


@pytest.fixture()
def auth_headers():
    def _headers(account: Account) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(account.id)}"}

    return _headers


class FakeConnection:
    """In-memory stand-in for a WebSocket connection."""

    def __init__(self, account_id: Optional[int] = None, open: bool = True, fail: bool = False):
        self.account_id = account_id
        self.open = open
        self.fail = fail
        self.frames: list[dict] = []
        self.closed_with: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.open

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("socket is gone")
        self.frames.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        self.open = False
        self.closed_with = code

    def of_type(self, frame_type: str) -> list[dict]:
        return [f for f in self.frames if f.get("type") == frame_type]


@pytest.fixture()
def make_connection():
    return FakeConnection
