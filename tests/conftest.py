"""
Pytest fixtures for the bottle ledger API.

Provides:
- a fresh SQLite database (aiosqlite) per test, with every table created
- an httpx client bound to the FastAPI app with the session, identity and
  notifier dependencies overridden
- factories for the TotalBottles row, moderators and customers
"""

import os
import uuid

# must be set before the app modules build their engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./bottle-ledger-test.db")
os.environ.setdefault("WHATSAPP_ENABLED", "False")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from core.auth import current_active_superuser, current_moderator, current_reader, hash_password
from core.notifier import get_notifier
from db.customer import Customer
from db.database import Base, get_async_session
from db.moderator import Moderator
from db.total_bottles import TOTAL_BOTTLES_ID, TotalBottles
from db.users import User
from main import app


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def send(self, phone, message):
        self.sent.append((phone, message))
        return True


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def admin():
    return User(
        id=uuid.uuid4(),
        email="admin@example.com",
        hashed_password="unused",
        is_active=True,
        is_superuser=True,
        is_verified=True,
        name="Admin",
    )


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_total_bottles(session_maker):
    async def make(total=1000, available=None, used=0, damaged=0, deposit=0):
        async with session_maker() as s:
            tb = TotalBottles(
                id=TOTAL_BOTTLES_ID,
                total_bottles=total,
                available_bottles=total - used if available is None else available,
                used_bottles=used,
                damaged_bottles=damaged,
                deposit_bottles=deposit,
            )
            s.add(tb)
            await s.commit()
            return tb

    return make


@pytest.fixture
def make_moderator(session_maker):
    async def make(name="ali", password="secret", areas=("north",), is_working=True):
        async with session_maker() as s:
            m = Moderator(
                name=name,
                password_hash=hash_password(password),
                areas=list(areas),
                is_working=is_working,
            )
            s.add(m)
            await s.commit()
            return m

    return make


@pytest.fixture
def make_customer(session_maker):
    async def make(customer_id="c001", area="north", bottle_price=100, is_active=True, **kwargs):
        async with session_maker() as s:
            c = Customer(
                customer_id=customer_id,
                name=kwargs.pop("name", f"Customer {customer_id}"),
                address=kwargs.pop("address", "House 1"),
                area=area,
                phone=kwargs.pop("phone", "03001234567"),
                bottle_price=bottle_price,
                is_active=is_active,
                **kwargs,
            )
            s.add(c)
            await s.commit()
            return c

    return make


@pytest.fixture
async def moderator(make_moderator):
    return await make_moderator()


@pytest.fixture
async def customer(make_customer):
    return await make_customer()


@pytest.fixture
def login_as():
    def switch(moderator):
        app.dependency_overrides[current_moderator] = lambda: moderator

    return switch


def _override_session(session_maker):
    async def _session():
        async with session_maker() as s:
            yield s

    return _session


@pytest.fixture
async def client(session_maker, admin, moderator, notifier):
    """Client where the caller is both the admin and the `moderator` fixture."""
    app.dependency_overrides[get_async_session] = _override_session(session_maker)
    app.dependency_overrides[current_active_superuser] = lambda: admin
    app.dependency_overrides[current_reader] = lambda: admin
    app.dependency_overrides[current_moderator] = lambda: moderator
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def cookie_client(session_maker, admin, notifier):
    """Client where moderators authenticate through the real session cookie."""
    app.dependency_overrides[get_async_session] = _override_session(session_maker)
    app.dependency_overrides[current_active_superuser] = lambda: admin
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def issue(client):
    async def _issue(filled_bottles, caps=0):
        resp = await client.post("/bottle-usage/issue", json={"filled_bottles": filled_bottles, "caps": caps})
        return resp

    return _issue


@pytest.fixture
def totals(client):
    async def _totals():
        resp = await client.get("/total-bottles")
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _totals


@pytest.fixture
def usage(client):
    async def _usage():
        resp = await client.get("/bottle-usage")
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _usage
