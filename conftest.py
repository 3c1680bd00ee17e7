import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["NOTIFICATION_URL"] = ""

import pytest
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import AsyncAdaptedQueuePool

import app.models  # noqa: F401  registers every table on Base.metadata
from app.main import app
from app.db.session import get_db
from app.models.base import Base
from app.models.user import User
from app.core.auth_utils import CallerContext
from app.core.security import create_access_token, hash_password
from app.core.config import settings
from app.core.enums import UserRole

TEST_PASSWORD = "correct-horse-battery"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@dataclass
class SeededUser:
    id: int
    username: str
    role: UserRole
    token: str

    @property
    def caller(self) -> CallerContext:
        return CallerContext(user_id=self.id, role=self.role)

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite file per test.

    Every transaction starts with BEGIN IMMEDIATE, so concurrent units of work
    queue on the database write lock the way row locks queue them on
    PostgreSQL.
    """
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'freight.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=10,
        max_overflow=0,
        pool_timeout=60,
        connect_args={"timeout": 60},
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA synchronous=OFF")
        cursor.close()

    @event.listens_for(test_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def users(session_factory):
    """Two customers, one staff member and one admin."""
    specs = [
        ("customer", "alice", UserRole.CUSTOMER),
        ("other_customer", "bob", UserRole.CUSTOMER),
        ("staff", "sam", UserRole.STAFF),
        ("admin", "ada", UserRole.ADMIN),
    ]
    seeded = {}
    async with session_factory() as session:
        rows = []
        for key, username, role in specs:
            user = User(
                username=username,
                email=f"{username}@example.com",
                password_hash=TEST_PASSWORD_HASH,
                role=role,
            )
            session.add(user)
            rows.append((key, user))
        await session.commit()
        for key, user in rows:
            seeded[key] = SeededUser(
                id=user.id,
                username=user.username,
                role=user.role,
                token=create_access_token(str(user.id), user.role),
            )
    return seeded


@pytest.fixture
def customer(users):
    return users["customer"]


@pytest.fixture
def other_customer(users):
    return users["other_customer"]


@pytest.fixture
def staff(users):
    return users["staff"]


@pytest.fixture
def admin(users):
    return users["admin"]


@pytest.fixture
async def client(session_factory):
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def quote_request_payload():
    return {
        "service_type": "Air Freight",
        "pickup_location": "Shenzhen Factory, Building 7",
        "destinations": [
            {"warehouse": "AMZ-LAX9", "address": "Los Angeles, CA", "cartons": 40, "weight": 600.0, "volume": 3.2},
            {"warehouse": "AMZ-ONT8", "address": "Ontario, CA", "cartons": 20, "weight": 400.0, "volume": 1.8},
        ],
        "cargo_ready_date": (date.today() + timedelta(days=10)).isoformat(),
        "special_requirements": "Fragile",
    }


@pytest.fixture
def quote_payload():
    def _build(request_id: str, **overrides):
        data = {
            "request_id": request_id,
            "freight_cost": 2500.0,
            "insurance_cost": 100.0,
            "additional_charges": [{"description": "Customs brokerage", "amount": 150.0}],
            "discounts": [{"description": "Repeat customer", "amount": 50.0}],
            "valid_until": (datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
        }
        data.update(overrides)
        return data

    return _build


@pytest.fixture
def create_quote_request(client, customer, quote_request_payload):
    async def _create(owner=None, **overrides):
        owner = owner or customer
        data = dict(quote_request_payload, **overrides)
        response = await client.post("/quotes/requests", json=data, headers=owner.headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def create_quote(client, staff, quote_payload):
    async def _create(request_id: str, **overrides):
        response = await client.post("/quotes", json=quote_payload(request_id, **overrides), headers=staff.headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def app_settings():
    return settings


@pytest.fixture
def test_password():
    return TEST_PASSWORD


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow"
    )
    config.addinivalue_line(
        "markers", "conversion: marks tests related to quote conversion"
    )
    config.addinivalue_line(
        "markers", "rate_limit: marks tests related to rate limiting"
    )
    config.addinivalue_line(
        "markers", "audit: marks tests related to audit logging"
    )
    config.addinivalue_line(
        "markers", "idempotency: marks tests related to idempotency"
    )
