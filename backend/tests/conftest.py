"""
Pytest configuration and fixtures for the backend tests.
"""
import os

# settings are read at import time, so the test environment goes first
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ["LOG_TO_FILE"] = "false"
os.environ["RATE_LIMIT_MAX_REQUESTS"] = "10000"

import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from faker import Faker
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from main import app
from core.security import utcnow
from db.base import Base
from db.session import get_db_session

# Initialize Faker for test data generation
fake = Faker()


@dataclass
class StoredToken:
    user_id: str
    token: str
    expires_at: datetime
    revoked: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)


class InMemoryTokenStore:
    """TokenStore kept in a dict; a failed transaction restores the revoked flags."""

    def __init__(self):
        self.tokens: Dict[str, StoredToken] = {}

    @asynccontextmanager
    async def transaction(self):
        snapshot = {key: (tok.revoked, tok) for key, tok in self.tokens.items()}
        try:
            yield self
        except Exception:
            self.tokens = {key: tok for key, (_, tok) in snapshot.items()}
            for revoked, tok in snapshot.values():
                tok.revoked = revoked
            raise

    async def find_by_value(self, value: str) -> Optional[StoredToken]:
        return self.tokens.get(value)

    async def insert(self, user_id: str, value: str, expires_at: datetime) -> StoredToken:
        token = StoredToken(user_id=user_id, token=value, expires_at=expires_at)
        self.tokens[value] = token
        return token

    async def mark_revoked(self, token_id: str) -> bool:
        for token in self.tokens.values():
            if token.id == token_id and not token.revoked:
                token.revoked = True
                return True
        return False

    async def revoke_all_for_user(self, user_id: str) -> int:
        count = 0
        for token in self.tokens.values():
            if token.user_id == user_id and not token.revoked:
                token.revoked = True
                count += 1
        return count

    def active_for(self, user_id: str) -> List[StoredToken]:
        return [t for t in self.tokens.values() if t.user_id == user_id and not t.revoked]


class InMemoryMealStore:
    def __init__(self, meals: Optional[Dict[str, List[bool]]] = None):
        self.meals = meals or {}

    async def list_diet_flags(self, user_id: str) -> List[bool]:
        return list(self.meals.get(user_id, []))


class FakeClock:
    """Controllable clock for expiry tests."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> None:
        self.now = self.now + delta


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """A fresh SQLite file database per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async client talking to the app in-process, one session per request."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def user_data() -> dict:
    return {
        "name": fake.name(),
        "email": fake.unique.email(),
        "password": fake.password(length=12),
    }


async def register(client: AsyncClient, data: dict) -> dict:
    response = await client.post("/v1/users", json=data)
    assert response.status_code == 201, response.text
    return response.json()["user"]


async def login(client: AsyncClient, data: dict) -> dict:
    response = await client.post("/v1/sessions", json={"email": data["email"], "password": data["password"]})
    assert response.status_code == 200, response.text
    return response.json()


def bearer(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest_asyncio.fixture
async def registered_user(async_client: AsyncClient, user_data: dict) -> dict:
    user = await register(async_client, user_data)
    return {**user_data, "id": user["id"]}


@pytest_asyncio.fixture
async def tokens(async_client: AsyncClient, registered_user: dict) -> dict:
    return await login(async_client, registered_user)


@pytest.fixture
def auth_headers(tokens: dict) -> dict:
    return bearer(tokens)
