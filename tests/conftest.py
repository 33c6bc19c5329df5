"""
Pytest configuration for the application
"""
import os
from itertools import count
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional
from uuid import UUID

import httpx
import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from pydantic import SecretStr
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
)

from src.api.deps import get_document_generator
from src.auth.jwt import create_session_token
from src.core.config import settings
from src.core.plans import DEFAULT_PLAN_TABLE, PlanId
from src.db import session as db_session_module
from src.db.base import Base
from src.db.models.account import Account
from src.db.models.generation import GenerationEvent
from src.main import create_application
from src.services import limits as limits_service
from src.services.documents import GenerationRequest


# Set test environment and override runtime settings to avoid external deps
os.environ["ENV"] = "test"
settings.ENV = "test"
settings.JWT_SECRET = "test-secret"
settings.DATABASE_URI = "sqlite+aiosqlite:///./test_app.db"

WEBHOOK_SECRET = "whsec_test_secret"
PRICE_PLANS = {
    "price_web": PlanId.WEB_UNLIMITED,
    "price_api": PlanId.API_METERED,
    "price_bundle": PlanId.BUNDLE,
}


class FakeRedis:
    """Minimal async Redis stub for rate limiting and idempotency tests."""

    def __init__(self) -> None:
        self.store: Dict[str, int | str] = {}

    async def incr(self, key: str) -> int:
        current = int(self.store.get(key, 0)) + 1
        self.store[key] = current
        return current

    async def expire(self, key: str, seconds: int) -> None:
        self.store.setdefault(f"{key}:ttl", seconds)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool:
        if nx and key in self.store:
            return False
        self.store[key] = value
        if ex is not None:
            self.store[f"{key}:ttl"] = ex
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.store.pop(f"{key}:ttl", None)
        return removed

    async def aclose(self) -> None:
        return None


class FakeDocumentGenerator:
    """Records requests; returns ``content`` or raises ``error``."""

    def __init__(self) -> None:
        self.calls: List[GenerationRequest] = []
        self.content = "# Generated\n\nHello."
        self.error: Optional[BaseException] = None

    async def generate(self, request: GenerationRequest) -> str:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self.content


@pytest.fixture(autouse=True)
def billing_settings(monkeypatch):
    monkeypatch.setattr(settings.billing, "price_plans", dict(PRICE_PLANS))
    monkeypatch.setattr(settings.billing, "stripe_webhook_secret", SecretStr(WEBHOOK_SECRET))
    monkeypatch.setattr(settings.billing, "stripe_secret_key", SecretStr("sk_test_123"))


@pytest_asyncio.fixture
async def test_db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    A file-backed SQLite database per test.

    pysqlite's implicit transaction handling is switched off and every
    transaction starts with ``BEGIN IMMEDIATE`` so concurrent writers
    queue on the database lock instead of failing on upgrade.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine, monkeypatch) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine, also used by ``get_db``."""

    factory = async_sessionmaker(test_db_engine, expire_on_commit=False)
    monkeypatch.setattr(db_session_module, "_engine", test_db_engine)
    monkeypatch.setattr(db_session_module, "_session_factory", factory)
    return factory


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis(monkeypatch) -> FakeRedis:
    """Patch the limits module to use an in-memory Redis stub."""

    fake = FakeRedis()
    monkeypatch.setattr(limits_service, "_redis_client", fake, raising=False)
    yield fake
    monkeypatch.setattr(limits_service, "_redis_client", None, raising=False)


@pytest.fixture
def fake_generator() -> FakeDocumentGenerator:
    return FakeDocumentGenerator()


@pytest_asyncio.fixture
async def test_app(session_factory, fake_redis, fake_generator) -> AsyncGenerator[FastAPI, None]:
    """
    Create a FastAPI test application.
    """
    app = create_application()
    app.dependency_overrides[get_document_generator] = lambda: fake_generator
    async with LifespanManager(app):
        yield app


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Create an async HTTP client for testing.
    """
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def make_account(session_factory) -> Callable[..., Any]:
    """Insert and commit an account whose plan fields match ``plan``."""

    sequence = count(1)

    async def _make(plan: PlanId = PlanId.FREE, **overrides: Any) -> Account:
        limits = DEFAULT_PLAN_TABLE[plan]
        values: Dict[str, Any] = {
            "external_id": f"gh-{next(sequence)}",
            "username": "octocat",
            "plan": plan.value,
            "is_pro": limits.is_pro,
            "api_calls_limit": limits.api_limit,
        }
        values.update(overrides)
        account = Account(**values)
        async with session_factory() as session:
            session.add(account)
            await session.commit()
        return account

    return _make


@pytest.fixture
def auth_header() -> Callable[[UUID], Dict[str, str]]:
    def _build(account_id: UUID) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_session_token(account_id)}"}

    return _build


@pytest.fixture
def load_account(session_factory) -> Callable[[UUID], Any]:
    async def _load(account_id: UUID) -> Account:
        async with session_factory() as session:
            return await session.get(Account, account_id)

    return _load


@pytest.fixture
def count_generations(session_factory) -> Callable[[UUID], Any]:
    async def _count(account_id: UUID) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(GenerationEvent)
                .where(GenerationEvent.account_id == account_id)
            )
            return int(result.scalar_one())

    return _count
