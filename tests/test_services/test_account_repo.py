from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import func, select

from src.core.plans import PlanId
from src.db.models.account import Account
from src.repositories.account_repo import AccountRepo, IdentityProfile

PROFILE = IdentityProfile(
    external_id="583231",
    username="octocat",
    name="The Octocat",
    email="octocat@example.com",
    avatar_url="https://avatars.example.com/u/583231",
)


@pytest.mark.asyncio
async def test_get_or_create_is_idempotent(db_session):
    repo = AccountRepo(db_session)

    first = await repo.get_or_create(PROFILE)
    second = await repo.get_or_create(PROFILE)

    assert first.id == second.id
    assert first.plan == "free"
    assert first.api_calls_limit == 0
    total = await db_session.execute(select(func.count()).select_from(Account))
    assert total.scalar_one() == 1


@pytest.mark.asyncio
async def test_concurrent_first_logins_share_one_account(session_factory):
    async def login():
        async with session_factory() as session:
            account = await AccountRepo(session).get_or_create(PROFILE)
            await session.commit()
            return account.id

    ids = await asyncio.gather(*(login() for _ in range(5)))

    assert len(set(ids)) == 1
    async with session_factory() as session:
        total = await session.execute(select(func.count()).select_from(Account))
        assert total.scalar_one() == 1


@pytest.mark.asyncio
async def test_get_or_create_does_not_overwrite_plan(db_session, make_account):
    existing = await make_account(PlanId.BUNDLE, external_id=PROFILE.external_id)

    account = await AccountRepo(db_session).get_or_create(PROFILE)

    assert account.id == existing.id
    assert account.plan == "bundle"
