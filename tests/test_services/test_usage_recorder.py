from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from src.core.exceptions import AccountNotFound, InvalidRequest
from src.core.plans import Channel, DocType, PlanId, PostAction
from src.db.models.account import Account
from src.db.models.generation import GenerationEvent
from src.repositories.generation_repo import GenerationRepo
from src.services.usage_recorder import UsageRecorder

REPO = "https://github.com/octo/widgets"
WINDOW = timedelta(days=30)


@pytest.mark.asyncio
async def test_concurrent_api_records_all_land(session_factory, make_account, load_account):
    account = await make_account(PlanId.API_METERED)

    async def record_one() -> None:
        async with session_factory() as session:
            recorder = UsageRecorder(session, api_window=WINDOW)
            await recorder.record_generation(account.id, DocType.README, REPO, Channel.API)
            await session.commit()

    await asyncio.gather(*(record_one() for _ in range(50)))

    refreshed = await load_account(account.id)
    assert refreshed.api_calls_used == 50

    async with session_factory() as session:
        rows = await session.execute(
            select(func.count()).select_from(GenerationEvent).where(
                GenerationEvent.account_id == account.id
            )
        )
        assert rows.scalar_one() == 50


@pytest.mark.asyncio
async def test_web_record_leaves_counter_alone(db_session, make_account):
    account = await make_account(PlanId.BUNDLE)
    recorder = UsageRecorder(db_session, api_window=WINDOW)

    event = await recorder.record_generation(
        account.id, DocType.CHANGELOG, REPO, Channel.WEB, duration_ms=1200
    )

    stored = await db_session.get(Account, account.id, populate_existing=True)
    assert stored.api_calls_used == 0
    assert event.id is not None
    assert event.channel == "web"
    assert event.duration_ms == 1200
    assert not (event.copied or event.downloaded or event.pr_created)


@pytest.mark.asyncio
async def test_api_record_after_window_restarts_counter(db_session, make_account):
    started = datetime.now(timezone.utc) - timedelta(days=45)
    account = await make_account(
        PlanId.API_METERED, api_calls_used=90, api_calls_reset_at=started
    )
    recorder = UsageRecorder(db_session, api_window=WINDOW)
    now = datetime.now(timezone.utc)

    await recorder.record_generation(account.id, DocType.README, REPO, Channel.API, now=now)

    stored = await db_session.get(Account, account.id, populate_existing=True)
    assert stored.api_calls_used == 1
    reset_at = stored.api_calls_reset_at.replace(tzinfo=timezone.utc)
    assert abs((reset_at - now).total_seconds()) < 1


@pytest.mark.asyncio
async def test_api_record_for_unknown_account_raises(db_session):
    recorder = UsageRecorder(db_session, api_window=WINDOW)
    with pytest.raises(AccountNotFound):
        await recorder.record_generation(uuid4(), DocType.README, REPO, Channel.API)


@pytest.mark.asyncio
async def test_track_by_generation_id_sets_flag(db_session, make_account):
    account = await make_account(PlanId.FREE)
    recorder = UsageRecorder(db_session, api_window=WINDOW)
    event = await recorder.record_generation(account.id, DocType.README, REPO, Channel.WEB)

    result = await recorder.track_post_action(
        account.id, PostAction.DOWNLOAD, generation_id=event.id
    )

    assert result.tracked
    assert result.generation_id == event.id
    stored = await db_session.get(GenerationEvent, event.id, populate_existing=True)
    assert stored.downloaded is True
    assert stored.copied is False


@pytest.mark.asyncio
async def test_track_by_target_uses_most_recent_match(db_session, make_account):
    account = await make_account(PlanId.WEB_UNLIMITED)
    ledger = GenerationRepo(db_session)
    now = datetime.now(timezone.utc)
    older = await ledger.add(
        account.id, DocType.README, REPO, Channel.WEB, created_at=now - timedelta(minutes=5)
    )
    newer = await ledger.add(account.id, DocType.README, REPO, Channel.WEB, created_at=now)
    recorder = UsageRecorder(db_session, api_window=WINDOW)

    result = await recorder.track_post_action(
        account.id, PostAction.COPY, target_ref=REPO, doc_type=DocType.README
    )

    assert result.generation_id == newer.id
    assert (await db_session.get(GenerationEvent, older.id, populate_existing=True)).copied is False
    assert (await db_session.get(GenerationEvent, newer.id, populate_existing=True)).copied is True


@pytest.mark.asyncio
async def test_track_never_touches_another_accounts_event(db_session, make_account):
    owner = await make_account(PlanId.FREE)
    other = await make_account(PlanId.FREE)
    recorder = UsageRecorder(db_session, api_window=WINDOW)
    event = await recorder.record_generation(owner.id, DocType.README, REPO, Channel.WEB)

    result = await recorder.track_post_action(other.id, PostAction.PR, generation_id=event.id)

    assert not result.tracked
    assert result.reason == "no_matching_generation"
    assert (await db_session.get(GenerationEvent, event.id, populate_existing=True)).pr_created is False


@pytest.mark.asyncio
async def test_track_without_match_is_a_noop(db_session, make_account):
    account = await make_account(PlanId.FREE)
    recorder = UsageRecorder(db_session, api_window=WINDOW)

    result = await recorder.track_post_action(
        account.id, PostAction.COPY, target_ref=REPO, doc_type=DocType.LICENSE
    )

    assert result.tracked is False


@pytest.mark.asyncio
async def test_track_requires_an_identifier(db_session, make_account):
    account = await make_account(PlanId.FREE)
    recorder = UsageRecorder(db_session, api_window=WINDOW)

    with pytest.raises(InvalidRequest):
        await recorder.track_post_action(account.id, PostAction.COPY, target_ref=REPO)
