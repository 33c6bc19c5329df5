"""Web-channel generation and follow-up action tracking."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_current_account, get_db_session, get_orchestrator
from src.core.config import settings
from src.core.plans import Channel
from src.db.models.account import Account
from src.schemas.generation import (
    GenerationCreate,
    GenerationRead,
    TrackActionCreate,
    TrackActionRead,
)
from src.services.documents import GenerationRequest
from src.services.generation import GenerationOrchestrator
from src.services.limits import check_rate_limit, ensure_idempotent, release_idempotency
from src.services.usage_recorder import UsageRecorder


router = APIRouter(prefix="/generations", tags=["generations"])


@router.post("", response_model=GenerationRead)
async def create_generation(
    body: GenerationCreate,
    account: Account = Depends(get_current_account),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    await check_rate_limit(str(account.id))
    await ensure_idempotent(str(account.id), idempotency_key)

    try:
        outcome = await orchestrator.run(
            account.id,
            Channel.WEB,
            GenerationRequest(
                doc_type=body.doc_type,
                repo_url=body.repo_url,
                file_path=body.file_path,
                license_id=body.license_id,
            ),
        )
    except Exception:
        await release_idempotency(str(account.id), idempotency_key)
        raise
    return GenerationRead(
        content=outcome.content,
        generation_id=outcome.generation_id,
        duration_ms=outcome.duration_ms,
        usage=outcome.entitlement.as_dict(),
    )


@router.post("/track", response_model=TrackActionRead)
async def track_action(
    body: TrackActionCreate,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
):
    recorder = UsageRecorder.from_settings(db, settings)
    result = await recorder.track_post_action(
        account.id,
        body.action,
        generation_id=body.generation_id,
        target_ref=body.target_ref,
        doc_type=body.doc_type,
    )
    return TrackActionRead(
        tracked=result.tracked, generation_id=result.generation_id, reason=result.reason
    )
