"""API-key channel: programmatic generation and usage status."""
from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_api_account, get_db_session, get_orchestrator
from src.core.config import settings
from src.core.plans import Channel, DocType
from src.db.models.account import Account
from src.schemas.generation import GenerationCreate
from src.services.documents import GenerationRequest
from src.services.entitlements import EntitlementEvaluator
from src.services.generation import GenerationOrchestrator
from src.services.limits import check_rate_limit


router = APIRouter(prefix="/external", tags=["external"])


@router.get("")
async def describe_api():
    """Self-description for programmatic clients; no credentials needed."""

    prefix = f"{settings.API_PREFIX}/v1/external"
    key_hint = f"Bearer {settings.api_keys.prefix}..."
    return {
        "name": settings.PROJECT_NAME,
        "version": "v1",
        "endpoints": {
            f"POST {prefix}/generate": {
                "description": "Generate documentation for a GitHub repository",
                "authentication": key_hint,
                "query": {"format": "json | markdown"},
                "body": {
                    "repo_url": "https://github.com/owner/repo",
                    "doc_type": " | ".join(doc_type.value for doc_type in DocType),
                    "file_path": "required for comments",
                },
            },
            f"GET {prefix}/status": {
                "description": "Current plan, API usage and window reset",
                "authentication": key_hint,
            },
        },
    }


@router.post("/generate")
async def external_generate(
    body: GenerationCreate,
    format: Literal["json", "markdown"] = Query(default="json"),
    account: Account = Depends(get_api_account),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    await check_rate_limit(f"api:{account.id}")

    outcome = await orchestrator.run(
        account.id,
        Channel.API,
        GenerationRequest(
            doc_type=body.doc_type,
            repo_url=body.repo_url,
            file_path=body.file_path,
            license_id=body.license_id,
        ),
    )
    usage = outcome.entitlement
    if format == "markdown":
        return PlainTextResponse(
            outcome.content,
            media_type="text/markdown",
            headers={
                "X-Generation-Id": str(outcome.generation_id),
                "X-Usage-Used": str(usage.usage),
                "X-Usage-Limit": str(usage.limit),
            },
        )
    return {
        "success": True,
        "doc_type": body.doc_type.value,
        "content": outcome.content,
        "generation_id": outcome.generation_id,
        "duration_ms": outcome.duration_ms,
        "usage": {"used": usage.usage, "limit": usage.limit, "remaining": usage.remaining},
    }


@router.get("/status")
async def external_status(
    account: Account = Depends(get_api_account),
    db: AsyncSession = Depends(get_db_session),
):
    entitlement = await EntitlementEvaluator.from_settings(db, settings).evaluate_account(
        account, Channel.API
    )
    return {
        "plan": entitlement.plan.value,
        "is_pro": account.is_pro,
        "usage": {
            "used": entitlement.usage,
            "limit": entitlement.limit,
            "remaining": entitlement.remaining,
            "resets_at": entitlement.resets_at.isoformat() if entitlement.resets_at else None,
        },
    }
