"""Endpoints for the signed-in account."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_current_account, get_db_session
from src.core.config import settings
from src.core.plans import Channel
from src.db.models.account import Account
from src.schemas.account import AccountRead
from src.services.entitlements import EntitlementEvaluator


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
async def read_me(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
):
    evaluator = EntitlementEvaluator.from_settings(db, settings)
    web = await evaluator.evaluate_account(account, Channel.WEB)
    api = await evaluator.evaluate_account(account, Channel.API)
    return {
        "account": AccountRead.model_validate(account).model_dump(mode="json"),
        "usage": {"web": web.as_dict(), "api": api.as_dict()},
    }
