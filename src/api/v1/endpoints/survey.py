"""Onboarding survey submission."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_current_account, get_db_session
from src.db.models.account import Account
from src.repositories.account_repo import AccountRepo
from src.repositories.survey_repo import SurveyRepo
from src.schemas.survey import SurveyCreate


router = APIRouter(prefix="/survey", tags=["survey"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_survey(
    body: SurveyCreate,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
):
    response = await SurveyRepo(db).add(account.id, **body.model_dump())
    await AccountRepo(db).mark_survey_completed(account.id)
    return {"success": True, "id": str(response.id)}
