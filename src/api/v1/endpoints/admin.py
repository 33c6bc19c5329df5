"""Operator-only reporting."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_db_session, require_admin
from src.db.models.account import Account
from src.services.metrics import MetricsService


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/metrics")
async def metrics(
    _admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return await MetricsService(db).report()
