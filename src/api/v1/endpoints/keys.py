"""Endpoints for managing API keys."""
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_current_account, get_db_session
from src.core.config import settings
from src.core.exceptions import AppError
from src.db.models.account import Account
from src.schemas.api_key import ApiKeyCreate, ApiKeyCreated, ApiKeyRead
from src.services.api_keys import ApiKeyGate


router = APIRouter(prefix="/keys", tags=["keys"])


class ApiKeyNotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "api_key_not_found"
    message = "API key not found"


@router.get("", response_model=List[ApiKeyRead])
async def list_keys(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
):
    return await ApiKeyGate.from_settings(db, settings).list_keys(account)


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
async def create_key(
    body: ApiKeyCreate,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
):
    row, plaintext = await ApiKeyGate.from_settings(db, settings).issue(account, body.name)
    return ApiKeyCreated(
        id=row.id,
        name=row.name,
        key_prefix=row.key_prefix,
        created_at=row.created_at,
        last_used_at=row.last_used_at,
        key=plaintext,
    )


@router.delete("/{key_id}")
async def delete_key(
    key_id: UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
):
    if not await ApiKeyGate.from_settings(db, settings).revoke(account, key_id):
        raise ApiKeyNotFound()
    return {"deleted": True}
