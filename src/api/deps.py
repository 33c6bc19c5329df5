"""Shared FastAPI dependencies."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.jwt import bearer_token, require_auth
from src.core.config import settings
from src.core.exceptions import AccountNotFound, AuthenticationFailure, PermissionDenied
from src.db.models.account import Account
from src.db.session import get_db as get_db_session
from src.repositories.account_repo import AccountRepo
from src.services.api_keys import ApiKeyGate
from src.services.documents import DocumentGenerator, RepositoryDocumentGenerator
from src.services.entitlements import EntitlementEvaluator
from src.services.generation import GenerationOrchestrator
from src.services.usage_recorder import UsageRecorder

__all__ = [
    "get_api_account",
    "get_current_account",
    "get_db_session",
    "get_document_generator",
    "get_orchestrator",
    "require_admin",
]


async def get_current_account(
    auth: Dict[str, Any] = Depends(require_auth),
    db: AsyncSession = Depends(get_db_session),
) -> Account:
    """Resolve the web session to a live account."""

    account = await AccountRepo(db).get(auth["account_id"])
    if account is None:
        raise AccountNotFound()
    if account.is_disabled:
        raise AuthenticationFailure()
    return account


async def get_api_account(
    authorization: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> Account:
    """Resolve an API key bearer credential to its account."""

    try:
        credential = bearer_token(authorization)
    except AuthenticationFailure as exc:
        raise AuthenticationFailure(
            f"Missing or invalid Authorization header. Use: Bearer {settings.api_keys.prefix}..."
        ) from exc
    return await ApiKeyGate.from_settings(db, settings).authenticate(credential)


async def require_admin(account: Account = Depends(get_current_account)) -> Account:
    if not account.is_admin:
        raise PermissionDenied("Unauthorized")
    return account


def get_document_generator() -> DocumentGenerator:
    return RepositoryDocumentGenerator()


def get_orchestrator(
    db: AsyncSession = Depends(get_db_session),
    generator: DocumentGenerator = Depends(get_document_generator),
) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        EntitlementEvaluator.from_settings(db, settings),
        UsageRecorder.from_settings(db, settings),
        generator,
        timeout_seconds=settings.GENERATION_TIMEOUT_SECONDS,
    )
