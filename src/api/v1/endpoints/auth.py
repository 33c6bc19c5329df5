"""Sign-in: exchange a GitHub token for a session token."""
from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_db_session
from src.auth.jwt import create_session_token
from src.core.exceptions import AuthenticationFailure
from src.repositories.account_repo import AccountRepo, IdentityProfile
from src.schemas.account import AccountRead, GitHubLogin, SessionRead
from src.services.github_service import GitHubClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/github", response_model=SessionRead)
async def github_login(
    body: GitHubLogin,
    db: AsyncSession = Depends(get_db_session),
):
    try:
        async with GitHubClient(body.access_token) as github:
            profile = await github.fetch_user()
    except httpx.HTTPError as exc:
        logger.info("GitHub login rejected: %s", exc)
        raise AuthenticationFailure("GitHub authentication failed") from exc

    if not profile.get("id"):
        raise AuthenticationFailure("GitHub authentication failed")

    account = await AccountRepo(db).get_or_create(
        IdentityProfile(
            external_id=str(profile["id"]),
            username=profile.get("login"),
            name=profile.get("name"),
            email=profile.get("email"),
            avatar_url=profile.get("avatar_url"),
        )
    )
    if account.is_disabled:
        raise AuthenticationFailure("GitHub authentication failed")
    return SessionRead(
        access_token=create_session_token(account.id),
        account=AccountRead.model_validate(account),
    )
