"""Open a pull request that adds a generated document to the repository."""
from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_current_account, get_db_session
from src.core.config import settings
from src.core.exceptions import AppError, AuthenticationFailure, InvalidRequest
from src.core.plans import DocType, PostAction
from src.core.timeutil import utcnow
from src.db.models.account import Account
from src.schemas.generation import PullRequestCreate
from src.services.github_service import GitHubClient, parse_repo_url
from src.services.limits import check_rate_limit
from src.services.prompts import DOC_FILENAMES
from src.services.usage_recorder import UsageRecorder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pull-requests", tags=["pull-requests"])


class PullRequestFailed(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "pull_request_failed"
    message = "Failed to create pull request"


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_pull_request(
    body: PullRequestCreate,
    github_token: str | None = Header(default=None, alias="X-GitHub-Token"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db_session),
):
    if not github_token:
        raise AuthenticationFailure("A GitHub token is required to open pull requests")
    await check_rate_limit(str(account.id))

    ref = parse_repo_url(body.repo_url)
    path = body.path or DOC_FILENAMES.get(body.doc_type)
    if not path:
        raise InvalidRequest(f"A target path is required for {body.doc_type.value}")

    label = body.doc_type.value.replace("_", " ")
    branch = f"docs/{body.doc_type.value}-{int(utcnow().timestamp())}"
    content = body.content
    if body.doc_type is DocType.CLASS_DIAGRAM and not content.lstrip().startswith("```"):
        content = f"# Class diagram\n\n```mermaid\n{content.strip()}\n```\n"

    try:
        async with GitHubClient(github_token) as github:
            pull = await github.open_pull_request(
                ref,
                path=path,
                content=content,
                branch=branch,
                title=f"docs: add {label}",
                body=f"Adds a generated {label} document at `{path}`.",
            )
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "Pull request on %s failed with %s", ref.full_name, exc.response.status_code
        )
        if exc.response.status_code in (401, 403, 404):
            raise PullRequestFailed(
                "GitHub rejected the request. Check the token's repository permissions."
            ) from exc
        raise PullRequestFailed() from exc
    except httpx.HTTPError as exc:
        logger.warning("Pull request on %s failed: %s", ref.full_name, exc)
        raise PullRequestFailed() from exc

    tracked = None
    if body.generation_id is not None:
        result = await UsageRecorder.from_settings(db, settings).track_post_action(
            account.id, PostAction.PR, generation_id=body.generation_id
        )
        tracked = result.tracked

    return {"success": True, "tracked": tracked, **pull}
