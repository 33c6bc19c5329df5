from __future__ import annotations

from datetime import timedelta

import httpx
import jwt
import pytest
from fastapi import status

from src.auth.jwt import create_session_token
from src.core.config import settings
from src.core.plans import PlanId
from src.services.github_service import GitHubClient


API_PREFIX = f"{settings.API_PREFIX}/v1"

PROFILE = {
    "id": 583231,
    "login": "octocat",
    "name": "The Octocat",
    "email": "octocat@example.com",
    "avatar_url": "https://avatars.example.com/u/583231",
}


@pytest.fixture
def github_profile(monkeypatch):
    seen_tokens = []

    async def _fetch_user(self):
        seen_tokens.append(self._client.headers.get("Authorization"))
        return dict(PROFILE)

    monkeypatch.setattr(GitHubClient, "fetch_user", _fetch_user)
    return seen_tokens


@pytest.mark.asyncio
async def test_github_login_creates_account_once(client, github_profile):
    first = await client.post(f"{API_PREFIX}/auth/github", json={"access_token": "gho_abc"})
    second = await client.post(f"{API_PREFIX}/auth/github", json={"access_token": "gho_abc"})

    assert first.status_code == status.HTTP_200_OK, first.text
    assert first.json()["account"]["id"] == second.json()["account"]["id"]
    assert first.json()["account"]["plan"] == "free"
    assert github_profile == ["Bearer gho_abc", "Bearer gho_abc"]

    claims = jwt.decode(
        first.json()["access_token"], settings.JWT_SECRET, algorithms=[settings.JWT_ALG]
    )
    assert claims["account_id"] == first.json()["account"]["id"]

    me = await client.get(
        f"{API_PREFIX}/users/me",
        headers={"Authorization": f"Bearer {first.json()['access_token']}"},
    )
    assert me.json()["account"]["username"] == "octocat"


@pytest.mark.asyncio
async def test_github_login_rejects_bad_token(client, monkeypatch):
    async def _unauthorized(self):
        request = httpx.Request("GET", "https://api.github.com/user")
        raise httpx.HTTPStatusError(
            "401 Unauthorized", request=request, response=httpx.Response(401, request=request)
        )

    monkeypatch.setattr(GitHubClient, "fetch_user", _unauthorized)

    response = await client.post(f"{API_PREFIX}/auth/github", json={"access_token": "bad"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["message"] == "GitHub authentication failed"


@pytest.mark.asyncio
async def test_disabled_account_cannot_log_in(client, make_account, github_profile):
    await make_account(PlanId.FREE, external_id=str(PROFILE["id"]), is_disabled=True)

    response = await client.post(f"{API_PREFIX}/auth/github", json={"access_token": "gho_abc"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_expired_session_token_is_rejected(client, make_account):
    account = await make_account(PlanId.FREE)
    token = create_session_token(account.id, expires_in=timedelta(seconds=-5))

    response = await client.get(
        f"{API_PREFIX}/users/me", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["message"] == "Invalid token"
