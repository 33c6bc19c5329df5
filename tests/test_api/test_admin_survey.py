from __future__ import annotations

import pytest
from fastapi import status

from src.core.config import settings
from src.core.plans import PlanId


API_PREFIX = f"{settings.API_PREFIX}/v1"

SURVEY = {
    "role": "Maintainer",
    "team_size": "2-5",
    "doc_frequency": "weekly",
    "important_docs": ["readme", "changelog"],
    "would_pay": "yes",
    "feedback": "More templates please",
}


@pytest.mark.asyncio
async def test_metrics_require_admin(client, make_account, auth_header):
    account = await make_account(PlanId.FREE)

    response = await client.get(f"{API_PREFIX}/admin/metrics", headers=auth_header(account.id))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["message"] == "Unauthorized"


@pytest.mark.asyncio
async def test_admin_sees_generation_and_survey_totals(client, make_account, auth_header):
    admin = await make_account(PlanId.FREE, is_admin=True)
    member = await make_account(PlanId.BUNDLE)

    generated = await client.post(
        f"{API_PREFIX}/generations",
        json={"doc_type": "readme", "repo_url": "https://github.com/acme/widgets"},
        headers=auth_header(member.id),
    )
    assert generated.status_code == status.HTTP_200_OK, generated.text
    surveyed = await client.post(
        f"{API_PREFIX}/survey", json=SURVEY, headers=auth_header(member.id)
    )
    assert surveyed.status_code == status.HTTP_201_CREATED

    response = await client.get(f"{API_PREFIX}/admin/metrics", headers=auth_header(admin.id))

    assert response.status_code == status.HTTP_200_OK
    report = response.json()
    assert report["totals"]["accounts"] == 2
    assert report["totals"]["paid_accounts"] == 1
    assert report["generations_by_doc_type"] == {"readme": 1}
    assert report["generations_by_channel"] == {"web": 1}
    assert report["survey_would_pay"] == {"yes": 1}


@pytest.mark.asyncio
async def test_survey_marks_account(client, make_account, auth_header, load_account):
    account = await make_account(PlanId.FREE)

    response = await client.post(
        f"{API_PREFIX}/survey", json=SURVEY, headers=auth_header(account.id)
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["success"] is True
    stored = await load_account(account.id)
    assert stored.survey_completed is True


@pytest.mark.asyncio
async def test_survey_rejects_oversized_feedback(client, make_account, auth_header, load_account):
    account = await make_account(PlanId.FREE)

    response = await client.post(
        f"{API_PREFIX}/survey",
        json={**SURVEY, "feedback": "x" * 501},
        headers=auth_header(account.id),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
    stored = await load_account(account.id)
    assert stored.survey_completed is False
