"""Repository for survey responses."""
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.survey_response import SurveyResponse


class SurveyRepo:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(
        self,
        account_id: UUID,
        *,
        role: str,
        team_size: str,
        doc_frequency: str,
        important_docs: List[str],
        would_pay: str,
        feedback: Optional[str] = None,
        email: Optional[str] = None,
    ) -> SurveyResponse:
        response = SurveyResponse(
            account_id=account_id,
            role=role,
            team_size=team_size,
            doc_frequency=doc_frequency,
            important_docs=list(important_docs),
            would_pay=would_pay,
            feedback=feedback or None,
            email=email or None,
        )
        self.session.add(response)
        await self.session.flush()
        return response
