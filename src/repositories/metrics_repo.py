"""Read-only aggregate queries over accounts and the generation ledger."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from sqlalchemy import case, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.account import Account
from src.db.models.generation import GenerationEvent
from src.db.models.survey_response import SurveyResponse


class MetricsRepo:
    """Reporting queries. Nothing here writes."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _scalar_int(self, stmt) -> int:
        result = await self.session.execute(stmt)
        return int(result.scalar_one() or 0)

    async def _grouped_counts(self, column) -> Dict[str, int]:
        result = await self.session.execute(
            select(column, func.count()).group_by(column)
        )
        return {str(key): int(count) for key, count in result.all()}

    async def account_totals(self) -> Dict[str, int]:
        total = await self._scalar_int(select(func.count()).select_from(Account))
        paid = await self._scalar_int(
            select(func.count()).select_from(Account).where(Account.is_pro.is_(True))
        )
        generated = await self._scalar_int(
            select(func.count(distinct(GenerationEvent.account_id)))
        )
        return {"accounts": total, "paid_accounts": paid, "accounts_with_generations": generated}

    async def total_generations(self) -> int:
        return await self._scalar_int(select(func.count()).select_from(GenerationEvent))

    async def accounts_by_plan(self) -> Dict[str, int]:
        return await self._grouped_counts(Account.plan)

    async def generations_by_doc_type(self) -> Dict[str, int]:
        return await self._grouped_counts(GenerationEvent.doc_type)

    async def generations_by_channel(self) -> Dict[str, int]:
        return await self._grouped_counts(GenerationEvent.channel)

    async def average_duration_by_doc_type(self) -> Dict[str, float]:
        result = await self.session.execute(
            select(GenerationEvent.doc_type, func.avg(GenerationEvent.duration_ms))
            .where(GenerationEvent.duration_ms.is_not(None))
            .group_by(GenerationEvent.doc_type)
        )
        return {doc_type: round(float(avg), 1) for doc_type, avg in result.all()}

    async def active_accounts_since(self, since: datetime) -> int:
        return await self._scalar_int(
            select(func.count(distinct(GenerationEvent.account_id))).where(
                GenerationEvent.created_at >= since
            )
        )

    async def action_counts(self) -> Dict[str, int]:
        result = await self.session.execute(
            select(
                func.sum(case((GenerationEvent.copied.is_(True), 1), else_=0)),
                func.sum(case((GenerationEvent.downloaded.is_(True), 1), else_=0)),
                func.sum(case((GenerationEvent.pr_created.is_(True), 1), else_=0)),
            )
        )
        copied, downloaded, pr_created = result.one()
        return {
            "copied": int(copied or 0),
            "downloaded": int(downloaded or 0),
            "pr_created": int(pr_created or 0),
        }

    async def top_accounts(self, limit: int = 20) -> List[Dict[str, object]]:
        generation_count = func.count(GenerationEvent.id).label("generations")
        result = await self.session.execute(
            select(Account.username, Account.plan, generation_count)
            .join(GenerationEvent, GenerationEvent.account_id == Account.id)
            .group_by(Account.id, Account.username, Account.plan)
            .order_by(generation_count.desc())
            .limit(limit)
        )
        return [
            {"username": username, "plan": plan, "generations": int(count)}
            for username, plan, count in result.all()
        ]

    async def survey_would_pay(self) -> Dict[str, int]:
        return await self._grouped_counts(SurveyResponse.would_pay)
