"""Admin reporting over the ledger and account store."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.timeutil import utcnow
from src.repositories.metrics_repo import MetricsRepo


class MetricsService:
    """Assembles the admin dashboard report from read-only queries."""

    def __init__(self, session: AsyncSession) -> None:
        self.repo = MetricsRepo(session)

    async def report(self, *, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        totals = await self.repo.account_totals()
        total_generations = await self.repo.total_generations()
        accounts = totals["accounts"]

        return {
            "generated_at": now.isoformat(),
            "totals": {
                "accounts": accounts,
                "paid_accounts": totals["paid_accounts"],
                "generations": total_generations,
                "weekly_active_accounts": await self.repo.active_accounts_since(
                    now - timedelta(days=7)
                ),
                "avg_generations_per_active_account": (
                    round(total_generations / totals["accounts_with_generations"], 2)
                    if totals["accounts_with_generations"]
                    else 0.0
                ),
            },
            "funnel": {
                "signed_up": accounts,
                "generated": totals["accounts_with_generations"],
                "paid": totals["paid_accounts"],
                "conversion_rate": (
                    round(100.0 * totals["paid_accounts"] / accounts, 2) if accounts else 0.0
                ),
            },
            "accounts_by_plan": await self.repo.accounts_by_plan(),
            "generations_by_doc_type": await self.repo.generations_by_doc_type(),
            "generations_by_channel": await self.repo.generations_by_channel(),
            "avg_duration_ms_by_doc_type": await self.repo.average_duration_by_doc_type(),
            "post_generation_actions": await self.repo.action_counts(),
            "top_accounts": await self.repo.top_accounts(),
            "survey_would_pay": await self.repo.survey_would_pay(),
        }
