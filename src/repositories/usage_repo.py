"""Repository helpers for usage tracking."""
from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import case, func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.plans import Channel
from src.db.models.account import Account
from src.db.models.generation import GenerationEvent


class UsageRepo:
    """Usage counters: ledger counts for the web, the account counter for the API."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def generations_since(
        self, account_id: UUID, channel: Channel, since: datetime
    ) -> int:
        """Return the number of ledger rows for ``channel`` created at or after ``since``."""

        result = await self.session.execute(
            select(func.count())
            .select_from(GenerationEvent)
            .where(
                GenerationEvent.account_id == account_id,
                GenerationEvent.channel == channel.value,
                GenerationEvent.created_at >= since,
            )
        )
        value = result.scalar_one()
        return int(value or 0)

    async def increment_api_calls(
        self, account_id: UUID, *, now: datetime, window: timedelta
    ) -> int:
        """Add one API call in a single UPDATE statement.

        When the stored window started more than ``window`` ago the counter
        restarts at one and the window restarts at ``now``. Both branches
        are evaluated by the database against the row as it is at write
        time, so concurrent increments never overwrite each other.
        """

        expired = Account.api_calls_reset_at <= now - window
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(
                api_calls_used=case(
                    (expired, 1), else_=Account.api_calls_used + 1
                ),
                api_calls_reset_at=case(
                    (expired, literal(now, Account.api_calls_reset_at.type)),
                    else_=Account.api_calls_reset_at,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return int(result.rowcount or 0)
