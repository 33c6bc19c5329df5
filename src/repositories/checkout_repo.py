"""Repository for applied checkout sessions."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.plans import PlanId
from src.core.timeutil import as_utc
from src.db.models.checkout_session import CheckoutSession


class CheckoutRepo:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def claim(
        self,
        session_id: str,
        account_id: UUID,
        *,
        subscription_id: Optional[str],
        plan: PlanId,
        created_at: Optional[datetime],
    ) -> bool:
        """Insert the session row; ``False`` when it was already applied."""

        if await self.session.get(CheckoutSession, session_id) is not None:
            return False
        try:
            async with self.session.begin_nested():
                self.session.add(
                    CheckoutSession(
                        id=session_id,
                        account_id=account_id,
                        subscription_id=subscription_id,
                        plan=plan.value,
                        session_created_at=created_at,
                    )
                )
        except IntegrityError:
            return False
        return True

    async def latest_created_at(self, account_id: UUID) -> Optional[datetime]:
        result = await self.session.execute(
            select(func.max(CheckoutSession.session_created_at)).where(
                CheckoutSession.account_id == account_id
            )
        )
        value = result.scalar_one_or_none()
        return as_utc(value) if value is not None else None
