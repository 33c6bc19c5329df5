"""Repository for account records."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.plans import PlanId, PlanLimits
from src.db.models.account import Account

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityProfile:
    """Profile fields handed over by the identity provider."""

    external_id: str
    username: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class AccountRepo:
    """Data-access helpers for :class:`Account`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, account_id: UUID) -> Account | None:
        # Always reload so plan changes made by other transactions are seen.
        result = await self.session.execute(
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_external_id(self, external_id: str) -> Account | None:
        result = await self.session.execute(
            select(Account).where(Account.external_id == external_id)
        )
        return result.scalar_one_or_none()

    async def get_by_customer_id(self, customer_id: str) -> Account | None:
        result = await self.session.execute(
            select(Account).where(Account.stripe_customer_id == customer_id)
        )
        return result.scalars().first()

    async def get_by_subscription_id(self, subscription_id: str) -> Account | None:
        result = await self.session.execute(
            select(Account).where(Account.stripe_subscription_id == subscription_id)
        )
        return result.scalars().first()

    async def get_or_create(self, profile: IdentityProfile) -> Account:
        """Return the account for ``profile.external_id``, creating it once.

        A concurrent first login can lose the insert race on the unique
        ``external_id``; the loser reads back the winner's row.
        """

        existing = await self.get_by_external_id(profile.external_id)
        if existing is not None:
            return existing

        account = Account(
            external_id=profile.external_id,
            username=profile.username,
            name=profile.name,
            email=profile.email,
            avatar_url=profile.avatar_url,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(account)
                await self.session.flush()
        except IntegrityError:
            logger.info("Concurrent account creation for %s; reusing row", profile.external_id)
            existing = await self.get_by_external_id(profile.external_id)
            if existing is None:
                raise
            return existing

        logger.info("Created account %s for identity %s", account.id, profile.external_id)
        return account

    async def apply_paid_plan(
        self,
        account_id: UUID,
        plan_id: PlanId,
        limits: PlanLimits,
        *,
        customer_id: Optional[str],
        subscription_id: Optional[str],
        now: datetime,
    ) -> None:
        """Overwrite plan fields, restart the API window at zero and clear any cancellation."""

        values = {
            "plan": plan_id.value,
            "is_pro": limits.is_pro,
            "api_calls_limit": limits.api_limit,
            "api_calls_used": 0,
            "api_calls_reset_at": now,
            "stripe_subscription_id": subscription_id,
            "upgraded_at": now,
            "canceled_at": None,
        }
        if customer_id:
            values["stripe_customer_id"] = customer_id
        await self.session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()

    async def revert_to_free(
        self, subscription_id: str, limits: PlanLimits, *, now: datetime
    ) -> int:
        """Downgrade every account bound to ``subscription_id``; return the row count."""

        result = await self.session.execute(
            update(Account)
            .where(Account.stripe_subscription_id == subscription_id)
            .values(
                plan=PlanId.FREE.value,
                is_pro=limits.is_pro,
                api_calls_limit=limits.api_limit,
                canceled_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return int(result.rowcount or 0)

    async def mark_survey_completed(self, account_id: UUID) -> None:
        await self.session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(survey_completed=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
