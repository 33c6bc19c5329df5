"""Entitlement evaluation: may an account run one more generation on a channel?

Web usage is counted from the generation ledger over the current calendar
month. API usage is read from the account's persisted counter, which the
usage recorder increments atomically and which restarts after a rolling
window. Both are :class:`UsagePolicy` implementations selected per channel,
so the evaluator itself never branches on the channel.

The evaluator always reads live account state and fails closed: a storage
error yields ``allowed=False`` with ``unavailable=True``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings
from src.core.exceptions import AccountNotFound
from src.core.plans import UNLIMITED, Channel, PlanId, PlanLimits, PlanTable
from src.core.timeutil import as_utc, month_start, next_month_start, utcnow
from src.db.models.account import Account
from src.repositories.account_repo import AccountRepo
from src.repositories.usage_repo import UsageRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entitlement:
    """Decision plus the figures needed to render "3/10 used"."""

    allowed: bool
    usage: int
    limit: int
    plan: PlanId
    channel: Channel
    resets_at: Optional[datetime] = None
    unavailable: bool = False

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED

    @property
    def remaining(self) -> Optional[int]:
        if self.unlimited:
            return None
        return max(self.limit - self.usage, 0)

    def after_one_more(self) -> "Entitlement":
        """Figures as they stand once one more generation has been recorded."""

        usage = self.usage + 1
        return replace(self, usage=usage, allowed=self.unlimited or usage < self.limit)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "usage": self.usage,
            "limit": self.limit,
            "remaining": self.remaining,
            "plan": self.plan.value,
            "channel": self.channel.value,
            "resets_at": self.resets_at.isoformat() if self.resets_at else None,
        }


class UsagePolicy(Protocol):
    """How a channel's limit and current-window usage are obtained."""

    def limit(self, account: Account, plan_limits: PlanLimits) -> int:
        ...

    async def usage(
        self, repo: UsageRepo, account: Account, now: datetime
    ) -> Tuple[int, Optional[datetime]]:
        ...


class LedgerWindowPolicy:
    """Counted by query: ledger rows since the start of the calendar month."""

    def __init__(self, channel: Channel, zone_name: str = "UTC") -> None:
        self.channel = channel
        self.zone_name = zone_name

    def limit(self, account: Account, plan_limits: PlanLimits) -> int:
        return plan_limits.limit_for(self.channel)

    async def usage(
        self, repo: UsageRepo, account: Account, now: datetime
    ) -> Tuple[int, Optional[datetime]]:
        since = month_start(now, self.zone_name)
        count = await repo.generations_since(account.id, self.channel, since)
        return count, next_month_start(now, self.zone_name)


class CounterWindowPolicy:
    """Counted by counter: ``api_calls_used`` within a rolling window.

    The limit is the account's ``api_calls_limit`` snapshot written by the
    last plan transition; a plan whose configured API limit is zero never
    grants the channel, whatever the snapshot says.

    The check reads the counter before the generation runs, so concurrent
    calls near the limit may each be allowed; see
    :class:`~src.services.generation.GenerationOrchestrator`.
    """

    def __init__(self, window: timedelta) -> None:
        self.window = window

    def limit(self, account: Account, plan_limits: PlanLimits) -> int:
        if plan_limits.api_limit == 0:
            return 0
        return max(int(account.api_calls_limit), 0)

    async def usage(
        self, repo: UsageRepo, account: Account, now: datetime
    ) -> Tuple[int, Optional[datetime]]:
        resets_at = as_utc(account.api_calls_reset_at) + self.window
        if resets_at <= now:
            # Window lapsed; the next recorded call restarts the counter.
            return 0, None
        return int(account.api_calls_used), resets_at


class EntitlementEvaluator:
    """Pure allow/deny decision over live account and ledger state."""

    def __init__(
        self,
        session: AsyncSession,
        plan_table: PlanTable,
        policies: Mapping[Channel, UsagePolicy],
    ) -> None:
        self.accounts = AccountRepo(session)
        self.usage = UsageRepo(session)
        self.plan_table = plan_table
        self.policies = policies

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: Settings) -> "EntitlementEvaluator":
        return cls(
            session,
            settings.plans,
            {
                Channel.WEB: LedgerWindowPolicy(Channel.WEB, settings.usage.timezone),
                Channel.API: CounterWindowPolicy(
                    timedelta(days=settings.usage.api_window_days)
                ),
            },
        )

    async def evaluate(
        self, account_id: UUID, channel: Channel, *, now: Optional[datetime] = None
    ) -> Entitlement:
        try:
            account = await self.accounts.get(account_id)
        except SQLAlchemyError:
            logger.exception("Account read failed for %s; denying", account_id)
            return self._unavailable(channel)
        if account is None:
            raise AccountNotFound()
        return await self.evaluate_account(account, channel, now=now)

    async def evaluate_account(
        self, account: Account, channel: Channel, *, now: Optional[datetime] = None
    ) -> Entitlement:
        now = as_utc(now or utcnow())
        try:
            plan = account.plan_id
            plan_limits = self.plan_table[plan]
        except (KeyError, ValueError):
            logger.error("Account %s has unconfigured plan %r; denying", account.id, account.plan)
            return self._unavailable(channel)

        policy = self.policies[channel]
        limit = policy.limit(account, plan_limits)
        try:
            usage, resets_at = await policy.usage(self.usage, account, now)
        except SQLAlchemyError:
            logger.exception("Usage read failed for %s/%s; denying", account.id, channel.value)
            return self._unavailable(channel, plan)

        if limit == UNLIMITED:
            allowed = True
        elif limit == 0:
            allowed = False
        else:
            allowed = usage < limit

        entitlement = Entitlement(
            allowed=allowed,
            usage=usage,
            limit=limit,
            plan=plan,
            channel=channel,
            resets_at=resets_at,
        )
        if not allowed:
            logger.info(
                "Denied %s generation for %s (%d/%d on %s)",
                channel.value,
                account.id,
                usage,
                limit,
                plan.value,
            )
        return entitlement

    @staticmethod
    def _unavailable(channel: Channel, plan: PlanId = PlanId.FREE) -> Entitlement:
        return Entitlement(
            allowed=False,
            usage=0,
            limit=0,
            plan=plan,
            channel=channel,
            unavailable=True,
        )
