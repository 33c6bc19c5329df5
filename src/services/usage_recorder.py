"""Write path for completed generations and their follow-up actions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings
from src.core.exceptions import AccountNotFound, InvalidRequest
from src.core.plans import Channel, DocType, PostAction
from src.core.timeutil import utcnow
from src.db.models.generation import GenerationEvent
from src.repositories.generation_repo import GenerationRepo
from src.repositories.usage_repo import UsageRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackResult:
    tracked: bool
    generation_id: Optional[int] = None
    reason: Optional[str] = None


class UsageRecorder:
    """Records generations that have already succeeded.

    Callers own the transaction: the ledger insert and the API counter
    increment are flushed together and committed (or rolled back) by the
    session owner.
    """

    def __init__(self, session: AsyncSession, *, api_window: timedelta) -> None:
        self.ledger = GenerationRepo(session)
        self.usage = UsageRepo(session)
        self.api_window = api_window

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: Settings) -> "UsageRecorder":
        return cls(session, api_window=timedelta(days=settings.usage.api_window_days))

    async def record_generation(
        self,
        account_id: UUID,
        doc_type: DocType,
        target_ref: str,
        channel: Channel,
        duration_ms: Optional[int] = None,
        *,
        now: Optional[datetime] = None,
    ) -> GenerationEvent:
        now = now or utcnow()
        event = await self.ledger.add(
            account_id, doc_type, target_ref, channel, duration_ms, created_at=now
        )
        if channel is Channel.API:
            updated = await self.usage.increment_api_calls(
                account_id, now=now, window=self.api_window
            )
            if not updated:
                raise AccountNotFound()
        logger.debug(
            "Recorded generation %s for %s (%s/%s)",
            event.id,
            account_id,
            doc_type.value,
            channel.value,
        )
        return event

    async def track_post_action(
        self,
        account_id: UUID,
        action: PostAction,
        *,
        generation_id: Optional[int] = None,
        target_ref: Optional[str] = None,
        doc_type: Optional[DocType] = None,
    ) -> TrackResult:
        """Flag a follow-up action on one of the account's generations.

        ``generation_id`` identifies the event exactly. Without it the most
        recent event for ``target_ref`` and ``doc_type`` is used. A miss is
        reported, never raised.
        """

        if generation_id is not None:
            event = await self.ledger.get_for_account(generation_id, account_id)
        elif target_ref and doc_type is not None:
            event = await self.ledger.latest_matching(account_id, target_ref, doc_type)
        else:
            raise InvalidRequest("generation_id or target_ref and doc_type are required")

        if event is None:
            return TrackResult(tracked=False, reason="no_matching_generation")

        await self.ledger.set_flag(event.id, action)
        return TrackResult(tracked=True, generation_id=event.id)
