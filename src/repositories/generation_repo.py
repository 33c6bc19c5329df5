"""Repository for the generation ledger."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.plans import Channel, DocType, PostAction
from src.db.models.generation import GenerationEvent


class GenerationRepo:
    """Append and look up :class:`GenerationEvent` rows."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(
        self,
        account_id: UUID,
        doc_type: DocType,
        target_ref: str,
        channel: Channel,
        duration_ms: Optional[int] = None,
        *,
        created_at: Optional[datetime] = None,
    ) -> GenerationEvent:
        event = GenerationEvent(
            account_id=account_id,
            doc_type=doc_type.value,
            target_ref=target_ref,
            channel=channel.value,
            duration_ms=duration_ms,
        )
        if created_at is not None:
            event.created_at = created_at
        self.session.add(event)
        await self.session.flush()
        return event

    async def get_for_account(
        self, event_id: int, account_id: UUID
    ) -> GenerationEvent | None:
        result = await self.session.execute(
            select(GenerationEvent).where(
                GenerationEvent.id == event_id,
                GenerationEvent.account_id == account_id,
            )
        )
        return result.scalar_one_or_none()

    async def latest_matching(
        self, account_id: UUID, target_ref: str, doc_type: DocType
    ) -> GenerationEvent | None:
        result = await self.session.execute(
            select(GenerationEvent)
            .where(
                GenerationEvent.account_id == account_id,
                GenerationEvent.target_ref == target_ref,
                GenerationEvent.doc_type == doc_type.value,
            )
            .order_by(GenerationEvent.created_at.desc(), GenerationEvent.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def set_flag(self, event_id: int, action: PostAction) -> None:
        """Set the outcome flag for ``action``. Flags only ever go false -> true."""

        await self.session.execute(
            update(GenerationEvent)
            .where(GenerationEvent.id == event_id)
            .values({action.flag: True})
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
