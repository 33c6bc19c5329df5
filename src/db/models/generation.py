"""Ledger of completed generations."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.timeutil import utcnow
from src.db.base import Base


class GenerationEvent(Base):
    """One successful generation. Only the three outcome flags ever change."""

    __tablename__ = "generations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), index=True, nullable=False
    )
    doc_type: Mapped[str] = mapped_column(String, nullable=False)
    channel: Mapped[str] = mapped_column(String, nullable=False)
    target_ref: Mapped[str] = mapped_column(String, nullable=False)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    copied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    downloaded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pr_created: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_generations_account_channel_created", "account_id", "channel", "created_at"),
        Index("ix_generations_account_target_doc", "account_id", "target_ref", "doc_type"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<GenerationEvent {self.id} account={self.account_id} {self.doc_type}/{self.channel}>"
