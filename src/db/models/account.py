"""Account model holding identity, plan and API counters."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.plans import PlanId
from src.core.timeutil import utcnow
from src.db.base import Base


class Account(Base):
    """A user of the service.

    ``plan``, ``is_pro`` and ``api_calls_limit`` are written only by plan
    transitions; ``api_calls_used`` and ``api_calls_reset_at`` only move
    through the atomic increment in the usage repository.
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    external_id: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    plan: Mapped[str] = mapped_column(String, nullable=False, default=PlanId.FREE.value)
    is_pro: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    survey_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    api_calls_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    api_calls_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    api_calls_reset_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    stripe_customer_id: Mapped[Optional[str]] = mapped_column(
        String, index=True, nullable=True
    )
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(
        String, index=True, nullable=True
    )
    upgraded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    canceled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )

    api_keys: Mapped[List["ApiKey"]] = relationship(
        "ApiKey", back_populates="account", cascade="all, delete-orphan"
    )

    @property
    def plan_id(self) -> PlanId:
        return PlanId(self.plan)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Account {self.id} plan={self.plan}>"
