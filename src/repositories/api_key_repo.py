"""Repository for API keys."""
from __future__ import annotations

import hashlib
import secrets
from datetime import datetime
from typing import Tuple
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.account import Account
from src.db.models.api_key import ApiKey


class ApiKeyRepo:
    """CRUD for :class:`ApiKey`.

    Keys look like ``<prefix><hex secret>``. Only the SHA-256 digest of the
    full key is persisted; the plaintext is returned once from
    :meth:`create` and cannot be recovered afterwards.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def hash_key(plaintext: str) -> str:
        return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()

    @staticmethod
    def generate_key(prefix: str, secret_bytes: int) -> str:
        return f"{prefix}{secrets.token_hex(secret_bytes)}"

    async def create(
        self, account_id: UUID, name: str, *, prefix: str, secret_bytes: int
    ) -> Tuple[ApiKey, str]:
        plaintext = self.generate_key(prefix, secret_bytes)
        row = ApiKey(
            account_id=account_id,
            name=name,
            key_prefix=plaintext[: len(prefix) + 8],
            key_hash=self.hash_key(plaintext),
        )
        self.session.add(row)
        await self.session.flush()
        return row, plaintext

    async def find_owner(self, plaintext: str) -> Tuple[ApiKey, Account] | None:
        """Return the key and its enabled owner, or ``None``."""

        result = await self.session.execute(
            select(ApiKey, Account)
            .join(Account, Account.id == ApiKey.account_id)
            .where(
                ApiKey.key_hash == self.hash_key(plaintext),
                Account.is_disabled.is_(False),
            )
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def touch(self, key_id: UUID, now: datetime) -> None:
        await self.session.execute(
            update(ApiKey)
            .where(ApiKey.id == key_id)
            .values(last_used_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()

    async def list_for_account(self, account_id: UUID) -> list[ApiKey]:
        result = await self.session.execute(
            select(ApiKey)
            .where(ApiKey.account_id == account_id)
            .order_by(ApiKey.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete(self, account_id: UUID, key_id: UUID) -> bool:
        result = await self.session.execute(
            delete(ApiKey)
            .where(ApiKey.id == key_id, ApiKey.account_id == account_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return bool(result.rowcount)
