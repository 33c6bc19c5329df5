"""API key issuance and authentication."""
from __future__ import annotations

import logging
import string
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings
from src.core.exceptions import AuthenticationFailure, InvalidRequest, PermissionDenied
from src.core.timeutil import utcnow
from src.db.models.account import Account
from src.db.models.api_key import ApiKey
from src.repositories.api_key_repo import ApiKeyRepo

logger = logging.getLogger(__name__)

_HEX = frozenset(string.hexdigits.lower())


class ApiKeyGate:
    """Resolves bearer credentials to accounts for the API channel.

    Authentication answers "who are you" only; whether the account may
    generate is the entitlement evaluator's call.
    """

    def __init__(
        self, session: AsyncSession, *, prefix: str = "sk_live_", secret_bytes: int = 24
    ) -> None:
        self.session = session
        self.keys = ApiKeyRepo(session)
        self.prefix = prefix
        self.secret_bytes = secret_bytes

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: Settings) -> "ApiKeyGate":
        return cls(
            session,
            prefix=settings.api_keys.prefix,
            secret_bytes=settings.api_keys.secret_bytes,
        )

    def is_well_formed(self, credential: Optional[str]) -> bool:
        if not credential or not credential.startswith(self.prefix):
            return False
        secret = credential[len(self.prefix):]
        return len(secret) == self.secret_bytes * 2 and set(secret) <= _HEX

    async def authenticate(self, credential: Optional[str]) -> Account:
        if not self.is_well_formed(credential):
            raise AuthenticationFailure("Invalid API key")

        match = await self.keys.find_owner(credential)
        if match is None:
            raise AuthenticationFailure("Invalid API key")
        key, account = match

        try:
            async with self.session.begin_nested():
                await self.keys.touch(key.id, utcnow())
        except SQLAlchemyError:
            logger.warning("Could not update last_used_at for key %s", key.id, exc_info=True)
        return account

    async def issue(self, account: Account, name: Optional[str] = None) -> Tuple[ApiKey, str]:
        """Create a key for ``account``; the plaintext is returned exactly once."""

        if account.api_calls_limit <= 0:
            raise PermissionDenied("API access requires the API Metered or Bundle plan")
        label = (name or "Default").strip()
        if not label or len(label) > 100:
            raise InvalidRequest("API key name must be 1-100 characters")
        row, plaintext = await self.keys.create(
            account.id, label, prefix=self.prefix, secret_bytes=self.secret_bytes
        )
        logger.info("API key %s created for %s (prefix=%s)", row.id, account.id, row.key_prefix)
        return row, plaintext

    async def list_keys(self, account: Account) -> List[ApiKey]:
        return await self.keys.list_for_account(account.id)

    async def revoke(self, account: Account, key_id: UUID) -> bool:
        deleted = await self.keys.delete(account.id, key_id)
        if deleted:
            logger.info("API key %s deleted by %s", key_id, account.id)
        return deleted
