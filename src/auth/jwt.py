"""Session token helpers for the web channel."""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional
from uuid import UUID

import jwt
from fastapi import Header

from src.core.config import settings
from src.core.exceptions import AuthenticationFailure
from src.core.timeutil import utcnow


def create_session_token(account_id: UUID, *, expires_in: Optional[timedelta] = None) -> str:
    now = utcnow()
    lifetime = expires_in or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    claims = {
        "sub": str(account_id),
        "account_id": str(account_id),
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationFailure("Missing bearer token")
    return authorization.split(" ", 1)[1].strip()


def require_auth(authorization: Optional[str] = Header(default=None)) -> Dict[str, Any]:
    """Validate a session token and return the account id with its claims."""

    token = bearer_token(authorization)
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
        )
    except jwt.InvalidTokenError as exc:
        raise AuthenticationFailure("Invalid token") from exc

    try:
        account_uuid = UUID(str(payload["account_id"]))
    except (KeyError, ValueError) as exc:
        raise AuthenticationFailure("Invalid token") from exc

    return {"account_id": account_uuid, "claims": payload}
