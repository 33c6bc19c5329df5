"""Request throttling and replay protection backed by Redis.

Both guards run before any entitlement check, so a throttled or replayed
request never reaches the generator and never touches the usage ledger.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

import redis.asyncio as redis
from fastapi import HTTPException, status

from src.core.config import settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60

_redis_client: redis.Redis | None = None


async def _get_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(str(settings.REDIS_URI), decode_responses=True)
    return _redis_client


async def close_client() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
    _redis_client = None


async def check_rate_limit(subject: str, *, per_window: Optional[int] = None) -> None:
    """Fixed one-minute window counter keyed by ``subject``.

    Web and API callers use distinct subjects (``<account>`` and
    ``api:<account>``) so one surface cannot exhaust the other.
    """

    allowed = per_window if per_window is not None else settings.limits.rate_limit_rpm
    now = time.time()
    window = int(now // WINDOW_SECONDS)
    key = f"rl:{subject}:{window}"

    client = await _get_client()
    current = await client.incr(key)
    if current == 1:
        await client.expire(key, WINDOW_SECONDS)
    if current > allowed:
        retry_after = WINDOW_SECONDS - int(now % WINDOW_SECONDS)
        logger.info("Throttled %s (%d requests in window)", subject, current)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after)},
        )


async def ensure_idempotent(subject: str, idempotency_key: Optional[str]) -> None:
    """Claim ``idempotency_key`` for ``subject``; a second claim is a 409."""

    if not idempotency_key:
        return
    client = await _get_client()
    claimed = await client.set(
        f"idemp:{subject}:{idempotency_key}",
        "1",
        ex=settings.limits.idempotency_ttl_seconds,
        nx=True,
    )
    if not claimed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Duplicate request (idempotency)",
        )


async def release_idempotency(subject: str, idempotency_key: Optional[str]) -> None:
    """Free a claim whose request failed so the client can retry with the same key."""

    if not idempotency_key:
        return
    client = await _get_client()
    await client.delete(f"idemp:{subject}:{idempotency_key}")
