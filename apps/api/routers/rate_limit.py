"""Sliding-window rate limiting dependency, Redis-backed with a local fallback."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import deque
from typing import Callable, Deque, Dict

from fastapi import Depends, HTTPException, Request
import redis.asyncio as redis

from config import settings
from routers.auth_scope import AuthContext, get_auth_context

logger = logging.getLogger(__name__)

_local_windows: Dict[str, Deque[float]] = {}
# key -> time at which the newest hit leaves its window
_local_expiry: Dict[str, float] = {}
_local_lock = asyncio.Lock()


def _client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _evict_idle_windows(current: float) -> None:
    for key in [key for key, expires_at in _local_expiry.items() if expires_at <= current]:
        _local_expiry.pop(key, None)
        _local_windows.pop(key, None)


def reset_local_windows() -> None:
    _local_windows.clear()
    _local_expiry.clear()


async def _consume_local_quota(key: str, limit: int, window_seconds: int, now: float | None = None) -> bool:
    current = time.time() if now is None else now
    async with _local_lock:
        _evict_idle_windows(current)
        window = _local_windows.setdefault(key, deque())
        while window and window[0] <= current - window_seconds:
            window.popleft()
        if len(window) >= limit:
            return False
        window.append(current)
        _local_expiry[key] = current + window_seconds
        return True


async def _consume_redis_quota(key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    member = f"{now:.6f}:{uuid.uuid4().hex}"
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        async with redis_client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, 0, now - window_seconds)
            pipe.zadd(key, {member: now})
            pipe.zcard(key)
            pipe.expire(key, window_seconds)
            _, _, count, _ = await pipe.execute()
        if int(count) > limit:
            await redis_client.zrem(key, member)
            return False
        return True
    finally:
        await redis_client.aclose()


def rate_limit(prefix: str, limit: int, window_seconds: int) -> Callable[..., None]:
    """Return a FastAPI dependency enforcing a per-user, per-address sliding window."""

    async def _dependency(request: Request, auth: AuthContext = Depends(get_auth_context)):
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        key = f"flux:rate:{prefix}:{auth.user_id}_{_client_identifier(request)}"
        try:
            allowed = await _consume_redis_quota(key, limit, window_seconds)
        except Exception as exc:
            logger.debug("Redis rate limit unavailable, using local window: %s", exc)
            allowed = await _consume_local_quota(key, limit, window_seconds)

        if not allowed:
            raise HTTPException(status_code=429, detail="Too Many Requests")

    return _dependency
