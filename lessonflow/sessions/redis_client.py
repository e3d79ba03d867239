"""Async Redis client for the session store."""

from __future__ import annotations

import redis.asyncio as aioredis

from lessonflow.config import settings

SESSION_PREFIX = "lessonflow:session:"
SAVE_LOCK_PREFIX = "lessonflow:save-lock:"


def create_redis(url: str | None = None) -> aioredis.Redis:
    return aioredis.from_url(
        url or settings.redis_url,
        decode_responses=True,
        max_connections=10,
    )
