"""Session store: in-progress flow state kept in Redis between requests."""

from __future__ import annotations

import logging

import redis.asyncio as aioredis

from lessonflow.config import settings
from lessonflow.flow.errors import SessionNotFoundError
from lessonflow.flow.state import FlowState
from lessonflow.sessions.redis_client import SAVE_LOCK_PREFIX, SESSION_PREFIX

logger = logging.getLogger("lessonflow.sessions")


class SessionStore:
    """One key per flow with a sliding TTL, plus a short-lived save lock per flow."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int | None = None) -> None:
        self._redis = redis
        self._ttl = ttl_seconds or settings.session_ttl_seconds

    async def load(self, flow_id: str) -> FlowState:
        raw = await self._redis.get(f"{SESSION_PREFIX}{flow_id}")
        if raw is None:
            raise SessionNotFoundError(f"No lesson flow {flow_id} (it may have expired)")
        return FlowState.model_validate_json(raw)

    async def save(self, state: FlowState) -> None:
        await self._redis.set(
            f"{SESSION_PREFIX}{state.flow_id}",
            state.model_dump_json(),
            ex=self._ttl,
        )

    async def discard(self, flow_id: str) -> None:
        await self._redis.delete(f"{SESSION_PREFIX}{flow_id}", f"{SAVE_LOCK_PREFIX}{flow_id}")
        logger.info("Session discarded: flow=%s", flow_id)

    async def acquire_save_lock(self, flow_id: str) -> bool:
        """Take the flow's save lock; False while another save holds it."""
        acquired = await self._redis.set(
            f"{SAVE_LOCK_PREFIX}{flow_id}", "1",
            nx=True,
            ex=settings.save_lock_seconds,
        )
        if not acquired:
            logger.info("Save rejected, already in progress: flow=%s", flow_id)
        return bool(acquired)

    async def save_lock_held(self, flow_id: str) -> bool:
        return bool(await self._redis.exists(f"{SAVE_LOCK_PREFIX}{flow_id}"))

    async def release_save_lock(self, flow_id: str) -> None:
        await self._redis.delete(f"{SAVE_LOCK_PREFIX}{flow_id}")
