"""Hosted backend client: reflections and profile progress over the PostgREST HTTP API."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

import httpx
from opentelemetry import trace

from lessonflow.config import settings
from lessonflow.flow.errors import PersistenceError
from lessonflow.persistence.models import Reflection, UserProgress
from lessonflow.telemetry.metrics import backend_request_duration, backend_requests_total

logger = logging.getLogger("lessonflow.persistence")
tracer = trace.get_tracer(__name__)

_RETURN_ROWS = {"Prefer": "return=representation"}
_UPSERT = {"Prefer": "resolution=merge-duplicates,return=representation"}


class BackendClient:
    """Single-attempt calls to the backend; failures surface as PersistenceError."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_url = (base_url or settings.backend_url).rstrip("/")
        api_key = api_key or settings.backend_key
        self._http = httpx.AsyncClient(
            base_url=f"{base_url}/rest/v1",
            headers={"apikey": api_key, "Authorization": f"Bearer {api_key}"},
            timeout=timeout or settings.backend_timeout_seconds,
            transport=transport,
        )
        self._reflections = f"/{settings.reflections_table}"
        self._profiles = f"/{settings.profiles_table}"

    async def close(self) -> None:
        await self._http.aclose()

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> list[dict]:
        start = time.perf_counter()
        with tracer.start_as_current_span(f"backend.{operation}") as span:
            span.set_attribute("backend.operation", operation)
            try:
                resp = await self._http.request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                backend_requests_total.labels(operation=operation, outcome="error").inc()
                logger.warning("Backend %s failed: %s", operation, exc)
                raise PersistenceError(f"Backend unreachable: {exc}", operation=operation) from exc
            finally:
                backend_request_duration.labels(operation=operation).observe(time.perf_counter() - start)

            span.set_attribute("http.status_code", resp.status_code)
            if resp.status_code >= 400:
                backend_requests_total.labels(operation=operation, outcome="error").inc()
                logger.warning("Backend %s returned %d: %s", operation, resp.status_code, resp.text[:200])
                raise PersistenceError(
                    f"Backend returned {resp.status_code}",
                    operation=operation,
                    status_code=resp.status_code,
                )

        backend_requests_total.labels(operation=operation, outcome="success").inc()
        if not resp.content:
            return []
        body = resp.json()
        return body if isinstance(body, list) else [body]

    async def get_reflection(self, user_id: str, lesson_id: int) -> Reflection | None:
        """Look up the user's reflection for a lesson. Not found is None, not an error."""
        rows = await self._request("get_reflection", "GET", self._reflections, params={
            "user_id": f"eq.{user_id}",
            "lesson_id": f"eq.{lesson_id}",
            "select": "*",
            "limit": 1,
        })
        if not rows:
            return None
        return Reflection.model_validate(rows[0])

    async def list_reflections(self, user_id: str) -> list[Reflection]:
        rows = await self._request("list_reflections", "GET", self._reflections, params={
            "user_id": f"eq.{user_id}",
            "select": "*",
            "order": "lesson_id",
        })
        return [Reflection.model_validate(r) for r in rows]

    async def save_reflection(self, reflection: Reflection) -> Reflection:
        """Upsert by (user_id, lesson_id), stamping created_at or updated_at."""
        now = datetime.now(timezone.utc).isoformat()
        payload = {
            "user_id": reflection.user_id,
            "lesson_id": reflection.lesson_id,
            "structured_data": reflection.structured_data.model_dump(mode="json", by_alias=True),
            "completed": reflection.completed,
        }
        if reflection.id is None:
            payload["created_at"] = now
        else:
            payload["id"] = reflection.id
            payload["updated_at"] = now

        rows = await self._request(
            "save_reflection", "POST", self._reflections,
            params={"on_conflict": "user_id,lesson_id"},
            headers=_UPSERT,
            json=payload,
        )
        if not rows:
            raise PersistenceError("Backend returned no row for the saved reflection", operation="save_reflection")

        saved = Reflection.model_validate(rows[0])
        logger.info(
            "Reflection saved: id=%s user=%s lesson=%s completed=%s",
            saved.id, saved.user_id, saved.lesson_id, saved.completed,
        )
        return saved

    async def get_progress(self, user_id: str) -> UserProgress | None:
        rows = await self._request("get_progress", "GET", self._profiles, params={
            "id": f"eq.{user_id}",
            "select": "id,current_day,streak_count,updated_at",
            "limit": 1,
        })
        if not rows:
            return None
        return UserProgress.model_validate(rows[0])

    async def advance_user_day(self, user_id: str) -> UserProgress:
        """Move the user on to the next program day and extend their streak."""
        progress = await self.get_progress(user_id)
        if progress is None:
            raise PersistenceError(f"No profile for user {user_id}", operation="advance_user_day")

        rows = await self._request(
            "advance_user_day", "PATCH", self._profiles,
            params={"id": f"eq.{user_id}"},
            headers=_RETURN_ROWS,
            json={
                "current_day": min(progress.current_day + 1, settings.program_length_days),
                "streak_count": progress.streak_count + 1,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        if not rows:
            raise PersistenceError(f"No profile for user {user_id}", operation="advance_user_day")

        advanced = UserProgress.model_validate(rows[0])
        logger.info(
            "User advanced: user=%s day=%d streak=%d",
            user_id, advanced.current_day, advanced.streak_count,
        )
        return advanced
