"""Shared fixtures: an in-memory PostgREST stand-in and an isolated Redis."""

from __future__ import annotations

import json

from fakeredis import FakeServer
from fakeredis import aioredis as fake_aioredis
import httpx
import pytest

from lessonflow.config import settings
from lessonflow.flow.controller import LessonFlow
from lessonflow.persistence.client import BackendClient
from lessonflow.problems.models import ProblemKind

BACKEND_URL = "https://backend.test"
BACKEND_KEY = "test-key"


class FakePostgrest:
    """Just enough of the reflections/profiles REST API for the backend client."""

    def __init__(self) -> None:
        self.reflections: list[dict] = []
        self.profiles: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.failing: set[tuple[str, str]] = set()
        self.offline = False
        self._next_id = 1

    def seed_profile(self, user_id: str, current_day: int = 1, streak_count: int = 0) -> dict:
        self.profiles[user_id] = {"id": user_id, "current_day": current_day, "streak_count": streak_count}
        return self.profiles[user_id]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("backend offline", request=request)

        table = request.url.path.rsplit("/", 1)[-1]
        if (request.method, table) in self.failing:
            return httpx.Response(503, json={"message": "service unavailable"})

        filters = {
            k: v[3:] for k, v in request.url.params.items() if v.startswith("eq.")
        }
        if table == "reflections":
            return self._reflections(request, filters)
        if table == "profiles":
            return self._profiles(request, filters)
        return httpx.Response(404, json={"message": f"unknown table {table}"})

    def _reflections(self, request: httpx.Request, filters: dict) -> httpx.Response:
        if request.method == "GET":
            rows = [
                r for r in self.reflections
                if all(str(r.get(k)) == v for k, v in filters.items())
            ]
            limit = request.url.params.get("limit")
            return httpx.Response(200, json=rows[: int(limit)] if limit else rows)

        if request.method == "POST":
            body = json.loads(request.content)
            for row in self.reflections:
                if row["user_id"] == body["user_id"] and row["lesson_id"] == body["lesson_id"]:
                    row.update(body)
                    return httpx.Response(201, json=[row])
            row = {"id": str(self._next_id), "created_at": None, "updated_at": None, **body}
            self._next_id += 1
            self.reflections.append(row)
            return httpx.Response(201, json=[row])

        return httpx.Response(405)

    def _profiles(self, request: httpx.Request, filters: dict) -> httpx.Response:
        profile = self.profiles.get(filters.get("id", ""))
        if request.method == "GET":
            return httpx.Response(200, json=[profile] if profile else [])
        if request.method == "PATCH":
            if profile is None:
                return httpx.Response(200, json=[])
            profile.update(json.loads(request.content))
            return httpx.Response(200, json=[profile])
        return httpx.Response(405)


def make_backend(postgrest: FakePostgrest) -> BackendClient:
    return BackendClient(
        base_url=BACKEND_URL,
        api_key=BACKEND_KEY,
        transport=httpx.MockTransport(postgrest.handler),
    )


def make_redis(server: FakeServer | None = None):
    return fake_aioredis.FakeRedis(server=server or FakeServer(), decode_responses=True)


@pytest.fixture(autouse=True)
def _no_celebration_delay(monkeypatch):
    monkeypatch.setattr(settings, "celebration_delay_seconds", 0)


@pytest.fixture
def postgrest() -> FakePostgrest:
    fake = FakePostgrest()
    fake.seed_profile("user-1")
    return fake


@pytest.fixture
async def backend(postgrest):
    client = make_backend(postgrest)
    yield client
    await client.close()


@pytest.fixture
def redis():
    return make_redis()


def walk_to_summary(flow: LessonFlow, internal=("I doubt myself",), external=("My boss criticizes me",)) -> LessonFlow:
    """Drive a fresh flow through every stage with sensible answers."""
    flow.begin()
    for text in internal:
        flow.add_problem(ProblemKind.INTERNAL, text)
    for text in external:
        flow.add_problem(ProblemKind.EXTERNAL, text)
    flow.finish_collection()
    for _ in internal:
        flow.categorize("Mind", "Limiting beliefs")
    for _ in external:
        flow.answer("He points out my mistakes in meetings")
        flow.answer("Anxious and small")
        flow.answer("I'm not good enough")
        flow.answer("")
        if internal:
            flow.link([flow.problems.internal[0].id])
    return flow
