"""Lesson flow service: FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from lessonflow.api import flows, program
from lessonflow.api.errors import register_exception_handlers
from lessonflow.api.middleware import MetricsMiddleware
from lessonflow.config import missing_backend_settings, settings
from lessonflow.content.catalog import load_content
from lessonflow.persistence.client import BackendClient
from lessonflow.sessions.redis_client import create_redis
from lessonflow.sessions.store import SessionStore
from lessonflow.telemetry.logging import setup_logging
from lessonflow.telemetry.tracing import setup_tracing

setup_tracing(otlp_endpoint=settings.otlp_endpoint)
logger = setup_logging(otlp_endpoint=settings.otlp_endpoint)


def create_app(
    backend: BackendClient | None = None,
    redis: aioredis.Redis | None = None,
) -> FastAPI:
    """Build the application. Collaborators passed in are used as-is and not closed."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Initializing lesson flow service...")

        for name in missing_backend_settings():
            logger.warning("%s is not configured; using a placeholder value", name)

        # Content is fixed for the life of the process
        content = load_content()
        logger.info("Loaded lesson content: %s (%d categories)", content.title, len(content.categories))

        app.state.backend = backend or BackendClient()

        r = redis or create_redis()
        await r.ping()
        logger.info("Redis connected: %s", settings.redis_url if redis is None else "injected")
        app.state.sessions = SessionStore(r)

        logger.info("Lesson flow service ready on %s:%d", settings.host, settings.port)

        yield

        if backend is None:
            await app.state.backend.close()
        if redis is None:
            await r.aclose()
        logger.info("Lesson flow service shut down")

    app = FastAPI(
        title="Lesson Flow",
        description="Guided daily reflection lessons: collect, categorize, assess and map problems",
        version=settings.service_version,
        lifespan=lifespan,
    )

    app.add_middleware(MetricsMiddleware)
    register_exception_handlers(app)

    app.include_router(flows.router)
    app.include_router(program.router)

    FastAPIInstrumentor.instrument_app(app)
    return app


app = create_app()
