"""Lesson flow configuration: backend endpoints, session store and flow tuning knobs."""

from pydantic_settings import BaseSettings

PLACEHOLDER_BACKEND_URL = "https://placeholder.supabase.co"
PLACEHOLDER_BACKEND_KEY = "placeholder-key"


class Settings(BaseSettings):
    model_config = {"env_prefix": "LESSONFLOW_"}

    # Hosted backend (PostgREST)
    backend_url: str = PLACEHOLDER_BACKEND_URL
    backend_key: str = PLACEHOLDER_BACKEND_KEY
    backend_timeout_seconds: float = 10.0
    reflections_table: str = "reflections"
    profiles_table: str = "profiles"

    # Session store
    redis_url: str = "redis://redis:6379/0"
    session_ttl_seconds: int = 86400
    save_lock_seconds: int = 30

    # Flow tuning
    celebration_delay_seconds: float = 3.0
    program_length_days: int = 28
    min_total_problems: int = 1
    min_internal_problems: int = 0
    require_link: bool = True

    # Observability
    otlp_endpoint: str = ""
    service_name: str = "lessonflow"
    service_version: str = "1.0.0"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000


settings = Settings()


def missing_backend_settings(s: Settings = settings) -> list[str]:
    """Names of backend settings still at their placeholder values."""
    missing = []
    if not s.backend_url or s.backend_url == PLACEHOLDER_BACKEND_URL:
        missing.append("LESSONFLOW_BACKEND_URL")
    if not s.backend_key or s.backend_key == PLACEHOLDER_BACKEND_KEY:
        missing.append("LESSONFLOW_BACKEND_KEY")
    return missing
