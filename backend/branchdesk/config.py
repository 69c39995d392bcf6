from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

_BACKEND_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _BACKEND_DIR / ".env",
    ".env",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "BranchDesk API"
    app_version: str = "0.1.0"
    app_env: str = "development"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Airtable record store
    airtable_api_key: str = ""
    airtable_base_id: str = ""
    airtable_base_url: str = "https://api.airtable.com/v0"
    airtable_timeout_seconds: float = 30.0

    # Per-item concurrency for bulk operations (1 = strictly sequential)
    bulk_concurrency: int = 1

    # Append record mutations and security events to the audit_logs table
    audit_trail_enabled: bool = True

    # Logging: per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_http: str = "WARNING"          # httpx / httpcore: outbound HTTP
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_store: str = "INFO"            # Airtable record store adapter
    log_level_analytics: str = "INFO"        # Aggregation engine

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance: reads .env once."""
    return Settings()
