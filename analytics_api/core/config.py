import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_CACHE_TTL = 900
COCKPIT_CACHE_TTL = 300
PRODUCTIVITY_CACHE_TTL = 900
CODE_HEALTH_CACHE_TTL = 900
MAX_CACHE_ENTRIES = 10_000

IMPLEMENTATION_RATE_LOOKBACK_DAYS = 14
COCKPIT_PR_SAMPLE_LIMIT = 50

# per client IP
RATE_LIMIT_REQUESTS = 100
RATE_LIMIT_WINDOW_SECONDS = 15 * 60


@dataclass(frozen=True)
class Settings:
    """Process-wide runtime settings, built once at startup."""

    project_id: str = ""
    credentials_file: Optional[str] = None
    mongo_dataset: str = "analytics_mongo"
    postgres_dataset: str = "analytics_postgres"
    custom_tables_dataset: str = "analytics_custom_tables"
    api_key: str = ""
    port: int = 3000
    log_level: str = "INFO"
    log_json: bool = False
    rate_limit_requests: int = RATE_LIMIT_REQUESTS
    rate_limit_window_seconds: int = RATE_LIMIT_WINDOW_SECONDS
    cors_origins: Tuple[str, ...] = ("*",)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.environ.get(name, "")
    items = tuple(item.strip() for item in raw.split(",") if item.strip())
    return items or default


def load_settings() -> Settings:
    """Read settings from the environment (and a local .env file, if any)."""
    load_dotenv()
    return Settings(
        project_id=os.environ.get("GOOGLE_CLOUD_PROJECT_ID", ""),
        credentials_file=os.environ.get("GOOGLE_APPLICATION_CREDENTIALS") or None,
        mongo_dataset=os.environ.get("BIGQUERY_MONGO_DATASET", "analytics_mongo"),
        postgres_dataset=os.environ.get("BIGQUERY_POSTGRES_DATASET", "analytics_postgres"),
        custom_tables_dataset=os.environ.get(
            "BIGQUERY_CUSTOM_TABLES_DATASET", "analytics_custom_tables"
        ),
        api_key=os.environ.get("API_KEY", ""),
        port=_env_int("PORT", 3000),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_json=_env_flag("LOG_JSON"),
        rate_limit_requests=_env_int("RATE_LIMIT_MAX", RATE_LIMIT_REQUESTS),
        rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", RATE_LIMIT_WINDOW_SECONDS),
        cors_origins=_env_list("CORS_ORIGINS", ("*",)),
    )
