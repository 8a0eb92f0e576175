"""Runtime settings for the recurring task engine, read from the environment and `.env`."""
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Cadence Backend"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+psycopg2://cadence@localhost:5432/cadence"
    database_statement_timeout_ms: int = 30000

    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "cadence"

    # Background sweeps
    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    scheduler_interval_minutes: int = 15
    maintenance_interval_minutes: int = 60
    jobs_run_on_startup: bool = False

    # Generation limits
    generation_advance_factor: int = 10
    generation_horizon_days: int = 366
    generation_max_retries: int = 3
    generate_now_max_count: int = 10

    notifications_enabled: bool = False
    notifications_provider: str = "noop"

    @field_validator(
        "scheduler_interval_minutes",
        "maintenance_interval_minutes",
        "generation_advance_factor",
        "generation_horizon_days",
        "generation_max_retries",
        "generate_now_max_count",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
