import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent.parent

DEFAULT_CLASSIFICATION_RANKS = {
    "SUPERVISOR": 1,
    "PROJECT_MANAGER": 2,
    "GENERAL_FOREMAN": 3,
    "FOREMAN": 4,
    "JOURNEYMAN": 5,
    "APPRENTICE": 6,
}


class Settings(BaseSettings):
    env: str = Field(default="dev", description="Deployment environment")
    app_name: str = "Timekeeping API"
    database_url: str = Field(
        default=f"sqlite:///{BASE_DIR / 'timekeeping.db'}",
        description="Database connection string",
    )
    cors_origins: Annotated[list[str], NoDecode] = []
    log_level: str = "INFO"
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN for error monitoring")
    otlp_endpoint: str | None = Field(default=None, description="OTLP endpoint for traces/metrics")

    max_hours_per_entry: float = Field(default=24.0, gt=0)
    top_projects_limit: int = Field(default=5, ge=1)
    classification_ranks: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_CLASSIFICATION_RANKS))
    pdf_heading: str = "Electrical Construction Timesheet"
    pdf_content_bottom: float = Field(default=700.0, description="Lowest cursor position (points from top) for body rows")

    model_config = SettingsConfigDict(env_prefix="TIMEKEEPING_", extra="ignore")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings(_env_file=get_settings_env_file())


def get_settings_env_file() -> str | None:
    """Resolve environment-specific env file if it exists."""
    env = os.getenv("TIMEKEEPING_ENV", "dev")
    env_file = BASE_DIR / f".env.{env}"
    default_file = BASE_DIR / ".env"
    if env_file.exists():
        return str(env_file)
    if default_file.exists():
        return str(default_file)
    return None


settings = get_settings()
