"""Application configuration module."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./assessments.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: Optional[str] = None

    # API settings
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "Internal Assessment Engine"

    # Engine behaviour
    DEFAULT_TAS_PER_TARGET: int = 1
    ENFORCE_SUBMISSION_PERIOD: bool = True

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
