"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the API, the worker and scripts.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (e.g. "sqlite://" for tests); otherwise the
    # Postgres URL is assembled from the parts below.
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="waterman")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Celery Configuration
    CELERY_BROKER_URL: str = Field(default="redis://redis:6379/0")
    CELERY_RESULT_BACKEND: str = Field(default="redis://redis:6379/0")

    # LLM scoring provider (any OpenAI-compatible chat completions endpoint)
    LLM_API_KEY: Optional[str] = Field(default=None)
    LLM_BASE_URL: Optional[str] = Field(default=None)
    LLM_TIMEOUT_S: float = Field(default=60.0)
    SCORING_MODEL: str = Field(default="gpt-4o-mini")
    SCORING_TEMPERATURE: float = Field(default=0.3)
    SCORING_MAX_TOKENS: int = Field(default=800)
    # Sleep before retry n (three retries after the initial attempt).
    SCORING_RETRY_DELAYS_S: List[float] = Field(default=[30.0, 60.0, 300.0])
    # Fixed pacing between sequential model calls inside one orchestrator run.
    SCORING_INTER_CALL_DELAY_S: float = Field(default=0.1)
    # Head start given to system scoring before personalized scoring begins.
    PERSONALIZED_SCORING_DELAY_S: int = Field(default=10)

    # Forecast domain
    DEFAULT_SPOT_TIMEZONE: str = Field(default="Europe/Lisbon")
    DEFAULT_SLOT_DURATION_H: int = Field(default=3)
    SCRAPE_MIN_SLOTS: int = Field(default=10)
    SCRAPE_MIN_FUTURE_HOURS: int = Field(default=24)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)


# Global settings instance
settings = Settings()
