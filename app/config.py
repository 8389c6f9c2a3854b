from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (alert lifecycle store)
    DATABASE_URL: str = "sqlite+aiosqlite:///./cs_health.db"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Alert lifecycle store backend
    ALERT_STORE_BACKEND: Literal["memory", "database"] = "memory"

    # Optional JSON file with a (partial) HealthScoringConfig
    HEALTH_CONFIG_FILE: str | None = None

    # Portfolio pass pacing
    AGGREGATION_BATCH_SIZE: int = 10
    AGGREGATION_BATCH_DELAY_SECONDS: float = 0.0

    # Error tracking
    SENTRY_DSN: str | None = None

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    @field_validator("AGGREGATION_BATCH_SIZE")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("AGGREGATION_BATCH_SIZE must be at least 1")
        return v

    @field_validator("AGGREGATION_BATCH_DELAY_SECONDS")
    @classmethod
    def validate_batch_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("AGGREGATION_BATCH_DELAY_SECONDS cannot be negative")
        return v

    @model_validator(mode="after")
    def force_production_flags(self) -> "Settings":
        # Never run debug logging in production
        if self.is_production:
            self.DEBUG = False
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "staging")

    @property
    def sqlalchemy_echo(self) -> bool:
        """SQL echo only in local development."""
        return self.DEBUG and not self.is_production

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
