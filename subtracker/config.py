"""
Application configuration using Pydantic Settings
"""
from datetime import datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """
    # Database
    DATABASE_URL: str = "sqlite:///./subtracker.db"

    # Application
    TIMEZONE: str = "UTC"
    DEBUG: bool = False

    # Billing / reports
    DEFAULT_CURRENCY: str = "USD"
    UPCOMING_WINDOW_DAYS: int = 14
    BREAKDOWN_HORIZON_MONTHS: int = 12

    # Reminders
    REMINDER_DAYS: int = 3
    SCHEDULER_ENABLED: bool = True

    # Device search
    SEARCH_ITEM_TTL_DAYS: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Игнорировать дополнительные поля из переменных окружения
    )

    def get_sqlalchemy_url(self) -> str:
        """
        Convert DATABASE_URL to SQLAlchemy format (postgresql+psycopg://)
        """
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url

    def local_now(self) -> datetime:
        """Current wall-clock time in TIMEZONE, as a naive datetime."""
        return datetime.now(ZoneInfo(self.TIMEZONE)).replace(tzinfo=None)


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance (singleton)
    """
    return Settings()
