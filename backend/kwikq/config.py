"""
Application configuration using Pydantic Settings.
Loads from environment variables with sensible defaults.
"""

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "KwikQ Queue Core"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Storage
    STORAGE_BACKEND: str = "mongo"  # mongo, memory
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "kwikq"

    # Ticketing
    DEFAULT_TIMEZONE: str = "UTC"
    DEFAULT_TICKET_PREFIX: str = "Q"
    TICKET_SEQUENCE_WIDTH: int = 3
    QUEUE_POINTS_PER_BUSINESS: int = 3
    ALERT_AUTO_SERVE: bool = True

    # Collaborator calls
    DEPENDENCY_TIMEOUT_SECONDS: float = 5.0

    # Analytics
    RECENT_ACTIVITY_LIMIT: int = 10
    TOP_SERVICES_LIMIT: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # Notifications
    NOTIFIER: str = "log"  # log, smtp
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_SENDER: str = "no-reply@kwikq.local"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
