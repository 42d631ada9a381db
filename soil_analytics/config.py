from pydantic_settings import BaseSettings
from pathlib import Path
from typing import Optional

class Settings(BaseSettings):
    """Configuration settings for the application, loaded from .env file."""

    # Application Settings
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Object store configuration
    # Leave REDIS_URL unset to run against the in-memory store
    REDIS_URL: Optional[str] = None
    STORE_NAMESPACE: str = "soil-analytics"

    # Bucketing
    TIMEZONE: str = "UTC"
    DEFAULT_PAGE: str = "gateway"

    # Rate limiting
    DEFAULT_RATELIMIT: str = "1000/minute"
    TRACK_ENDPOINT_RATELIMIT: str = "20/second"
    RATELIMIT_ENABLED: bool = True

    # Query Settings
    EVENTS_DEFAULT_LIMIT: int = 100
    EVENTS_MAX_LIMIT: int = 1000

    class Config:
        env_file = Path(__file__).resolve().parent.parent / ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore" # Ignore extra fields from .env

# Create a single, globally importable settings instance
settings = Settings()
