"""
Application Configuration

Centralized configuration management using Pydantic settings.
Loads from environment variables with fallback to .env file.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Note: get_settings() is cached, so tests that tweak the environment
    must call get_settings.cache_clear() before the app is imported.
    """

    # Database settings
    DATABASE_URL: str = "postgresql://localhost/shiteni_dev"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # Security settings
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Redis for rate limiting
    REDIS_URL: str = "redis://localhost:6379/0"

    # Application settings
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    PUBLIC_BASE_URL: str = "http://localhost:3000"
    DEFAULT_CURRENCY: str = "ZMW"

    # Rate limiting (vendors may override both values)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_BURST: int = 10

    # Lipila payment gateway
    LIPILA_BASE_URL: str = "https://lipila-prod.hobbiton.app"
    LIPILA_SECRET_KEY: str = ""
    LIPILA_CURRENCY: str = "ZMW"
    LIPILA_MOCK_MODE: bool = False
    LIPILA_TIMEOUT_SECONDS: float = 30.0
    LIPILA_MAX_RETRIES: int = 3
    LIPILA_RETRY_DELAY_SECONDS: float = 1.0

    # Inventory alerts
    LOW_STOCK_THRESHOLD: int = 10
    EXPIRY_WARNING_DAYS: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only instantiate settings once.
    """
    return Settings()
