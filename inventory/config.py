from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings shared by the Products and Transactions services.

    Values are read from environment variables (or a local .env file).
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Relational store shared by both services
    DATABASE_URL: str = "sqlite:///./inventory.db"

    # Products read-through cache
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_SHORT_TTL: int = 300       # filtered list results
    CACHE_SHORT_SLIDING: int = 120
    CACHE_LONG_TTL: int = 600        # single products, unfiltered lists
    CACHE_LONG_SLIDING: int = 300
    CACHE_CATEGORIES_TTL: int = 900

    MAX_PAGE_SIZE: int = 100

    # Transactions -> Products
    PRODUCT_SERVICE_URL: str = "http://localhost:8001"
    PRODUCT_SERVICE_TIMEOUT: float = 5.0

    # Client data layer
    TRANSACTION_SERVICE_URL: str = "http://localhost:8002"
    CLIENT_CACHE_TTL: float = 30.0
    CLIENT_DEBOUNCE_SECONDS: float = 0.3
    CLIENT_MAX_RETRIES: int = 3
    CLIENT_RETRY_BACKOFF: float = 0.5

    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
