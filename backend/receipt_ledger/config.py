"""
Configuration settings for the receipt ledger.

Loads environment variables from .env file and provides typed configuration.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    DATABASE_URL: str = Field(
        default="sqlite:///./data/receipts.db", description="SQLAlchemy database URL"
    )
    DATABASE_ECHO: bool = Field(
        default=False, description="Echo SQL queries (for debugging)"
    )
    DATABASE_TIMEOUT: float = Field(
        default=5.0, gt=0, description="Seconds to wait for a lock before giving up"
    )
    SQLITE_WAL: bool = Field(
        default=True, description="Enable WAL journal mode for SQLite databases"
    )
    WRITE_ISOLATION_LEVEL: str = Field(
        default="SERIALIZABLE",
        description="Isolation level for write transactions (non-SQLite databases)",
    )

    # Domain Configuration
    ALLOWED_UNITS: List[str] = Field(
        default=["ea", "kg", "g", "l", "ml", "m", "pk"],
        description="Accepted item unit codes; empty list accepts any code of 1-3 characters",
    )
    CAPITALIZE_ITEM_NAMES: bool = Field(
        default=False, description="Store item names upper-cased"
    )

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    ENABLE_FILE_LOGGING: bool = Field(
        default=False, description="Enable logging to file"
    )
    LOG_DIR: str = Field(default="./logs", description="Directory for log files")

    # Retry Configuration (StorageUnavailableError)
    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    RETRY_INITIAL_DELAY: float = Field(default=0.1, ge=0)
    RETRY_MAX_DELAY: float = Field(default=5.0, ge=0)
    RETRY_BACKOFF_FACTOR: float = Field(default=2.0, ge=1)
    # ±20% random delay to avoid thundering herd
    RETRY_JITTER: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
