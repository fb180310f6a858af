"""Application configuration with Pydantic Settings.

Settings are loaded from environment variables and .env files.

Examples:
    >>> from gesh.config import get_settings
    >>> settings = get_settings()
    >>> settings.UPLOAD_LIMIT
    33554432

    >>> settings.get_storage_config()
    StorageConfig(blob_root='./data/blobs', metadata_root='./data/metadata')

Tests:
    - tests/unit/test_config.py::TestSettings
    - tests/unit/test_config.py::TestParseSize
"""

import re
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gesh.storage.config import StorageConfig


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


SIZE_UNITS: dict[str, int] = {
    "b": 1,
    "kb": 1024,
    "mb": 1024**2,
    "gb": 1024**3,
}

_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*([kmg]?b)?\s*$", re.IGNORECASE)


def parse_size(value: str | int) -> int:
    """Parse a human readable byte size such as ``32mb`` into bytes.

    Args:
        value: Integer byte count or string with an optional b/kb/mb/gb unit.

    Returns:
        Size in bytes.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, int):
        if value <= 0:
            raise ValueError("Size must be positive")
        return value

    match = _SIZE_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    size = int(number) * SIZE_UNITS[(unit or "b").lower()]
    if size <= 0:
        raise ValueError("Size must be positive")
    return size


class Settings(BaseSettings):
    """Gateway settings.

    Attributes:
        HOST: Bind address used by ``gesh serve``.
        PORT: Listen port.
        BLOB_BASE_DIR: Root directory for blob files.
        METADATA_BASE_DIR: Root directory for per-root metadata indexes.
        SECRET_REGISTRY_PATH: JSON file mapping appId -> rootId -> token.
        UPLOAD_LIMIT: Maximum accepted upload size in bytes.
        ENVIRONMENT: Deployment environment.
        DEBUG: Enables API docs and error detail in 500 responses.
        LOG_LEVEL: Root logging level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    HOST: str = Field(default="0.0.0.0", description="Bind address")
    PORT: int = Field(default=3000, description="Listen port", ge=1, le=65535)

    # Storage
    BLOB_BASE_DIR: str = Field(
        default="./data/blobs",
        description="Root directory for blob files",
    )
    METADATA_BASE_DIR: str = Field(
        default="./data/metadata",
        description="Root directory for metadata indexes",
    )
    SECRET_REGISTRY_PATH: str = Field(
        default="./data/secrets.json",
        description="Path to the secret registry JSON file",
    )
    UPLOAD_LIMIT: int = Field(
        default=32 * 1024**2,
        description="Maximum upload size in bytes (accepts '32mb' style values)",
    )

    # Application Settings
    ENVIRONMENT: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("UPLOAD_LIMIT", mode="before")
    @classmethod
    def validate_upload_limit(cls, v: str | int) -> int:
        """Accept byte counts and human readable sizes."""
        return parse_size(v)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level name."""
        level = v.upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == Environment.PRODUCTION

    def get_storage_config(self) -> StorageConfig:
        """Build the storage configuration handed to the sync service."""
        return StorageConfig(
            blob_root=self.BLOB_BASE_DIR,
            metadata_root=self.METADATA_BASE_DIR,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: The application settings.
    """
    return Settings()
