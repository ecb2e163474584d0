"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dataset_catalog.lib.manifest import DEFAULT_MAX_BLOCK_BYTES, DEFAULT_MAX_BLOCK_FILES


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="SQLAlchemy async connection string (postgresql+asyncpg or sqlite+aiosqlite)",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # Dataset identifiers
    pid_prefix: str = Field(
        default="",
        description="Site-specific prefix prepended to generated dataset PIDs (e.g. 20.500.12345/)",
    )
    pid_max_attempts: int = Field(
        default=5,
        description="PID generation attempts before giving up on collisions",
        gt=0,
    )

    # Manifest partitioning
    max_block_bytes: int = Field(
        default=DEFAULT_MAX_BLOCK_BYTES,
        description="Maximum aggregate file size per manifest block in bytes",
        gt=0,
    )
    max_block_files: int = Field(
        default=DEFAULT_MAX_BLOCK_FILES,
        description="Maximum number of file entries per manifest block",
        gt=0,
        le=DEFAULT_MAX_BLOCK_FILES,
    )

    # Concurrency
    write_retry_attempts: int = Field(
        default=5,
        description="Attempts for a read-modify-write that loses an optimistic version check",
        gt=0,
    )
    read_retry_attempts: int = Field(
        default=3,
        description="Attempts for read-only roll-up queries when storage is unavailable",
        gt=0,
    )

    # DOI registration
    doi_prefix: str = Field(
        default="10.5072",
        description="DOI prefix assigned to this repository by the registration agency",
    )
    doi_minter: Literal["local", "datacite"] = Field(
        default="local",
        description="DOI minting backend",
    )
    datacite_url: str = Field(
        default="https://api.test.datacite.org",
        description="DataCite REST API base URL",
    )
    datacite_username: str | None = Field(
        default=None,
        description="DataCite repository account ID",
    )
    datacite_password: str | None = Field(
        default=None,
        description="DataCite repository account password",
    )
    datacite_timeout: float = Field(
        default=30.0,
        description="DataCite request timeout in seconds",
        gt=0,
    )
    public_url_base: str = Field(
        default="https://doi.example.org/detail/",
        description="Landing page prefix; the URL-encoded DOI is appended",
    )

    @field_validator("doi_prefix")
    @classmethod
    def validate_doi_prefix(cls, v: str) -> str:
        if not re.match(r"^10\.\d{4,9}$", v):
            msg = "Invalid doi_prefix: must look like 10.NNNN"
            raise ValueError(msg)
        return v

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables the rotating file sink when set)",
    )
    log_json: bool = Field(
        default=False,
        description="Emit log records as JSON lines",
    )
    log_rotation: str = Field(
        default="24h",
        description="Rotation condition for the log file (e.g. '24h', '100 MB')",
    )
    log_retention: str = Field(
        default="7 days",
        description="How long rotated log files are kept",
    )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
