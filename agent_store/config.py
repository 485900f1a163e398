"""Store settings using Pydantic BaseSettings."""

import re
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9_]*$")


class StoreSettings(BaseSettings):
    """Store configuration loaded from ``AGENT_STORE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="AGENT_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./agent_store.db")
    # Applied to every built-in and caller-defined table so several logical
    # stores can share one physical database.
    table_prefix: str = Field(default="")
    echo_sql: bool = Field(default=False)
    # Seconds a SQLite writer waits on a locked database before failing
    sqlite_busy_timeout: float = Field(default=30.0)
    pool_size: int = Field(default=10)
    max_overflow: int = Field(default=20)

    # Logging
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)
    log_file: Optional[str] = Field(default=None)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("table_prefix")
    @classmethod
    def validate_table_prefix(cls, v: str) -> str:
        vv = (v or "").strip()
        if not _PREFIX_PATTERN.match(vv):
            raise ValueError("TABLE_PREFIX may only contain letters, digits and underscores")
        return vv

    @field_validator("sqlite_busy_timeout")
    @classmethod
    def validate_busy_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("SQLITE_BUSY_TIMEOUT must not be negative")
        return v


@lru_cache
def get_settings() -> StoreSettings:
    """Get cached settings instance."""
    return StoreSettings()
