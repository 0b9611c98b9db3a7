"""
Configuration Models

Pydantic model for cache configuration with validation, defaults and
field documentation. Driver-specific fields are ignored by drivers that
do not use them.
"""

import tempfile
from pathlib import Path
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_CACHE_DIR = Path(tempfile.gettempdir()) / "kvcache"


class CacheConfig(BaseModel):
    """Configuration consumed by the cache manager and its drivers."""

    model_config = ConfigDict(extra='allow', validate_assignment=True)

    # Driver selection
    driver: str = Field(
        default="file",
        description="Cache backend: array, memory, file, session, redis or a registered custom name"
    )
    prefix: str = Field(
        default="",
        description="String prepended to every key before it reaches the storage medium"
    )
    ttl: Optional[int] = Field(
        default=None,
        ge=0,
        description="Default seconds-to-live when an operation omits an explicit TTL (None = never expires)"
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Record hit/miss/write counters in the global metrics collector"
    )

    # File driver
    path: Path = Field(
        default=DEFAULT_CACHE_DIR,
        description="Root directory for cache files"
    )
    memory_limit: int = Field(
        default=1000,
        ge=1,
        le=1_000_000,
        description="Capacity of the file driver's in-process L1 cache"
    )
    lock_timeout: float = Field(
        default=10.0,
        gt=0,
        le=300.0,
        description="Seconds to wait for the exclusive write lock on a shard directory"
    )

    # Session driver
    session_key: str = Field(
        default="_kvcache",
        min_length=1,
        description="Session key under which cache entries are stored"
    )

    # Redis driver
    host: str = Field(
        default="127.0.0.1",
        description="Redis server host"
    )
    port: int = Field(
        default=6379,
        ge=1,
        le=65535,
        description="Redis server port"
    )
    password: Optional[str] = Field(
        default=None,
        description="Redis password (AUTH)"
    )
    database: int = Field(
        default=0,
        ge=0,
        description="Redis database number"
    )
    timeout: float = Field(
        default=2.5,
        gt=0,
        le=60.0,
        description="Redis connect and socket timeout in seconds"
    )

    @field_validator('driver')
    @classmethod
    def normalize_driver(cls, v: str) -> str:
        """Driver names are case-insensitive."""
        v = v.strip().lower()
        if not v:
            raise ValueError("driver must not be empty")
        return v

    @field_validator('path', mode='before')
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        """Expand ~ in cache paths."""
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v

    @field_validator('password', mode='before')
    @classmethod
    def empty_password_is_none(cls, v: Any) -> Any:
        """Treat an empty password as no password."""
        if v == "":
            return None
        return v
