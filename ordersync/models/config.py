"""Configuration models for the order sync engine."""

from typing import Literal

from pydantic import BaseModel, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetryConfig(BaseModel):
    """Backoff for transient remote failures.

    The n-th retry waits min(base_delay * 2**n, max_delay) seconds.
    """

    max_retries: int = Field(default=3, ge=0, le=10, description="Retries after the first attempt")
    base_delay: float = Field(default=1.0, ge=0, description="Wait before the first retry")
    max_delay: float = Field(default=60.0, gt=0, description="Upper bound of any single wait")


class RemoteConfig(BaseModel):
    """Configuration for the remote order API."""

    base_url: HttpUrl = Field(default=..., description="Base URL of the order REST API")
    auth_token: str = Field(default=..., description="Bearer token for the API")
    timeout_seconds: float = Field(
        default=30.0, gt=0, le=300, description="Per-request timeout in seconds"
    )
    page_size: int = Field(default=20, ge=1, le=100, description="Orders requested per list page")
    retry: RetryConfig = Field(default_factory=RetryConfig)


class StoreConfig(BaseModel):
    """Configuration for the local order cache."""

    type: Literal["memory", "sqlite"] = Field(default="sqlite", description="Store backend")
    path: str = Field(default="./data/orders.db", description="SQLite database path")


class WorkerConfig(BaseModel):
    """Configuration for the command worker."""

    max_remote_workers: int = Field(
        default=4, ge=1, le=64, description="Threads available for in-flight remote calls"
    )
    drop_superseded_pages: bool = Field(
        default=False,
        description="Drop list responses older than the latest fetch of the same list",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        description="If True, output JSON logs. If False, use console format.",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional path to log file. If None, logs only to stdout.",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level


class AppConfig(BaseSettings):
    """Main application configuration.

    Values may be overridden from environment variables with the ORDERSYNC_
    prefix, e.g. ORDERSYNC_REMOTE__AUTH_TOKEN.
    """

    model_config = SettingsConfigDict(
        env_prefix="ORDERSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    remote: RemoteConfig
    store: StoreConfig = Field(default_factory=StoreConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
