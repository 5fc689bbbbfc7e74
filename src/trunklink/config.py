"""Configuration management for the TrunkLink alert service."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service identification
    service_name: str = Field(
        default="trunklink-alerts",
        description="Name of the service for logging and metrics",
    )
    environment: str = Field(
        default="development",
        description="Deployment environment",
    )

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=4000, description="Server port")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # Location data source (realtime database REST endpoint)
    data_source_url: str = Field(
        default="http://localhost:9000",
        description="Base URL of the realtime database holding elephant records",
    )
    data_source_path: str = Field(
        default="elephants",
        description="Collection holding one record per tracked elephant",
    )
    data_source_auth: str | None = Field(
        default=None,
        description="Optional auth token appended as the `auth` query parameter",
    )
    data_source_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for data source requests",
    )

    # Scheduling
    poll_interval_seconds: float = Field(
        default=10.0,
        description="Seconds between evaluation passes",
    )
    initial_delay_seconds: float = Field(
        default=5.0,
        description="Delay before the first evaluation pass",
    )
    watch_enabled: bool = Field(
        default=True,
        description="Trigger passes from the data source change stream",
    )
    watch_retry_seconds: float = Field(
        default=5.0,
        description="Delay before reconnecting a failed change stream",
    )

    # Alerting thresholds
    proximity_radius_km: float = Field(
        default=5.0,
        description="Distance at or below which subscribers are alerted",
    )
    proximity_cooldown_ms: int = Field(
        default=5 * 60 * 1000,
        description="Minimum time between proximity alerts per subscriber and elephant",
    )
    running_cooldown_ms: int = Field(
        default=5 * 60 * 1000,
        description="Minimum time between running alerts per elephant",
    )
    proximity_broadcast: bool = Field(
        default=False,
        description="Broadcast proximity alerts to every destination without distance",
    )

    # Push delivery
    push_channel: str = Field(default="fcm", description="Push channel: fcm or log")
    fcm_credentials_path: str | None = Field(
        default=None,
        description="Service account JSON for Firebase Cloud Messaging",
    )
    push_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for a single delivery attempt",
    )

    # Monitoring
    alert_history_size: int = Field(
        default=200,
        description="Number of recent alerts kept for /alerts",
    )
    metrics_enabled: bool = Field(default=True, description="Enable Prometheus metrics")

    model_config = {
        "env_prefix": "TRUNKLINK_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator(
        "poll_interval_seconds",
        "proximity_radius_km",
        "watch_retry_seconds",
    )
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("initial_delay_seconds", "proximity_cooldown_ms", "running_cooldown_ms")
    @classmethod
    def _non_negative(cls, v):
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("data_source_timeout", "push_timeout")
    @classmethod
    def _bounded_timeout(cls, v: float) -> float:
        # external I/O must stay bounded
        if not 0 < v <= 15:
            raise ValueError("timeout must be within (0, 15] seconds")
        return v

    @field_validator("push_channel")
    @classmethod
    def _known_channel(cls, v: str) -> str:
        v = v.lower()
        if v not in {"fcm", "log"}:
            raise ValueError("push_channel must be 'fcm' or 'log'")
        return v

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, v: str) -> str:
        v = v.lower()
        if v not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @field_validator("alert_history_size")
    @classmethod
    def _history_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("alert_history_size must be at least 1")
        return v

    @property
    def entities_url(self) -> str:
        """Full REST URL of the elephant collection."""
        base = self.data_source_url.rstrip("/")
        path = self.data_source_path.strip("/")
        return f"{base}/{path}.json"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()

