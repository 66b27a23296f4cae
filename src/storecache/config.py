from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STORECACHE_", env_file=".env", extra="ignore")

    app_name: str = "storecache"
    env: str = "dev"

    # Cache keys: "<namespace>.<collection>.<selector>"
    cache_namespace: str = "storecache"

    # Local tier
    memory_sweep_interval: float = Field(default=60.0, gt=0)

    # Distributed tier. Comma-separated URLs; more than one means a cluster.
    redis_enabled: bool = True
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    redis_default_ttl_minutes: int = Field(default=60, gt=0)
    redis_acknowledged_writes: bool = False
    redis_operation_timeout: float = Field(default=2.0, gt=0)
    redis_node_operation_timeout: float = Field(default=30.0, gt=0)
    redis_scan_count: int = Field(default=500, gt=0)

    # Distributed tier retries (exponential backoff)
    redis_retry_attempts: int = Field(default=3, ge=1)
    redis_retry_delay_initial: float = 0.05
    redis_retry_delay_max: float = 1.0
    redis_retry_multiplier: float = 2.0

    # Observability
    enable_metrics: bool = True
    log_level: str = "INFO"
    log_json: bool = True


settings = Settings()
