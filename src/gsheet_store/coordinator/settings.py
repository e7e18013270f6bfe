from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineRuntimeSettings(BaseSettings):
    """Batch engine tuning, overridable via GSHEET_* environment variables.

    All durations are in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="GSHEET_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    buffer_size: int = 500
    queue_capacity: int = 500
    request_timeout: float = 120.0
    flush_interval: float = 5.0
    policy_refresh_interval: float = 60.0
    eviction_interval: float = 20.0
    policy_timeout: float = 10.0
    eviction_timeout: float = 30.0
    retry_backoff: float = 2.0
    rate_limit_per_sec: float = 1.0
    rate_limit_burst: int = 60
    stale_after: float = 300.0
    row_format: Literal["columns", "text"] = "columns"
