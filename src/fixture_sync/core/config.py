from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # DB
    database_url: str = Field(
        default="sqlite+pysqlite:///./fixture_sync.db",
        validation_alias="DATABASE_URL",
    )
    db_echo: bool = False

    # api-sports
    api_sports_key: str | None = Field(default=None, repr=False)
    api_sports_base_url: str = "https://v3.football.api-sports.io"
    api_timeout_s: float = 60.0
    api_connect_timeout_s: float = 10.0

    # quota gate
    quota_minute_capacity: int = 350
    quota_minute_interval_s: float = 60.0
    quota_day_capacity: int = 70_000
    max_concurrent_calls: int = 10

    # call executor
    retry_max_attempts: int = 3
    rate_limit_max_retries: int = 10
    rate_limit_default_wait_s: float = 60.0

    # batching
    batch_size: int = 10
    inter_batch_delay_s: float = 2.0
    fixture_window_days: int = 2
    stale_season_sentinel: int = 2010

    # jobs
    job_timeout_s: float = 3 * 60 * 60
    # retries after the first attempt, so 2 means up to 3 runs
    job_retries: int = 2
    job_retry_delay_s: float = 10.0
    execution_retention_days: int = 30

    # logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # -----------------------------
    # Required-key helpers
    # -----------------------------

    def require_api_sports_key(self) -> str:
        if not self.api_sports_key:
            raise RuntimeError("API_SPORTS_KEY is not set. Set it in the environment or .env file.")
        return self.api_sports_key


settings = Settings()
