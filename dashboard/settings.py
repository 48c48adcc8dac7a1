from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Values are read from process environment and optionally from `.env`.
    """

    github_api_base_url: str = "https://api.github.com"
    github_request_timeout_seconds: float = 15.0
    github_max_pages: int = 3
    github_per_page: int = 100

    max_repositories: int = 10
    max_concurrent_requests: int = 4
    stats_retry_delay_seconds: float = 2.0

    notification_timeout_seconds: float = 10.0
    notification_refresh_seconds: float = 300.0
    notification_page_size: int = 50

    database_url: str = "sqlite+pysqlite:///./dashboard.db"
    search_history_limit: int = 10

    sentry_dsn: str | None = None
    environment: str = "development"
    release: str | None = None
    sentry_traces_sample_rate: float = 0.1
    log_level: str = "INFO"

    rate_limit_per_minute: int = 30
    rate_limit_window_seconds: int = 60

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
