"""
Application configuration using pydantic-settings.
Every option can be overridden from the environment or a local .env file.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    allowed_origins: str = ""  # Comma-separated CORS origins for the dashboard

    # ClickHouse analytics store
    clickhouse_url: str = "http://localhost:8123"
    clickhouse_username: str = "default"
    clickhouse_password: str = ""
    clickhouse_database: str = "default"
    clickhouse_timeout_seconds: float = 30.0
    clickhouse_setup_schema: bool = True

    # Webhook security (empty / zero disables the corresponding check)
    webhook_secret: str = ""
    max_allowed_timestamp_skew: int = 0  # seconds

    # Sentry
    sentry_dsn: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
