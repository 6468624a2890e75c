"""Configuration and environment settings for the Centinel ledger service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for the Centinel ledger service."""

    database_url: str = "sqlite:///centinel.db"
    database_echo: bool = False
    identity_header: str = "x-user-id"
    default_page_limit: int = 10
    max_page_limit: int = 500
    recent_transactions_limit: int = 5
    overview_pots_limit: int = 4
    budget_latest_limit: int = 3
    due_soon_days: int = 5
    log_level: str = "INFO"
    log_file: str | None = "logs/centinel.log"
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


def get_settings() -> "Settings":
    """Return an instance of the application settings."""
    return Settings()
