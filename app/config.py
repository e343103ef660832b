from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Slack Directory"
    debug: bool = False

    # Storage
    database_url: str = "sqlite:///slack_data.db"

    # Slack
    # Fallback token used only when no credential has been stored
    slack_user_token: str = ""
    slack_default_channel_id: str = ""

    # Remote API limits
    history_page_limit: int = 15  # Fixed by Slack for non-Marketplace apps
    thread_reply_limit: int = 1000
    thread_fetch_delay: float = 0.1  # Seconds between thread fetches
    max_concurrent_requests: int = 8
    rate_limit_retries: int = 3

    # Processing Configuration
    operation_timeout: float = 30  # Seconds

    model_config = ConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
