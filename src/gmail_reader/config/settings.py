"""Configuration via pydantic-settings with .env support."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class GmailReaderSettings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="GMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OAuth credentials
    credentials_path: Path = Path("credentials/client_secret.json")
    token_path: Path = Path("credentials/token.json")

    # Gmail API settings
    user_id: str = "me"
    query: str = "in:inbox"
    default_max_results: int = 10

    # Fetching
    max_concurrency: int = 5
    fetch_timeout_seconds: float | None = None

    # Body normalization
    html_extractor: Literal["trafilatura", "beautifulsoup"] = "trafilatura"

    # Rate limiting & retry
    max_retries: int = 5
    initial_backoff_seconds: float = 1.0
    max_backoff_seconds: float = 60.0
    inter_page_delay_seconds: float = 0.2
    num_retries: int = 3

    # Logging
    log_level: str = "INFO"
