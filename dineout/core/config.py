from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


# Load .env early for local development
load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    # Database (identity tables, and engagement tables when storage_backend == "sql")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./app.db")

    # Engagement storage: memory | sql
    storage_backend: str = os.getenv("STORAGE_BACKEND", "memory")

    # Security
    app_secret_key: str = os.getenv("APP_SECRET_KEY", "dev-secret-change-me")
    access_token_exp_minutes: int = int(os.getenv("ACCESS_TOKEN_EXP_MINUTES", str(60 * 24)))

    # Throttling of the open helpful/report signals and of login
    signal_rate_limit: int = int(os.getenv("SIGNAL_RATE_LIMIT", "30"))
    signal_rate_window_seconds: int = int(os.getenv("SIGNAL_RATE_WINDOW_SECONDS", "60"))
    login_rate_limit: int = int(os.getenv("LOGIN_RATE_LIMIT", "10"))
    # Comma-separated peer addresses whose X-Forwarded-For header is believed
    trusted_proxies: str = os.getenv("TRUSTED_PROXIES", "")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_dir: str = os.getenv("LOG_DIR", "./logs")

    def trusted_proxy_hosts(self) -> set[str]:
        return {h.strip() for h in self.trusted_proxies.split(",") if h.strip()}


settings = Settings()
