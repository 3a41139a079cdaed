from pathlib import Path
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root

ENV_FILE = os.getenv("ENV_FILE", str(BASE_DIR / ".env"))

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_FILE, extra="ignore")

    APP_ENV: str = "local"
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'perfreview.db'}"
    CORS_ORIGINS: str = "*"  # Comma-separated list of allowed origins, or "*" for all

    # Cron callers must send "Authorization: Bearer <CRON_SECRET>" in production
    CRON_SECRET: str | None = None

    APP_URL: str = "http://localhost:3000"

    # Outbound mail; without an API key mails are only logged
    RESEND_API_KEY: str | None = None
    EMAIL_FROM: str = "Performance Platform <onboarding@resend.dev>"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    REVIEW_BATCH_SIZE: int = 50
    EMAIL_BATCH_SIZE: int = 50
    NOTIFICATION_BATCH_SIZE: int = 50

    DEADLINE_DEDUP_HOURS: int = 24
    NOTIFICATION_RETENTION_DAYS: int = 30
    DEFAULT_REVIEW_WINDOW_DAYS: int = 14

    OUTBOX_MODE: str = "thread"  # "thread" or "inline"
    OUTBOX_WORKERS: int = 4

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list, handling '*' for development"""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"

settings = Settings()
