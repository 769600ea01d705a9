"""
Application configuration.

All settings come from the environment (or a local .env file) and are
validated once at import time. Missing secrets stop the process at startup.
"""
import logging
import sys
from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # ✅ Database
    DATABASE_URL: str
    DB_CONNECT_TIMEOUT: int = 5
    RUN_MIGRATIONS: bool = False

    # ✅ Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # ✅ Stripe
    STRIPE_SECRET_KEY: str
    STRIPE_WEBHOOK_SECRET: str
    STRIPE_MAX_NETWORK_RETRIES: int = 2

    # ✅ Frontend / CORS
    FRONTEND_URL: str = "http://localhost:3000"

    # ✅ Runtime
    ENVIRONMENT: str = "development"  # development | production
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = "logs"

    @property
    def IS_PRODUCTION(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def load_settings() -> Settings:
    """Load settings, exiting the process if required values are missing."""
    try:
        return Settings()
    except ValidationError as e:
        missing = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        logger.critical(f"Invalid or missing configuration: {', '.join(missing)}")
        sys.exit(1)


settings = load_settings()
