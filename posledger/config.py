# posledger/config.py
import logging
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__

logger = logging.getLogger(__name__)

DEV_SECRET_KEY = "dev-only-secret-key-change-me-in-production"


class Settings(BaseSettings):
    # App Info
    app_name: str = "POS Ledger API"
    version: str = __version__
    debug: bool = False

    # Security
    secret_key: str = DEV_SECRET_KEY
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440  # 1 day
    token_cookie_name: str = "token"
    cookie_secure: bool = False
    admin_email_domain: str = "@pos.io"

    # Sales rules
    low_stock_threshold: int = 5
    duplicate_window_minutes: int = 5
    storage_timeout_seconds: float = 5.0

    # HTTP
    allowed_origins: List[str] = ["http://localhost:3000"]
    enable_reset: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8085

    model_config = SettingsConfigDict(env_file=".env", env_prefix="POS_", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    if settings.secret_key == DEV_SECRET_KEY:
        logger.warning("Using the development JWT secret; set POS_SECRET_KEY in production")
    return settings
